"""
Prometheus метрики GMAO

HTTP метрики маркируются шаблоном маршрута (/api/v1/machines/{machine_id}),
а не фактическим путём.
Метрики предметной области обновляются из сервисов через функции record_*.
"""
import os
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from gmao.logger import logger


# Несколько воркеров uvicorn пишут метрики в общий каталог
if os.getenv("PROMETHEUS_MULTIPROC_DIR"):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

UNMATCHED_ROUTE = "unmatched"

HTTP_REQUESTS = Counter(
    "gmao_http_requests_total",
    "HTTP запросы к API",
    ["method", "route", "status_class"],
    registry=registry
)

HTTP_LATENCY = Histogram(
    "gmao_http_request_duration_seconds",
    "Длительность HTTP запросов",
    ["method", "route"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=registry
)

OPERATION_LOGS_TOTAL = Counter(
    "gmao_operation_logs_total",
    "Созданные записи операций",
    ["type"],  # LEVELS, BREAKDOWN, MAINTENANCE, SCHEDULED, REFUELING
    registry=registry
)

MAINTENANCE_ALERTS_TOTAL = Counter(
    "gmao_maintenance_alerts_total",
    "Отправленные уведомления о техобслуживании",
    ["status"],  # WARNING, OVERDUE
    registry=registry
)

MAINTENANCE_DUE = Gauge(
    "gmao_maintenance_due_definitions",
    "Определения обслуживания в статусе WARNING/OVERDUE по последней ежедневной проверке",
    ["status"],
    registry=registry
)

OFFLINE_ACTIONS_TOTAL = Counter(
    "gmao_offline_actions_total",
    "События офлайн-очереди",
    ["event"],  # queued, synced, failed
    registry=registry
)

OFFLINE_QUEUE_SIZE = Gauge(
    "gmao_offline_queue_size",
    "Действия в офлайн-очереди терминала",
    registry=registry
)

WORKER_LOGIN_FAILURES_TOTAL = Counter(
    "gmao_worker_login_failures_total",
    "Неудачные попытки входа работников по PIN",
    registry=registry
)


def resolve_route(request: Request) -> str:
    """
    Шаблон маршрута FastAPI для запроса или "unmatched" (404 и статика)
    """
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


class PrometheusMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        route = resolve_route(request)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUESTS.labels(
                method=request.method,
                route=route,
                status_class=f"{status_code // 100}xx"
            ).inc()
            HTTP_LATENCY.labels(method=request.method, route=route).observe(time.perf_counter() - started)


def setup_prometheus(app: FastAPI):
    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    logger.info("Prometheus метрики настроены", extra={
        "endpoint": "/metrics",
        "event_type": "system",
        "event_category": "startup"
    })


def record_operation_log(log_type: str):
    OPERATION_LOGS_TOTAL.labels(type=log_type).inc()


def record_maintenance_alert(status: str):
    MAINTENANCE_ALERTS_TOTAL.labels(status=status).inc()


def update_maintenance_due(warning: int, overdue: int):
    MAINTENANCE_DUE.labels(status="WARNING").set(warning)
    MAINTENANCE_DUE.labels(status="OVERDUE").set(overdue)


def record_offline_event(event: str, count: int = 1):
    if count:
        OFFLINE_ACTIONS_TOTAL.labels(event=event).inc(count)


def update_offline_queue_size(size: int):
    OFFLINE_QUEUE_SIZE.set(size)


def record_login_failure():
    WORKER_LOGIN_FAILURES_TOTAL.inc()
