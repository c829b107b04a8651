"""
Middleware для логирования запросов

Каждому запросу присваивается X-Request-ID (или берётся из входящего заголовка),
полевые терминалы дополнительно представляются заголовком X-Terminal-Id.
Записи (POST/PUT/PATCH/DELETE) логируются на INFO, чтение на DEBUG.
"""
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from gmao.config import TERMINAL_ID_HEADER
from gmao.logger import logger

REQUEST_ID_HEADER = "X-Request-ID"

# Служебные endpoints не логируем
SKIP_PATHS = ("/health", "/metrics", "/docs", "/openapi.json", "/redoc")

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Журнал HTTP запросов с идентификатором запроса и терминала
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "terminal_id": request.headers.get(TERMINAL_ID_HEADER),
            "client_ip": request.client.host if request.client else None
        }
        should_log = not request.url.path.startswith(SKIP_PATHS)
        log_call = logger.info if request.method in WRITE_METHODS else logger.debug

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Ошибка при обработке запроса: {request.method} {request.url.path}",
                extra={
                    **context,
                    "error": str(e),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "event_type": "request",
                    "event_category": "http"
                },
                exc_info=True
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        if should_log:
            if response.status_code >= 500:
                log_call = logger.warning
            log_call(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={**context, "status_code": response.status_code, "duration_ms": duration_ms}
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
