"""
Health check endpoints

/health/live используется полевыми терминалами как проверка связи перед синхронизацией
"""
import time
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from gmao.config import get_settings
from gmao.database import get_db
from gmao.logger import logger

router = APIRouter(prefix="/health", tags=["Health"])

settings = get_settings()

# Без этих таблиц сервер не может принимать записи терминалов
REQUIRED_TABLES = ("machines", "maintenance_definitions", "operation_logs", "workers")


def check_database(db: Session) -> Dict[str, Any]:
    """
    Подключение к БД и наличие основных таблиц (миграции применены)
    """
    started = time.perf_counter()
    try:
        conn = db.connection()
        conn.execute(text("SELECT 1"))
        existing = set(inspect(conn).get_table_names())
    except Exception as e:
        logger.error("Проверка БД не пройдена", extra={"error": str(e), "event_type": "health"})
        return {"status": "unhealthy", "error": str(e)}

    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        logger.warning("В БД отсутствуют таблицы", extra={"missing_tables": missing, "event_type": "health"})
        return {"status": "unhealthy", "latency_ms": latency_ms, "missing_tables": missing}
    return {"status": "healthy", "latency_ms": latency_ms}


def get_scheduler_info() -> Dict[str, Any]:
    from gmao.services.scheduler_service import SchedulerService

    return SchedulerService.get_instance().get_status()


def _now() -> str:
    return datetime.utcnow().isoformat()


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": _now()}


@router.get("/ready")
async def readiness(db: Session = Depends(get_db)):
    """
    Готовность принимать записи: 503 если БД недоступна или не мигрирована
    """
    database = check_database(db)
    ready = database["status"] == "healthy"
    body = {"status": "ready" if ready else "not_ready", "timestamp": _now(), "checks": {"database": database}}
    if not ready:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@router.get("/")
async def health_check(db: Session = Depends(get_db)):
    """
    Полный отчёт: БД, планировщик ежедневной проверки обслуживания, версия
    """
    database = check_database(db)
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": _now(),
        "version": settings.api_version,
        "environment": settings.environment,
        "checks": {"database": database},
        "scheduler": get_scheduler_info()
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body
    )
