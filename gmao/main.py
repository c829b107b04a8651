"""
Главный модуль FastAPI приложения
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from gmao.config import get_settings
from gmao.database import Base, engine
from gmao.exceptions import BusinessValidationError, DependencyBlockedError, EntityNotFoundError, GmaoError
from gmao.logger import logger
from gmao.middleware.logging import LoggingMiddleware
from gmao.middleware.prometheus_metrics import setup_prometheus
from gmao.middleware.rate_limit import setup_rate_limiting
from gmao.routers import (
    cost_centers,
    cost_rules,
    health,
    machines,
    operation_logs,
    personal_reports,
    production,
    reports,
    workers
)
from gmao import models  # noqa: F401  регистрирует таблицы в Base.metadata

settings = get_settings()

ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")


def prepare_database() -> None:
    """
    Схема БД при старте: миграции Alembic, при их недоступности create_all
    """
    if os.path.exists(ALEMBIC_INI):
        try:
            from alembic import command
            from alembic.config import Config

            alembic_cfg = Config(ALEMBIC_INI)
            alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
            command.upgrade(alembic_cfg, "head")
            logger.info("Миграции БД применены")
            return
        except Exception as e:
            logger.warning(f"Миграции при старте не применились: {e}", extra={"error": str(e)})
    else:
        logger.info("alembic.ini не найден, миграции пропущены")

    Base.metadata.create_all(bind=engine)
    logger.info("Таблицы созданы через create_all")


if settings.auto_migrate:
    prepare_database()
else:
    logger.info("Миграции при старте отключены (AUTO_MIGRATE=false)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Старт и остановка: планировщик ежедневной проверки обслуживания
    """
    logger.info("Запуск приложения", extra={
        "event_type": "system",
        "event_category": "startup",
        "version": settings.api_version
    })

    scheduler = None
    if settings.scheduler_enabled:
        from gmao.services.scheduler_service import SchedulerService

        scheduler = SchedulerService.get_instance()
        scheduler.start()
    else:
        logger.info("Планировщик отключен (SCHEDULER_ENABLED=false)")

    yield

    logger.info("Остановка приложения", extra={"event_type": "system", "event_category": "shutdown"})
    if scheduler is not None:
        try:
            scheduler.shutdown()
        except Exception as e:
            logger.error(f"Ошибка при остановке планировщика: {e}", exc_info=True)


app = FastAPI(
    title="GMAO Cantera API",
    description="""
## Техобслуживание парка машин карьера

* **Машины** - справочник, определения обслуживания, статус ТО
* **Записи операций** - заправки, работы, поломки, моточасы
* **Производство** - отчёты CP/CR, недельные планы, эффективность
* **Отчёты** - распределение топлива и затрат на персонал по центрам затрат

Мониторинг: `/metrics`, `/health`, `/health/live`, `/health/ready`.

Ошибки: `400` бизнес-правило, `401` неверный PIN, `404` не найдено,
`409` есть зависимые записи, `422` валидация, `429` лимит запросов.
    """,
    version=settings.api_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "workers", "description": "Работники и вход по PIN."},
        {"name": "cost-centers", "description": "Центры затрат и подцентры."},
        {"name": "machines", "description": "Машины и определения обслуживания."},
        {"name": "operation-logs", "description": "Записи операций и ежедневный аудит."},
        {"name": "personal-reports", "description": "Личные отчёты работников."},
        {"name": "production", "description": "Отчёты CP/CR, недельные планы и эффективность."},
        {"name": "cost-rules", "description": "Правила фиксированного распределения затрат."},
        {"name": "reports", "description": "Распределение топлива, затрат на персонал и часов."},
        {"name": "Health", "description": "Мониторинг состояния."},
    ]
)

# Ошибки предметной области и их HTTP статусы
DOMAIN_ERROR_STATUS = {
    BusinessValidationError: status.HTTP_400_BAD_REQUEST,
    EntityNotFoundError: status.HTTP_404_NOT_FOUND,
    DependencyBlockedError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(GmaoError)
async def domain_error_handler(request: Request, exc: GmaoError):
    status_code = next(
        (code for error_type, code in DOMAIN_ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST
    )
    content = {"detail": str(exc)}
    if isinstance(exc, DependencyBlockedError):
        content.update(dependents=exc.dependents, count=exc.count)

    logger.warning(
        f"{request.method} {request.url.path}: {exc}",
        extra={"error_type": type(exc).__name__, "status_code": status_code}
    )
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    422 с перечнем полей; тело запроса попадает в лог для разбора ошибок терминалов
    """
    errors = [{"loc": e["loc"], "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    body = await request.body() if request.method in ("POST", "PUT", "PATCH") else b""

    logger.error("Ошибка валидации запроса", extra={
        "path": request.url.path,
        "method": request.method,
        "errors": errors,
        "body": body.decode("utf-8", errors="replace") or None
    })
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": errors})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    500 без внутренних деталей; полная трассировка только в логе
    """
    logger.error(
        f"Необработанное исключение: {type(exc).__name__}: {exc}",
        extra={"path": request.url.path, "method": request.method, "error_type": type(exc).__name__},
        exc_info=True
    )
    if isinstance(exc, SQLAlchemyError):
        detail = "Ошибка базы данных. Обратитесь к администратору."
    else:
        detail = "Внутренняя ошибка сервера. Обратитесь к администратору."
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})


app.add_middleware(LoggingMiddleware)
setup_rate_limiting(app)
setup_prometheus(app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

for module in (health, workers, cost_centers, machines, operation_logs,
               personal_reports, production, cost_rules, reports):
    app.include_router(module.router)
