"""
Модуль для настройки структурированного логирования
"""
import logging
import sys
import json
import traceback
from datetime import datetime
from typing import Any, Dict


# Стандартные атрибуты LogRecord: всё остальное пришло через extra={...}
_RESERVED_RECORD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


def get_record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    """
    Извлечение полей, переданных в логгер через extra={...}
    """
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }


class DatabaseLogHandler(logging.Handler):
    """
    Handler для сохранения логов в базу данных
    """

    def emit(self, record: logging.LogRecord):
        """
        Сохраняет лог в таблицу system_logs
        """
        # Импортируем здесь, чтобы избежать циклических зависимостей
        from gmao.database import SessionLocal
        from gmao.models import SystemLog

        extra_data = get_record_extra(record)
        event_type = extra_data.pop("event_type", None)
        event_category = extra_data.pop("event_category", None)

        if not event_type:
            source = f"{record.name}.{record.module}".lower()
            if "scheduler" in source or "sync" in source:
                event_type = "scheduler"
            elif "database" in source:
                event_type = "database"
            elif "service" in source:
                event_type = "service"
            elif "router" in source or "middleware" in source:
                event_type = "request"
            else:
                event_type = "system"

        exception_type = None
        exception_message = None
        stack_trace = None
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            exception_type = exc_type.__name__ if exc_type else None
            exception_message = str(exc_value) if exc_value else None
            stack_trace = "".join(traceback.format_exception(*record.exc_info))

        db = SessionLocal()
        try:
            db.add(SystemLog(
                level=record.levelname,
                message=record.getMessage(),
                module=record.module,
                function=record.funcName,
                line_number=record.lineno,
                event_type=event_type,
                event_category=event_category or "general",
                extra_data=json.dumps(extra_data, ensure_ascii=False, default=str) if extra_data else None,
                exception_type=exception_type,
                exception_message=exception_message,
                stack_trace=stack_trace,
                created_at=datetime.utcnow()
            ))
            db.commit()
        except Exception:
            db.rollback()
            # Ошибки логирования не должны ломать работу приложения
            self.handleError(record)
        finally:
            db.close()


class JSONFormatter(logging.Formatter):
    """
    Форматтер для логирования в JSON формате
    """
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(get_record_extra(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ContextFormatter(logging.Formatter):
    """
    Читаемый формат для development: сообщение и поля extra в виде key=value
    """

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = get_record_extra(record)
        if extra:
            line += " | " + " ".join(f"{key}={value}" for key, value in extra.items())
        return line


def setup_logging(log_level: str = None) -> logging.Logger:
    """
    Настройка логирования для приложения

    Args:
        log_level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                  По умолчанию берется из настроек (LOG_LEVEL)

    Returns:
        Настроенный logger
    """
    from gmao.config import get_settings
    settings = get_settings()

    level = (log_level or settings.log_level).upper()

    logger = logging.getLogger("gmao")
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Убираем дублирование логов
    logger.propagate = False

    # Повторный вызов не должен плодить обработчики
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level, logging.INFO))

    if settings.environment == "production":
        formatter = JSONFormatter()
    else:
        formatter = ContextFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # В БД сохраняем только WARNING и выше, чтобы не перегружать её
    if settings.log_to_database:
        db_handler = DatabaseLogHandler(level=logging.WARNING)
        logger.addHandler(db_handler)

    return logger


# Создаем глобальный logger
logger = setup_logging()
