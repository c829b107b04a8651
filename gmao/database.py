"""
Модуль для работы с базой данных
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from gmao.config import get_settings
from gmao.logger import logger

settings = get_settings()

DATABASE_URL = settings.database_url

if not DATABASE_URL or not DATABASE_URL.strip():
    raise ValueError("DATABASE_URL не может быть пустым")

# Логируем используемый URL без учётных данных
safe_url = DATABASE_URL.split("@")[-1] if "@" in DATABASE_URL else DATABASE_URL
logger.info(f"Подключение к БД: {safe_url}")


def _engine_options(url: str) -> dict:
    """
    Параметры engine в зависимости от диалекта
    """
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Проверяет соединение перед использованием
        "pool_recycle": 3600,   # Переиспользует соединения каждый час
        "connect_args": {
            "options": "-c search_path=public -c client_encoding=UTF8"
        },
    }


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # ondelete=CASCADE/SET NULL в SQLite работают только с этим pragma
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Получение сессии БД для dependency injection
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
