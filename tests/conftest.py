"""
Pytest fixtures для тестов GMAO Backend
"""
import pytest
import os
from datetime import date
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Настройки окружения для тестов (ДО импорта приложения)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_TO_DATABASE"] = "false"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["ENABLE_RATE_LIMIT"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

# Очищаем кэш settings
from gmao.config import get_settings
get_settings.cache_clear()

from gmao.database import Base, get_db
from gmao.models import CostCenter, Machine, MaintenanceDefinition, Worker
from gmao.main import app


# Тестовая база данных в памяти
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_engine():
    """Создание тестового engine для SQLite в памяти"""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Фабрика сессий тестовой БД"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory) -> Generator[Session, None, None]:
    """Создание тестовой сессии БД"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(test_db: Session) -> Generator[TestClient, None, None]:
    """Создание тестового клиента FastAPI"""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app, raise_server_exceptions=False)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture
def fixed_today():
    """Фиксированная текущая дата для расчётов по дате"""
    return date(2024, 6, 10)


@pytest.fixture
def test_worker(test_db: Session) -> Worker:
    """Создание тестового работника"""
    worker = Worker(
        name="Juan Pérez García",
        dni="12345678Z",
        email="juan@example.com",
        role="worker",
        active=True
    )
    test_db.add(worker)
    test_db.commit()
    test_db.refresh(worker)
    return worker


@pytest.fixture
def test_center(test_db: Session) -> CostCenter:
    """Создание тестового центра затрат"""
    center = CostCenter(code="C1", name="Cantera Norte")
    test_db.add(center)
    test_db.commit()
    test_db.refresh(center)
    return center


@pytest.fixture
def second_center(test_db: Session) -> CostCenter:
    center = CostCenter(code="C2", name="Planta Sur")
    test_db.add(center)
    test_db.commit()
    test_db.refresh(center)
    return center


@pytest.fixture
def test_machine(test_db: Session, test_center: CostCenter) -> Machine:
    """Машина на 90 моточасах с обслуживанием каждые 100 ч (предупреждение за 10 ч)"""
    machine = Machine(
        cost_center_id=test_center.id,
        name="Pala Cargadora",
        company_code="PC-01",
        current_hours=90,
        requires_hours=True
    )
    machine.maintenance_definitions.append(MaintenanceDefinition(
        name="Cambio de aceite",
        maintenance_type="HOURS",
        interval_hours=100,
        warning_hours=10,
        last_maintenance_hours=0
    ))
    test_db.add(machine)
    test_db.commit()
    test_db.refresh(machine)
    return machine
