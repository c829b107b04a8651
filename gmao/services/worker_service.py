"""
Сервис для работы с работниками
Содержит бизнес-логику для работы с работниками и вход по PIN
"""
from sqlalchemy.orm import Session
from typing import Optional, List, Tuple

from gmao.config import get_settings
from gmao.exceptions import BusinessValidationError, EntityNotFoundError
from gmao.logger import logger
from gmao.middleware.prometheus_metrics import record_login_failure
from gmao.models import Worker
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import WorkerCreate, WorkerUpdate
from gmao.validators import check_worker_pin

settings = get_settings()


class WorkerService:
    """
    Сервис для работы с работниками
    Содержит бизнес-логику поверх репозитория
    """

    def __init__(self, db: Session):
        self.worker_repo = WorkerRepository(db)
        self.db = db

    def _require_worker(self, worker_id: int) -> Worker:
        worker = self.worker_repo.get_by_id(worker_id)
        if not worker:
            raise EntityNotFoundError("Работник", worker_id)
        return worker

    def get_worker(self, worker_id: int) -> Optional[Worker]:
        """
        Получение работника по ID
        """
        return self.worker_repo.get_by_id(worker_id)

    def get_workers(
        self,
        skip: int = 0,
        limit: int = 100,
        active: Optional[bool] = None,
        role: Optional[str] = None
    ) -> Tuple[List[Worker], int]:
        """
        Получение списка работников с фильтрацией

        Returns:
            tuple: (список работников, общее количество)
        """
        return self.worker_repo.get_all(skip=skip, limit=limit, active=active, role=role)

    def create_worker(self, data: WorkerCreate) -> Worker:
        """
        Создание нового работника

        Raises:
            BusinessValidationError: Работник с таким DNI уже существует
        """
        if self.worker_repo.get_by_dni(data.dni):
            raise BusinessValidationError(f"Работник с DNI '{data.dni}' уже существует")

        worker = self.worker_repo.create(**data.model_dump())
        self.db.commit()
        self.db.refresh(worker)

        logger.info("Работник создан", extra={"worker_id": worker.id, "role": worker.role})
        return worker

    def update_worker(self, worker_id: int, data: WorkerUpdate) -> Worker:
        """
        Обновление работника
        """
        worker = self._require_worker(worker_id)

        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k in ("phone", "email")}
        for field, value in changes.items():
            setattr(worker, field, value)

        self.db.commit()
        self.db.refresh(worker)
        return worker

    def deactivate_worker(self, worker_id: int) -> Worker:
        """
        Деактивация работника (история его операций сохраняется)
        """
        worker = self._require_worker(worker_id)
        worker.active = False
        self.db.commit()
        self.db.refresh(worker)
        logger.info("Работник деактивирован", extra={"worker_id": worker_id})
        return worker

    def authenticate(self, worker_id: int, pin: str) -> Optional[Worker]:
        """
        Вход работника по PIN

        PIN совпадает с первыми символами DNI. Неактивный работник войти не может.

        Returns:
            Worker или None, если PIN неверный
        """
        worker = self.worker_repo.get_by_id(worker_id)

        if not worker or not worker.active:
            record_login_failure()
            logger.warning(
                "Попытка входа несуществующего или неактивного работника",
                extra={"worker_id": worker_id, "event_type": "auth", "event_category": "login"}
            )
            return None

        if not check_worker_pin(worker.dni, pin, settings.worker_pin_length):
            record_login_failure()
            logger.warning(
                "Неверный PIN работника",
                extra={"worker_id": worker_id, "event_type": "auth", "event_category": "login"}
            )
            return None

        logger.info("Работник вошёл в систему", extra={"worker_id": worker_id, "role": worker.role})
        return worker
