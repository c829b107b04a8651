"""
Сервис для работы с личными отчётами работников
"""
from datetime import date
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.exceptions import EntityNotFoundError
from gmao.logger import logger
from gmao.models import PersonalReport
from gmao.repositories.cost_center_repository import CostCenterRepository
from gmao.repositories.machine_repository import MachineRepository
from gmao.repositories.personal_report_repository import PersonalReportRepository
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import PersonalReportCreate


class PersonalReportService:
    """
    Сервис для работы с личными отчётами
    """

    def __init__(self, db: Session):
        self.db = db
        self.report_repo = PersonalReportRepository(db)
        self.worker_repo = WorkerRepository(db)
        self.machine_repo = MachineRepository(db)
        self.center_repo = CostCenterRepository(db)

    def create_report(self, data: PersonalReportCreate) -> PersonalReport:
        """
        Создание личного отчёта

        Raises:
            EntityNotFoundError: Работник, машина или центр затрат не найдены
        """
        if not self.worker_repo.get_by_id(data.worker_id):
            raise EntityNotFoundError("Работник", data.worker_id)
        if data.machine_id is not None and not self.machine_repo.get_by_id(data.machine_id):
            raise EntityNotFoundError("Машина", data.machine_id)
        if data.cost_center_id is not None and not self.center_repo.get_by_id(data.cost_center_id):
            raise EntityNotFoundError("Центр затрат", data.cost_center_id)

        report = self.report_repo.create(**data.model_dump())
        self.db.commit()
        self.db.refresh(report)

        logger.info(
            "Личный отчёт создан",
            extra={"report_id": report.id, "worker_id": report.worker_id, "hours": report.hours}
        )
        return report

    def get_reports(
        self,
        date_from: date,
        date_to: date,
        worker_id: Optional[int] = None,
        machine_id: Optional[int] = None
    ) -> List[PersonalReport]:
        return self.report_repo.get_range(date_from, date_to, worker_id=worker_id, machine_id=machine_id)
