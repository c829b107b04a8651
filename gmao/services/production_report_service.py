"""
Сервис для работы с производственными отчётами CP/CR и недельными планами CP
"""
from datetime import date
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.exceptions import EntityNotFoundError
from gmao.logger import logger
from gmao.models import CPDailyReport, CRDailyReport, CPWeeklyPlan
from gmao.repositories.production_report_repository import ProductionReportRepository
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import CPDailyReportCreate, CPWeeklyPlanUpsert, CRDailyReportCreate
from gmao.validators import validate_counter_pairs, validate_monday


class ProductionReportService:
    """
    Сервис для работы с производственными отчётами
    """

    def __init__(self, db: Session):
        self.db = db
        self.report_repo = ProductionReportRepository(db)
        self.worker_repo = WorkerRepository(db)

    def _check_worker(self, worker_id: int) -> None:
        if not self.worker_repo.get_by_id(worker_id):
            raise EntityNotFoundError("Работник", worker_id)

    def create_cp_report(self, data: CPDailyReportCreate) -> CPDailyReport:
        """
        Суточный отчёт CP: счётчики дробилки и мельниц

        Raises:
            BusinessValidationError: Значение счётчика на конец меньше значения на начало
        """
        validate_counter_pairs({
            "дробилка": (data.crusher_start, data.crusher_end),
            "мельницы": (data.mills_start, data.mills_end),
        })
        self._check_worker(data.worker_id)

        report = self.report_repo.create_cp_report(**data.model_dump())
        self.db.commit()
        self.db.refresh(report)

        logger.info(
            "Отчёт CP создан",
            extra={
                "report_id": report.id,
                "date": report.date.isoformat(),
                "mills_hours": report.mills_end - report.mills_start
            }
        )
        return report

    def create_cr_report(self, data: CRDailyReportCreate) -> CRDailyReport:
        """
        Суточный отчёт CR: счётчики мойки и измельчения
        """
        validate_counter_pairs({
            "мойка": (data.washing_start, data.washing_end),
            "измельчение": (data.trituration_start, data.trituration_end),
        })
        self._check_worker(data.worker_id)

        report = self.report_repo.create_cr_report(**data.model_dump())
        self.db.commit()
        self.db.refresh(report)

        logger.info("Отчёт CR создан", extra={"report_id": report.id, "date": report.date.isoformat()})
        return report

    def get_cp_reports(self, date_from: date, date_to: date) -> List[CPDailyReport]:
        return self.report_repo.get_reports(CPDailyReport, date_from, date_to)

    def get_cr_reports(self, date_from: date, date_to: date) -> List[CRDailyReport]:
        return self.report_repo.get_reports(CRDailyReport, date_from, date_to)

    def upsert_plan(self, data: CPWeeklyPlanUpsert) -> CPWeeklyPlan:
        """
        Создание или замена недельного плана по дате понедельника

        Raises:
            BusinessValidationError: Дата не является понедельником
        """
        validate_monday(data.monday_date)

        plan = self.report_repo.upsert_plan(
            data.monday_date,
            **data.model_dump(exclude={"monday_date"})
        )
        self.db.commit()
        self.db.refresh(plan)

        logger.info("Недельный план CP сохранён", extra={"monday_date": data.monday_date.isoformat()})
        return plan

    def get_plan(self, monday_date: date) -> Optional[CPWeeklyPlan]:
        return self.report_repo.get_plan(monday_date)
