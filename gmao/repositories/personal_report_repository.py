"""
Репозиторий для работы с личными отчётами работников
"""
from datetime import date
from sqlalchemy.orm import Session
from typing import Optional, List
from gmao.models import PersonalReport


class PersonalReportRepository:
    """
    Репозиторий для работы с личными отчётами
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, report_id: int) -> Optional[PersonalReport]:
        return self.db.query(PersonalReport).filter(PersonalReport.id == report_id).first()

    def get_range(
        self,
        date_from: date,
        date_to: date,
        worker_id: Optional[int] = None,
        machine_id: Optional[int] = None
    ) -> List[PersonalReport]:
        """
        Личные отчёты за период (границы включительно)
        """
        query = self.db.query(PersonalReport).filter(
            PersonalReport.date >= date_from,
            PersonalReport.date <= date_to
        )
        if worker_id is not None:
            query = query.filter(PersonalReport.worker_id == worker_id)
        if machine_id is not None:
            query = query.filter(PersonalReport.machine_id == machine_id)
        return query.order_by(PersonalReport.date, PersonalReport.id).all()

    def create(self, **fields) -> PersonalReport:
        report = PersonalReport(**fields)
        self.db.add(report)
        self.db.flush()
        return report
