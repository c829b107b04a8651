"""
Репозиторий для работы с производственными отчётами CP/CR и недельными планами
"""
from datetime import date
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Type, Union
from gmao.models import CPDailyReport, CRDailyReport, CPWeeklyPlan

DailyReport = Union[CPDailyReport, CRDailyReport]


class ProductionReportRepository:
    """
    Репозиторий для работы с производственными отчётами
    """

    def __init__(self, db: Session):
        self.db = db

    def create_cp_report(self, **fields) -> CPDailyReport:
        report = CPDailyReport(**fields)
        self.db.add(report)
        self.db.flush()
        return report

    def create_cr_report(self, **fields) -> CRDailyReport:
        report = CRDailyReport(**fields)
        self.db.add(report)
        self.db.flush()
        return report

    def get_reports(
        self,
        model: Type[DailyReport],
        date_from: date,
        date_to: date
    ) -> List[DailyReport]:
        """
        Суточные отчёты указанного типа за период (границы включительно)
        """
        return (
            self.db.query(model)
            .filter(model.date >= date_from, model.date <= date_to)
            .order_by(model.date, model.id)
            .all()
        )

    def get_plan(self, monday_date: date) -> Optional[CPWeeklyPlan]:
        return self.db.query(CPWeeklyPlan).filter(CPWeeklyPlan.monday_date == monday_date).first()

    def get_plans(self, monday_from: date, monday_to: date) -> Dict[date, CPWeeklyPlan]:
        """
        Недельные планы в диапазоне понедельников

        Returns:
            Словарь: дата понедельника -> план
        """
        plans = self.db.query(CPWeeklyPlan).filter(
            CPWeeklyPlan.monday_date >= monday_from,
            CPWeeklyPlan.monday_date <= monday_to
        ).all()
        return {plan.monday_date: plan for plan in plans}

    def upsert_plan(self, monday_date: date, **hours) -> CPWeeklyPlan:
        """
        Создание или обновление недельного плана по дате понедельника
        """
        plan = self.get_plan(monday_date)
        if plan is None:
            plan = CPWeeklyPlan(monday_date=monday_date)
            self.db.add(plan)
        for field, value in hours.items():
            setattr(plan, field, value)
        self.db.flush()
        return plan
