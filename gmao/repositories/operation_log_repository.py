"""
Репозиторий для работы с записями операций
"""
from datetime import date, datetime, time
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, Optional, List, Tuple
from gmao.models import OperationLog


class OperationLogRepository:
    """
    Репозиторий для работы с записями операций
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, log_id: int) -> Optional[OperationLog]:
        return self.db.query(OperationLog).filter(OperationLog.id == log_id).first()

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        machine_id: Optional[int] = None,
        log_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Tuple[List[OperationLog], int]:
        """
        Получение списка записей операций с фильтрацией

        Returns:
            tuple: (список записей, общее количество)
        """
        query = self.db.query(OperationLog)

        if machine_id is not None:
            query = query.filter(OperationLog.machine_id == machine_id)
        if log_type:
            query = query.filter(OperationLog.type == log_type)
        if date_from:
            query = query.filter(OperationLog.date >= date_from)
        if date_to:
            query = query.filter(OperationLog.date <= date_to)

        total = query.count()
        items = query.order_by(OperationLog.date.desc(), OperationLog.id.desc()).offset(skip).limit(limit).all()

        return items, total

    def get_for_day(self, day: date) -> List[OperationLog]:
        """
        Все записи операций за календарный день
        """
        start = datetime.combine(day, time.min)
        end = datetime.combine(day, time.max)
        return (
            self.db.query(OperationLog)
            .filter(OperationLog.date >= start, OperationLog.date <= end)
            .order_by(OperationLog.date, OperationLog.id)
            .all()
        )

    def sum_fuel_by_machine(self, date_from: date, date_to: date) -> Dict[int, float]:
        """
        Сумма заправленного топлива по машинам за период (записи REFUELING)

        Returns:
            Словарь: ID машины -> литры
        """
        rows = (
            self.db.query(OperationLog.machine_id, func.sum(OperationLog.fuel_litres))
            .filter(
                OperationLog.type == "REFUELING",
                OperationLog.date >= datetime.combine(date_from, time.min),
                OperationLog.date <= datetime.combine(date_to, time.max),
            )
            .group_by(OperationLog.machine_id)
            .all()
        )
        return {machine_id: float(total or 0) for machine_id, total in rows}

    def create(self, **fields) -> OperationLog:
        log = OperationLog(**fields)
        self.db.add(log)
        self.db.flush()
        return log
