"""
Репозиторий для работы с центрами затрат и подцентрами
"""
from sqlalchemy.orm import Session
from typing import Dict, Optional, List
from gmao.models import CostCenter, SubCenter, Machine, OperationLog, PersonalReport, SpecificCostRule


class CostCenterRepository:
    """
    Репозиторий для работы с центрами затрат
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, center_id: int) -> Optional[CostCenter]:
        """
        Получение центра затрат по ID
        """
        return self.db.query(CostCenter).filter(CostCenter.id == center_id).first()

    def get_by_code(self, code: str) -> Optional[CostCenter]:
        return self.db.query(CostCenter).filter(CostCenter.code == code).first()

    def get_all(
        self,
        active: Optional[bool] = None,
        selectable_for_reports: Optional[bool] = None
    ) -> List[CostCenter]:
        """
        Получение списка центров затрат
        """
        query = self.db.query(CostCenter)
        if active is not None:
            query = query.filter(CostCenter.active == active)
        if selectable_for_reports is not None:
            query = query.filter(CostCenter.selectable_for_reports == selectable_for_reports)
        return query.order_by(CostCenter.code).all()

    def create(self, **fields) -> CostCenter:
        center = CostCenter(**fields)
        self.db.add(center)
        self.db.flush()
        return center

    def add_sub_center(self, center: CostCenter, **fields) -> SubCenter:
        """
        Добавление подцентра к центру затрат
        """
        sub_center = SubCenter(center_id=center.id, **fields)
        self.db.add(sub_center)
        self.db.flush()
        return sub_center

    def get_sub_center(self, sub_center_id: int) -> Optional[SubCenter]:
        return self.db.query(SubCenter).filter(SubCenter.id == sub_center_id).first()

    def count_dependents(self, center_id: int) -> Dict[str, int]:
        """
        Подсчёт записей, блокирующих удаление центра затрат

        Returns:
            Словарь: тип зависимой записи -> количество
        """
        machine_ids = [
            row.id for row in self.db.query(Machine.id).filter(Machine.cost_center_id == center_id).all()
        ]
        operation_logs = 0
        if machine_ids:
            operation_logs = self.db.query(OperationLog).filter(
                OperationLog.machine_id.in_(machine_ids)
            ).count()

        return {
            "machines": len(machine_ids),
            "operation_logs": operation_logs,
            "personal_reports": self.db.query(PersonalReport).filter(
                PersonalReport.cost_center_id == center_id
            ).count(),
            # Правила распределения других машин, направленные в этот центр
            "cost_rules": self.db.query(SpecificCostRule).filter(
                SpecificCostRule.target_center_id == center_id
            ).count(),
        }

    def delete(self, center: CostCenter) -> None:
        self.db.delete(center)
        self.db.flush()
