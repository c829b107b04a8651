"""
Репозиторий для работы с правилами распределения затрат
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, Optional, List
from gmao.models import SpecificCostRule


class CostRuleRepository:
    """
    Репозиторий для работы с правилами распределения затрат
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, rule_id: int) -> Optional[SpecificCostRule]:
        return self.db.query(SpecificCostRule).filter(SpecificCostRule.id == rule_id).first()

    def get_all(self, machine_origin_id: Optional[int] = None) -> List[SpecificCostRule]:
        query = self.db.query(SpecificCostRule)
        if machine_origin_id is not None:
            query = query.filter(SpecificCostRule.machine_origin_id == machine_origin_id)
        return query.order_by(SpecificCostRule.machine_origin_id, SpecificCostRule.id).all()

    def get_grouped_by_origin(self) -> Dict[int, List[SpecificCostRule]]:
        """
        Все правила, сгруппированные по исходной машине
        """
        grouped: Dict[int, List[SpecificCostRule]] = {}
        for rule in self.get_all():
            grouped.setdefault(rule.machine_origin_id, []).append(rule)
        return grouped

    def sum_percentage(self, machine_origin_id: int) -> float:
        """
        Сумма процентов существующих правил машины
        """
        total = self.db.query(func.sum(SpecificCostRule.percentage)).filter(
            SpecificCostRule.machine_origin_id == machine_origin_id
        ).scalar()
        return float(total or 0)

    def create(self, **fields) -> SpecificCostRule:
        rule = SpecificCostRule(**fields)
        self.db.add(rule)
        self.db.flush()
        return rule

    def delete(self, rule: SpecificCostRule) -> None:
        self.db.delete(rule)
        self.db.flush()
