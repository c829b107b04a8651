"""
Сервис для работы с правилами фиксированного распределения затрат
"""
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.exceptions import BusinessValidationError, EntityNotFoundError
from gmao.logger import logger
from gmao.models import SpecificCostRule
from gmao.repositories.cost_center_repository import CostCenterRepository
from gmao.repositories.cost_rule_repository import CostRuleRepository
from gmao.repositories.machine_repository import MachineRepository
from gmao.schemas import SpecificCostRuleCreate
from gmao.validators import validate_rule_percentage


class CostRuleService:
    """
    Сервис для работы с правилами распределения затрат
    Сумма процентов правил одной машины не превышает 100
    """

    def __init__(self, db: Session):
        self.db = db
        self.rule_repo = CostRuleRepository(db)
        self.machine_repo = MachineRepository(db)
        self.center_repo = CostCenterRepository(db)

    def get_rules(self, machine_origin_id: Optional[int] = None) -> List[SpecificCostRule]:
        return self.rule_repo.get_all(machine_origin_id=machine_origin_id)

    def create_rule(self, data: SpecificCostRuleCreate) -> SpecificCostRule:
        """
        Создание правила распределения

        Raises:
            EntityNotFoundError: Исходная машина, целевой центр или целевая машина не найдены
            BusinessValidationError: Процент вне (0, 100] или сумма процентов машины превысит 100
        """
        if not self.machine_repo.get_by_id(data.machine_origin_id):
            raise EntityNotFoundError("Машина", data.machine_origin_id)
        if not self.center_repo.get_by_id(data.target_center_id):
            raise EntityNotFoundError("Центр затрат", data.target_center_id)
        if data.target_machine_id is not None:
            if not self.machine_repo.get_by_id(data.target_machine_id):
                raise EntityNotFoundError("Машина", data.target_machine_id)
            if data.target_machine_id == data.machine_origin_id:
                raise BusinessValidationError("Машина не может распределять затраты сама на себя")

        existing_total = self.rule_repo.sum_percentage(data.machine_origin_id)
        validate_rule_percentage(existing_total, data.percentage)

        rule = self.rule_repo.create(**data.model_dump())
        self.db.commit()
        self.db.refresh(rule)

        logger.info(
            "Правило распределения создано",
            extra={
                "rule_id": rule.id,
                "machine_origin_id": rule.machine_origin_id,
                "percentage": rule.percentage,
                "total_percentage": existing_total + rule.percentage
            }
        )
        return rule

    def delete_rule(self, rule_id: int) -> None:
        rule = self.rule_repo.get_by_id(rule_id)
        if not rule:
            raise EntityNotFoundError("Правило распределения", rule_id)
        self.rule_repo.delete(rule)
        self.db.commit()
        logger.info("Правило распределения удалено", extra={"rule_id": rule_id})
