"""
Роутер правил фиксированного распределения затрат
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.database import get_db
from gmao.schemas import SpecificCostRuleCreate, SpecificCostRuleResponse
from gmao.services.cost_rule_service import CostRuleService

router = APIRouter(prefix="/api/v1/cost-rules", tags=["cost-rules"])


@router.get("", response_model=List[SpecificCostRuleResponse])
async def get_cost_rules(
    machine_origin_id: Optional[int] = Query(None, description="Фильтр по исходной машине"),
    db: Session = Depends(get_db)
):
    return [SpecificCostRuleResponse.model_validate(r) for r in CostRuleService(db).get_rules(machine_origin_id)]


@router.post("", response_model=SpecificCostRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_cost_rule(rule: SpecificCostRuleCreate, db: Session = Depends(get_db)):
    """
    Создание правила (сумма процентов машины не более 100)
    """
    return SpecificCostRuleResponse.model_validate(CostRuleService(db).create_rule(rule))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cost_rule(rule_id: int, db: Session = Depends(get_db)):
    CostRuleService(db).delete_rule(rule_id)
