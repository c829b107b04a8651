"""
Роутер для работы с центрами затрат и подцентрами
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.database import get_db
from gmao.schemas import (
    CostCenterCreate,
    CostCenterUpdate,
    CostCenterResponse,
    SubCenterCreate,
    SubCenterResponse
)
from gmao.services.cost_center_service import CostCenterService

router = APIRouter(prefix="/api/v1/cost-centers", tags=["cost-centers"])


@router.get("", response_model=List[CostCenterResponse])
async def get_cost_centers(
    active: Optional[bool] = Query(None, description="Фильтр по активности"),
    selectable_for_reports: Optional[bool] = Query(None, description="Только доступные в отчётах"),
    db: Session = Depends(get_db)
):
    centers = CostCenterService(db).get_centers(active=active, selectable_for_reports=selectable_for_reports)
    return [CostCenterResponse.model_validate(c) for c in centers]


@router.get("/{center_id}", response_model=CostCenterResponse)
async def get_cost_center(center_id: int, db: Session = Depends(get_db)):
    center = CostCenterService(db).get_center(center_id)
    if not center:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Центр затрат с ID {center_id} не найден"
        )
    return CostCenterResponse.model_validate(center)


@router.post("", response_model=CostCenterResponse, status_code=status.HTTP_201_CREATED)
async def create_cost_center(center: CostCenterCreate, db: Session = Depends(get_db)):
    return CostCenterResponse.model_validate(CostCenterService(db).create_center(center))


@router.put("/{center_id}", response_model=CostCenterResponse)
async def update_cost_center(center_id: int, center: CostCenterUpdate, db: Session = Depends(get_db)):
    return CostCenterResponse.model_validate(CostCenterService(db).update_center(center_id, center))


@router.delete("/{center_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cost_center(center_id: int, db: Session = Depends(get_db)):
    """
    Удаление центра затрат

    409, если к центру привязаны машины, записи операций или личные отчёты
    """
    CostCenterService(db).delete_center(center_id)


@router.post("/{center_id}/sub-centers", response_model=SubCenterResponse, status_code=status.HTTP_201_CREATED)
async def create_sub_center(center_id: int, sub_center: SubCenterCreate, db: Session = Depends(get_db)):
    return SubCenterResponse.model_validate(CostCenterService(db).add_sub_center(center_id, sub_center))
