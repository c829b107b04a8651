"""
Роутер для работы с машинами и плановым обслуживанием
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.database import get_db
from gmao.schemas import (
    MachineCreate,
    MachineUpdate,
    MachineResponse,
    MachineListResponse,
    MaintenanceDefinitionCreate,
    MaintenanceDefinitionUpdate,
    MaintenanceDefinitionResponse,
    MaintenanceStatusResponse,
    PendingMaintenanceResponse
)
from gmao.services.machine_service import MachineService

router = APIRouter(prefix="/api/v1/machines", tags=["machines"])


@router.get("/maintenance/pending", response_model=List[PendingMaintenanceResponse])
async def get_pending_maintenance(db: Session = Depends(get_db)):
    """
    Предстоящие и просроченные обслуживания всех активных машин
    """
    pending = MachineService(db).get_pending_maintenance()
    return [PendingMaintenanceResponse.model_validate(p) for p in pending]


@router.get("", response_model=MachineListResponse)
async def get_machines(
    skip: int = Query(0, ge=0, description="Количество пропущенных записей"),
    limit: int = Query(100, ge=1, le=1000, description="Максимальное количество записей"),
    cost_center_id: Optional[int] = Query(None, description="Фильтр по центру затрат"),
    active: Optional[bool] = Query(None, description="Фильтр по активности"),
    selectable_for_reports: Optional[bool] = Query(None, description="Только доступные в отчётах"),
    db: Session = Depends(get_db)
):
    """
    Получение списка машин
    """
    machines, total = MachineService(db).get_machines(
        skip=skip,
        limit=limit,
        cost_center_id=cost_center_id,
        active=active,
        selectable_for_reports=selectable_for_reports
    )
    return MachineListResponse(
        total=total,
        items=[MachineResponse.model_validate(m) for m in machines]
    )


@router.get("/{machine_id}", response_model=MachineResponse)
async def get_machine(machine_id: int, db: Session = Depends(get_db)):
    machine = MachineService(db).get_machine(machine_id)
    if not machine:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Машина с ID {machine_id} не найдена"
        )
    return MachineResponse.model_validate(machine)


@router.post("", response_model=MachineResponse, status_code=status.HTTP_201_CREATED)
async def create_machine(machine: MachineCreate, db: Session = Depends(get_db)):
    """
    Создание машины вместе с определениями планового обслуживания
    """
    return MachineResponse.model_validate(MachineService(db).create_machine(machine))


@router.put("/{machine_id}", response_model=MachineResponse)
async def update_machine(machine_id: int, machine: MachineUpdate, db: Session = Depends(get_db)):
    return MachineResponse.model_validate(MachineService(db).update_machine(machine_id, machine))


@router.post("/{machine_id}/deactivate", response_model=MachineResponse)
async def deactivate_machine(machine_id: int, db: Session = Depends(get_db)):
    return MachineResponse.model_validate(MachineService(db).deactivate_machine(machine_id))


@router.delete("/{machine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_machine(machine_id: int, db: Session = Depends(get_db)):
    """
    Удаление машины

    409, если по машине есть записи операций или личные отчёты
    """
    MachineService(db).delete_machine(machine_id)


@router.get("/{machine_id}/status", response_model=List[MaintenanceStatusResponse])
async def get_machine_status(machine_id: int, db: Session = Depends(get_db)):
    """
    Статус всех плановых обслуживаний машины
    """
    return [MaintenanceStatusResponse.model_validate(i) for i in MachineService(db).get_machine_status(machine_id)]


@router.post(
    "/{machine_id}/definitions",
    response_model=MaintenanceDefinitionResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_definition(machine_id: int, definition: MaintenanceDefinitionCreate, db: Session = Depends(get_db)):
    return MaintenanceDefinitionResponse.model_validate(MachineService(db).add_definition(machine_id, definition))


@router.put("/definitions/{definition_id}", response_model=MaintenanceDefinitionResponse)
async def update_definition(
    definition_id: int,
    definition: MaintenanceDefinitionUpdate,
    db: Session = Depends(get_db)
):
    return MaintenanceDefinitionResponse.model_validate(
        MachineService(db).update_definition(definition_id, definition)
    )


@router.delete("/definitions/{definition_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_definition(definition_id: int, db: Session = Depends(get_db)):
    MachineService(db).delete_definition(definition_id)
