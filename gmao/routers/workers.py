"""
Роутер для работы с работниками
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.config import get_settings
from gmao.database import get_db
from gmao.middleware.rate_limit import limiter
from gmao.schemas import (
    WorkerCreate,
    WorkerUpdate,
    WorkerResponse,
    WorkerLoginRequest,
    WorkerLoginResponse
)
from gmao.services.worker_service import WorkerService

router = APIRouter(prefix="/api/v1/workers", tags=["workers"])

settings = get_settings()


@router.get("", response_model=List[WorkerResponse])
async def get_workers(
    skip: int = Query(0, ge=0, description="Количество пропущенных записей"),
    limit: int = Query(100, ge=1, le=1000, description="Максимальное количество записей"),
    active: Optional[bool] = Query(None, description="Фильтр по активности"),
    role: Optional[str] = Query(None, description="Фильтр по роли"),
    db: Session = Depends(get_db)
):
    """
    Получение списка работников
    """
    workers, _ = WorkerService(db).get_workers(skip=skip, limit=limit, active=active, role=role)
    return [WorkerResponse.model_validate(w) for w in workers]


@router.get("/{worker_id}", response_model=WorkerResponse)
async def get_worker(worker_id: int, db: Session = Depends(get_db)):
    worker = WorkerService(db).get_worker(worker_id)
    if not worker:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Работник с ID {worker_id} не найден"
        )
    return WorkerResponse.model_validate(worker)


@router.post("", response_model=WorkerResponse, status_code=status.HTTP_201_CREATED)
async def create_worker(worker: WorkerCreate, db: Session = Depends(get_db)):
    """
    Создание работника
    """
    return WorkerResponse.model_validate(WorkerService(db).create_worker(worker))


@router.put("/{worker_id}", response_model=WorkerResponse)
async def update_worker(worker_id: int, worker: WorkerUpdate, db: Session = Depends(get_db)):
    return WorkerResponse.model_validate(WorkerService(db).update_worker(worker_id, worker))


@router.delete("/{worker_id}", response_model=WorkerResponse)
async def deactivate_worker(worker_id: int, db: Session = Depends(get_db)):
    """
    Деактивация работника (записи не удаляются)
    """
    return WorkerResponse.model_validate(WorkerService(db).deactivate_worker(worker_id))


@router.post("/login", response_model=WorkerLoginResponse)
@limiter.limit(settings.rate_limit_login)
async def login_worker(
    request: Request,
    credentials: WorkerLoginRequest,
    db: Session = Depends(get_db)
):
    """
    Вход работника по PIN (первые 4 символа DNI)
    """
    worker = WorkerService(db).authenticate(credentials.worker_id, credentials.pin)
    if not worker:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверный работник или PIN"
        )
    return WorkerLoginResponse.model_validate(worker)
