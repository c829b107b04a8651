"""
Роутер для работы с записями операций
"""
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from gmao.database import get_db
from gmao.schemas import (
    DailyAuditResponse,
    OperationLogCreate,
    OperationLogUpdate,
    OperationLogResponse,
    OperationLogListResponse,
    PersonalReportResponse
)
from gmao.services.operation_log_service import OperationLogService
from gmao.utils.date_utils import parse_date_range

router = APIRouter(prefix="/api/v1/operation-logs", tags=["operation-logs"])


@router.get("/audit", response_model=DailyAuditResponse)
async def get_daily_audit(
    day: date = Query(..., description="День (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    """
    Все записи операций и личные отчёты за день
    """
    audit = OperationLogService(db).get_daily_audit(day)
    return DailyAuditResponse(
        date=audit["date"],
        operation_logs=[OperationLogResponse.model_validate(log) for log in audit["operation_logs"]],
        personal_reports=[PersonalReportResponse.model_validate(r) for r in audit["personal_reports"]]
    )


@router.get("", response_model=OperationLogListResponse)
async def get_operation_logs(
    skip: int = Query(0, ge=0, description="Количество пропущенных записей"),
    limit: int = Query(100, ge=1, le=1000, description="Максимальное количество записей"),
    machine_id: Optional[int] = Query(None, description="Фильтр по машине"),
    log_type: Optional[str] = Query(None, description="Фильтр по типу"),
    date_from: Optional[str] = Query(None, description="Дата начала (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="Дата окончания (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    """
    Получение списка записей операций с фильтрацией
    """
    parsed_from, parsed_to = parse_date_range(date_from, date_to)
    logs, total = OperationLogService(db).get_logs(
        skip=skip,
        limit=limit,
        machine_id=machine_id,
        log_type=log_type,
        date_from=parsed_from,
        date_to=parsed_to
    )
    return OperationLogListResponse(
        total=total,
        items=[OperationLogResponse.model_validate(log) for log in logs]
    )


@router.get("/{log_id}", response_model=OperationLogResponse)
async def get_operation_log(log_id: int, db: Session = Depends(get_db)):
    log = OperationLogService(db).get_log(log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Запись операции с ID {log_id} не найдена"
        )
    return OperationLogResponse.model_validate(log)


@router.post("", response_model=OperationLogResponse, status_code=status.HTTP_201_CREATED)
async def create_operation_log(log: OperationLogCreate, db: Session = Depends(get_db)):
    """
    Создание записи операции

    Обновляет моточасы машины, переносит плановое обслуживание (SCHEDULED)
    и проверяет пороги уведомлений в одной транзакции
    """
    return OperationLogResponse.model_validate(OperationLogService(db).create_log(log))


@router.put("/{log_id}", response_model=OperationLogResponse)
async def update_operation_log(log_id: int, log: OperationLogUpdate, db: Session = Depends(get_db)):
    """
    Административная правка записи (моточасы машины не меняются)
    """
    return OperationLogResponse.model_validate(OperationLogService(db).update_log(log_id, log))
