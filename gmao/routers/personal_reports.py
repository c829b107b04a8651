"""
Роутер для работы с личными отчётами работников
"""
from datetime import date
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.database import get_db
from gmao.schemas import PersonalReportCreate, PersonalReportResponse
from gmao.services.personal_report_service import PersonalReportService

router = APIRouter(prefix="/api/v1/personal-reports", tags=["personal-reports"])


@router.get("", response_model=List[PersonalReportResponse])
async def get_personal_reports(
    date_from: date = Query(..., description="Дата начала (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Дата окончания (YYYY-MM-DD)"),
    worker_id: Optional[int] = Query(None, description="Фильтр по работнику"),
    machine_id: Optional[int] = Query(None, description="Фильтр по машине"),
    db: Session = Depends(get_db)
):
    reports = PersonalReportService(db).get_reports(date_from, date_to, worker_id=worker_id, machine_id=machine_id)
    return [PersonalReportResponse.model_validate(r) for r in reports]


@router.post("", response_model=PersonalReportResponse, status_code=status.HTTP_201_CREATED)
async def create_personal_report(report: PersonalReportCreate, db: Session = Depends(get_db)):
    return PersonalReportResponse.model_validate(PersonalReportService(db).create_report(report))
