"""
Роутер производственных отчётов CP/CR, недельных планов и эффективности
"""
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from gmao.database import get_db
from gmao.schemas import (
    CPDailyReportCreate,
    CPDailyReportResponse,
    CRDailyReportCreate,
    CRDailyReportResponse,
    CPWeeklyPlanUpsert,
    CPWeeklyPlanResponse,
    EfficiencyStatsResponse,
    PeriodComparisonResponse
)
from gmao.services.production_efficiency_service import PERIODS, ProductionEfficiencyService
from gmao.services.production_report_service import ProductionReportService

router = APIRouter(prefix="/api/v1/production", tags=["production"])


@router.post("/cp-reports", response_model=CPDailyReportResponse, status_code=status.HTTP_201_CREATED)
async def create_cp_report(report: CPDailyReportCreate, db: Session = Depends(get_db)):
    return CPDailyReportResponse.model_validate(ProductionReportService(db).create_cp_report(report))


@router.get("/cp-reports", response_model=List[CPDailyReportResponse])
async def get_cp_reports(
    date_from: date = Query(..., description="Дата начала (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Дата окончания (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    return [CPDailyReportResponse.model_validate(r) for r in ProductionReportService(db).get_cp_reports(date_from, date_to)]


@router.post("/cr-reports", response_model=CRDailyReportResponse, status_code=status.HTTP_201_CREATED)
async def create_cr_report(report: CRDailyReportCreate, db: Session = Depends(get_db)):
    return CRDailyReportResponse.model_validate(ProductionReportService(db).create_cr_report(report))


@router.get("/cr-reports", response_model=List[CRDailyReportResponse])
async def get_cr_reports(
    date_from: date = Query(..., description="Дата начала (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Дата окончания (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    return [CRDailyReportResponse.model_validate(r) for r in ProductionReportService(db).get_cr_reports(date_from, date_to)]


@router.put("/plans", response_model=CPWeeklyPlanResponse)
async def upsert_weekly_plan(plan: CPWeeklyPlanUpsert, db: Session = Depends(get_db)):
    """
    Создание или замена недельного плана CP (дата обязана быть понедельником)
    """
    return CPWeeklyPlanResponse.model_validate(ProductionReportService(db).upsert_plan(plan))


@router.get("/plans/{monday_date}", response_model=CPWeeklyPlanResponse)
async def get_weekly_plan(monday_date: date, db: Session = Depends(get_db)):
    plan = ProductionReportService(db).get_plan(monday_date)
    if not plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Недельный план на {monday_date.isoformat()} не найден"
        )
    return CPWeeklyPlanResponse.model_validate(plan)


@router.get("/efficiency", response_model=EfficiencyStatsResponse)
async def get_efficiency(
    line: Optional[str] = Query(None, description="Линия: MILLS, CRUSHER, WASHING, TRITURATION"),
    cutoff: Optional[date] = Query(None, description="Дата среза (по умолчанию сегодня)"),
    db: Session = Depends(get_db)
):
    """
    Эффективность линии за день, неделю, месяц и год со сравнением с предыдущими периодами
    """
    stats = ProductionEfficiencyService(db).get_efficiency_stats(line=line, cutoff=cutoff)
    return EfficiencyStatsResponse.model_validate(stats)


@router.get("/efficiency/{period}", response_model=PeriodComparisonResponse)
async def get_period_efficiency(
    period: str,
    line: Optional[str] = Query(None, description="Линия: MILLS, CRUSHER, WASHING, TRITURATION"),
    cutoff: Optional[date] = Query(None, description="Дата среза (по умолчанию сегодня)"),
    db: Session = Depends(get_db)
):
    if period not in PERIODS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Неизвестный период: {period}. Допустимо: {', '.join(PERIODS)}"
        )
    service = ProductionEfficiencyService(db)
    comparison = service.compare_period(line or "MILLS", period, cutoff or service.clock())
    return PeriodComparisonResponse.model_validate(comparison)
