"""
Роутер отчётов о распределении топлива, затрат на персонал и часов работников
"""
from io import BytesIO
from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List

from gmao.database import get_db
from gmao.logger import logger
from gmao.schemas import (
    DistributionReportResponse,
    LaborDistributionRequest,
    ReportEmailRequest,
    ReportEmailResponse,
    WorkerHoursDistributionResponse
)
from gmao.services.cost_distribution_service import CostDistributionService
from gmao.services.cost_table_processor import CostTableProcessor
from gmao.services.report_export_service import (
    build_distribution_workbook,
    build_worker_hours_workbook,
    export_filename,
    send_distribution_report
)
from gmao.utils.date_utils import parse_month

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(content: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        }
    )


@router.get("/fuel-distribution", response_model=DistributionReportResponse)
async def get_fuel_distribution(
    month: str = Query(..., description="Месяц (YYYY-MM)"),
    db: Session = Depends(get_db)
):
    """
    Распределение заправленного топлива по центрам затрат и машинам
    """
    year, month_number = parse_month(month)
    result = CostDistributionService(db).distribute_fuel(year, month_number)
    return DistributionReportResponse.model_validate(result)


@router.get("/fuel-distribution/export")
async def export_fuel_distribution(
    month: str = Query(..., description="Месяц (YYYY-MM)"),
    db: Session = Depends(get_db)
):
    year, month_number = parse_month(month)
    result = CostDistributionService(db).distribute_fuel(year, month_number)
    return _xlsx_response(build_distribution_workbook(result), export_filename(result))


@router.post("/fuel-distribution/email", response_model=ReportEmailResponse)
async def email_fuel_distribution(request: ReportEmailRequest, db: Session = Depends(get_db)):
    """
    Отправка отчёта о распределении топлива по email (вложение Excel)
    """
    result = CostDistributionService(db).distribute_fuel(request.year, request.month)
    outcome = send_distribution_report(result, request.to, subject=request.subject)
    return ReportEmailResponse(success=outcome["success"], error=outcome.get("error"))


@router.post("/labor-distribution", response_model=DistributionReportResponse)
async def labor_distribution(request: LaborDistributionRequest, db: Session = Depends(get_db)):
    """
    Распределение затрат на персонал по переданной таблице (имя, сумма)
    """
    result = CostDistributionService(db).distribute_labor(request.year, request.month, request.entries)
    return DistributionReportResponse.model_validate(result)


@router.post("/labor-distribution/upload", response_model=DistributionReportResponse)
async def labor_distribution_upload(
    month: str = Query(..., description="Месяц (YYYY-MM)"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    """
    Распределение затрат на персонал по загруженному файлу XLSX или CSV
    """
    year, month_number = parse_month(month)
    content = await file.read()
    logger.info(
        "Загружена таблица затрат на персонал",
        extra={"file_name": file.filename, "file_size": len(content), "month": month}
    )

    entries = CostTableProcessor().process_file(content, file.filename)
    result = CostDistributionService(db).distribute_labor(year, month_number, entries)
    return DistributionReportResponse.model_validate(result)


@router.get("/worker-hours", response_model=List[WorkerHoursDistributionResponse])
async def get_worker_hours_distribution(
    month: str = Query(..., description="Месяц (YYYY-MM)"),
    db: Session = Depends(get_db)
):
    """
    Распределение часов работников по центрам и машинам (доли от часов работника)
    """
    year, month_number = parse_month(month)
    items = CostDistributionService(db).get_worker_hours_distribution(year, month_number)
    return [WorkerHoursDistributionResponse.model_validate(i) for i in items]


@router.get("/worker-hours/export")
async def export_worker_hours_distribution(
    month: str = Query(..., description="Месяц (YYYY-MM)"),
    db: Session = Depends(get_db)
):
    year, month_number = parse_month(month)
    items = CostDistributionService(db).get_worker_hours_distribution(year, month_number)
    filename = f"worker_hours_{year}_{month_number:02d}.xlsx"
    return _xlsx_response(build_worker_hours_workbook(items, year, month_number), filename)
