"""
Экспорт отчётов о распределении в Excel и отправка по email
"""
import base64
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet

from gmao.logger import logger
from gmao.services.cost_distribution_service import DistributionResult, WorkerHoursDistribution
from gmao.services.notification_service import EmailChannel

KIND_TITLES = {
    "fuel": "Распределение топлива",
    "labor": "Распределение затрат на персонал",
}

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")


def _write_header(ws: Worksheet, headers: List[str], row: int = 1) -> None:
    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col_num, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGNMENT


def _autofit_columns(ws: Worksheet) -> None:
    """
    Автоматическая ширина колонок (не более 50 символов)
    """
    for col in ws.columns:
        max_length = 0
        col_letter = col[0].column_letter
        for cell in col:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max_length + 2, 50)


def _to_bytes(wb: Workbook) -> bytes:
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def export_filename(result: DistributionResult) -> str:
    return f"distribution_{result.kind}_{result.year}_{result.month:02d}.xlsx"


def build_distribution_workbook(result: DistributionResult) -> bytes:
    """
    Книга Excel с распределением: лист строк по (центр, машина)
    и, для затрат на персонал, лист несопоставленных имён

    Суммы округляются только здесь, при выводе
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Распределение"

    unit = "Литры" if result.kind == "fuel" else "Сумма"
    _write_header(ws, ["Код центра", "Центр затрат", "Код машины", "Машина", unit])

    row_num = 2
    for row in result.rows:
        ws.cell(row=row_num, column=1, value=row.center_code)
        ws.cell(row=row_num, column=2, value=row.center_name)
        ws.cell(row=row_num, column=3, value=row.machine_code)
        ws.cell(row=row_num, column=4, value=row.machine_name)
        ws.cell(row=row_num, column=5, value=round(row.amount, 2))
        row_num += 1

    totals = [
        ("Итого распределено", result.total_distributed),
        ("Не распределено", result.undistributed),
        ("Итого исходная сумма", result.total_source),
    ]
    row_num += 1
    for label, value in totals:
        ws.cell(row=row_num, column=4, value=label).font = Font(bold=True)
        ws.cell(row=row_num, column=5, value=round(value, 2)).font = Font(bold=True)
        row_num += 1

    _autofit_columns(ws)

    if result.unmatched:
        ws_unmatched = wb.create_sheet("Без соответствия")
        _write_header(ws_unmatched, ["Имя в таблице", "Сумма", "Похожий работник", "Схожесть"])
        for row_index, entry in enumerate(result.unmatched, 2):
            ws_unmatched.cell(row=row_index, column=1, value=entry.name)
            ws_unmatched.cell(row=row_index, column=2, value=round(entry.amount, 2))
            ws_unmatched.cell(row=row_index, column=3, value=entry.suggestion or "")
            ws_unmatched.cell(row=row_index, column=4, value=round(entry.score, 1) if entry.score is not None else "")
        _autofit_columns(ws_unmatched)

    logger.info(
        "Экспорт распределения в Excel",
        extra={"kind": result.kind, "year": result.year, "month": result.month, "rows_count": len(result.rows)}
    )
    return _to_bytes(wb)


def build_worker_hours_workbook(items: List[WorkerHoursDistribution], year: int, month: int) -> bytes:
    """
    Книга Excel с распределением часов работников по центрам и машинам
    """
    wb = Workbook()
    ws = wb.active
    ws.title = f"Часы {year}-{month:02d}"

    _write_header(ws, ["Работник", "Код центра", "Код машины", "Часы", "Доля"])

    row_num = 2
    for item in items:
        for line in item.lines:
            ws.cell(row=row_num, column=1, value=item.worker_name)
            ws.cell(row=row_num, column=2, value=line.center_code)
            ws.cell(row=row_num, column=3, value=line.machine_code)
            ws.cell(row=row_num, column=4, value=line.hours)
            ws.cell(row=row_num, column=5, value=line.ratio)
            row_num += 1
        ws.cell(row=row_num, column=1, value=f"Итого {item.worker_name}").font = Font(bold=True)
        ws.cell(row=row_num, column=4, value=item.total_hours).font = Font(bold=True)
        row_num += 1

    _autofit_columns(ws)
    return _to_bytes(wb)


def send_distribution_report(
    result: DistributionResult,
    to: Sequence[str],
    subject: Optional[str] = None,
    channel: Optional[EmailChannel] = None
) -> Dict[str, Any]:
    """
    Отправка отчёта о распределении по email вложением Excel

    Returns:
        {"success": bool, "error": Optional[str]}
    """
    channel = channel or EmailChannel()
    title = KIND_TITLES.get(result.kind, "Распределение")
    subject = subject or f"{title} {result.month:02d}/{result.year}"

    html = (
        f"<h3>{title} за {result.month:02d}/{result.year}</h3>"
        f"<p>Итого распределено: {result.total_distributed:.2f}<br>"
        f"Не распределено: {result.undistributed:.2f}</p>"
        f"<p>Подробности во вложении.</p>"
    )
    attachment = base64.b64encode(build_distribution_workbook(result)).decode("ascii")

    outcome = channel.send_email(
        to,
        subject,
        html,
        attachment_base64=attachment,
        attachment_name=export_filename(result)
    )
    if not outcome.get("success"):
        logger.warning(
            "Отчёт о распределении не отправлен",
            extra={"kind": result.kind, "recipients": list(to), "error": outcome.get("error")}
        )
    return outcome
