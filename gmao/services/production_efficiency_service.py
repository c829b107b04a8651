"""
Сервис расчёта эффективности производства

Эффективность = фактические часы линии / плановые часы × 100.
Плановые часы считаются по дням от начала периода до даты среза включительно:
часы дня недели из недельного плана CP, суббота и воскресенье дают 0,
при отсутствии плана на неделю рабочий день считается по умолчанию (8 ч).
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from gmao.config import get_settings
from gmao.exceptions import BusinessValidationError
from gmao.logger import logger
from gmao.models import CPDailyReport, CPWeeklyPlan, CRDailyReport
from gmao.repositories.production_report_repository import ProductionReportRepository
from gmao.utils.date_utils import add_months, get_monday, iter_days, month_bounds, system_today

settings = get_settings()

# Линия -> (модель отчёта, поле начала, поле конца)
PRODUCTION_LINES = {
    "MILLS": (CPDailyReport, "mills_start", "mills_end"),
    "CRUSHER": (CPDailyReport, "crusher_start", "crusher_end"),
    "WASHING": (CRDailyReport, "washing_start", "washing_end"),
    "TRITURATION": (CRDailyReport, "trituration_start", "trituration_end"),
}
DEFAULT_LINE = "MILLS"

PERIODS = ("day", "week", "month", "year")

TREND_UP = "up"
TREND_DOWN = "down"
TREND_EQUAL = "equal"


@dataclass
class PeriodStats:
    period: str
    start: date
    end: date
    effective_end: date
    actual_hours: float
    planned_hours: float
    efficiency: float


@dataclass
class PeriodComparison:
    current: float
    previous: float
    trend: str
    diff: float
    current_period: Optional[PeriodStats] = None
    previous_period: Optional[PeriodStats] = None


@dataclass
class EfficiencyStats:
    line: str
    cutoff: date
    daily: PeriodComparison
    weekly: PeriodComparison
    monthly: PeriodComparison
    yearly: PeriodComparison


def compute_efficiency(actual_hours: float, planned_hours: float) -> float:
    """
    Эффективность в процентах (0 при нулевом плане)
    """
    if planned_hours <= 0:
        return 0.0
    return actual_hours / planned_hours * 100


def compare(current: float, previous: float) -> PeriodComparison:
    """
    Сравнение эффективности двух периодов

    diff это разница в процентных пунктах без округления
    """
    if current > previous:
        trend = TREND_UP
    elif current < previous:
        trend = TREND_DOWN
    else:
        trend = TREND_EQUAL
    return PeriodComparison(current=current, previous=previous, trend=trend, diff=current - previous)


def period_bounds(period: str, cutoff: date) -> Tuple[date, date]:
    """
    Границы календарного периода, содержащего дату среза
    Неделя с понедельника по воскресенье
    """
    if period == "day":
        return cutoff, cutoff
    if period == "week":
        monday = get_monday(cutoff)
        return monday, monday + timedelta(days=6)
    if period == "month":
        return month_bounds(cutoff.year, cutoff.month)
    if period == "year":
        return date(cutoff.year, 1, 1), date(cutoff.year, 12, 31)
    raise BusinessValidationError(f"Неизвестный период: {period}. Допустимо: {', '.join(PERIODS)}")


def previous_cutoff(period: str, cutoff: date) -> date:
    """
    Эквивалентная дата среза предыдущего периода

    День: вчера. Неделя: минус 7 дней. Месяц: тот же день прошлого месяца,
    не позже его последнего дня. Год: та же дата прошлого года (29 февраля -> 28 февраля).
    """
    if period == "day":
        return cutoff - timedelta(days=1)
    if period == "week":
        return cutoff - timedelta(days=7)
    if period == "month":
        return add_months(cutoff, -1)
    if period == "year":
        return add_months(cutoff, -12)
    raise BusinessValidationError(f"Неизвестный период: {period}. Допустимо: {', '.join(PERIODS)}")


def planned_hours_for_range(
    start: date,
    end: date,
    plans: Dict[date, CPWeeklyPlan],
    default_hours_per_day: float
) -> float:
    """
    Сумма плановых часов по дням от start до end включительно
    """
    total = 0.0
    for day in iter_days(start, end):
        weekday = day.weekday()
        if weekday >= 5:
            continue
        plan = plans.get(get_monday(day))
        if plan is None:
            total += default_hours_per_day
        else:
            total += plan.hours_for_weekday(weekday)
    return total


class ProductionEfficiencyService:
    """
    Сервис расчёта эффективности производственных линий
    Текущая дата берётся только из переданного источника даты
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], date] = system_today,
        default_hours_per_day: Optional[float] = None
    ):
        self.db = db
        self.clock = clock
        self.report_repo = ProductionReportRepository(db)
        self.default_hours_per_day = (
            settings.default_planned_hours_per_day if default_hours_per_day is None else default_hours_per_day
        )

    @staticmethod
    def _resolve_line(line: Optional[str]) -> str:
        line = (line or DEFAULT_LINE).upper()
        if line not in PRODUCTION_LINES:
            raise BusinessValidationError(
                f"Неизвестная производственная линия: {line}. Допустимо: {', '.join(PRODUCTION_LINES)}"
            )
        return line

    def calculate_period(self, line: str, period: str, cutoff: date) -> PeriodStats:
        """
        Фактические и плановые часы линии за период, содержащий дату среза
        Учитываются только дни не позже даты среза
        """
        line = self._resolve_line(line)
        model, start_field, end_field = PRODUCTION_LINES[line]
        start, end = period_bounds(period, cutoff)
        effective_end = min(end, cutoff)

        reports = self.report_repo.get_reports(model, start, effective_end)
        actual = sum(getattr(r, end_field) - getattr(r, start_field) for r in reports)

        plans = self.report_repo.get_plans(get_monday(start), get_monday(effective_end))
        planned = planned_hours_for_range(start, effective_end, plans, self.default_hours_per_day)

        return PeriodStats(
            period=period,
            start=start,
            end=end,
            effective_end=effective_end,
            actual_hours=actual,
            planned_hours=planned,
            efficiency=compute_efficiency(actual, planned)
        )

    def compare_period(self, line: str, period: str, cutoff: date) -> PeriodComparison:
        """
        Сравнение периода с предыдущим эквивалентным периодом
        """
        current = self.calculate_period(line, period, cutoff)
        previous = self.calculate_period(line, period, previous_cutoff(period, cutoff))

        comparison = compare(current.efficiency, previous.efficiency)
        comparison.current_period = current
        comparison.previous_period = previous
        return comparison

    def get_efficiency_stats(self, line: Optional[str] = None, cutoff: Optional[date] = None) -> EfficiencyStats:
        """
        Эффективность линии за день, неделю, месяц и год со сравнением с предыдущими периодами

        Args:
            line: MILLS (по умолчанию), CRUSHER, WASHING или TRITURATION
            cutoff: Дата среза (по умолчанию сегодня)
        """
        line = self._resolve_line(line)
        cutoff = cutoff or self.clock()

        stats = EfficiencyStats(
            line=line,
            cutoff=cutoff,
            daily=self.compare_period(line, "day", cutoff),
            weekly=self.compare_period(line, "week", cutoff),
            monthly=self.compare_period(line, "month", cutoff),
            yearly=self.compare_period(line, "year", cutoff),
        )

        logger.debug(
            "Эффективность производства рассчитана",
            extra={
                "line": line,
                "cutoff": cutoff.isoformat(),
                "daily": stats.daily.current,
                "monthly": stats.monthly.current
            }
        )
        return stats
