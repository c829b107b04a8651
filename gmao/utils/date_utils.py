"""
Утилиты для работы с датами
"""
import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Tuple
from fastapi import HTTPException


def get_monday(day: date) -> date:
    """
    Дата понедельника недели, которой принадлежит день
    """
    return day - timedelta(days=day.weekday())


def last_day_of_month(year: int, month: int) -> int:
    """
    Последний день месяца (28..31)
    """
    return calendar.monthrange(year, month)[1]


def add_months(day: date, months: int) -> date:
    """
    Календарное прибавление месяцев с прижатием дня к концу месяца

    Examples:
        >>> add_months(date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, last_day_of_month(year, month)))


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """
    Первый и последний день месяца
    """
    return date(year, month, 1), date(year, month, last_day_of_month(year, month))


def iter_days(start: date, end: date) -> Iterator[date]:
    """
    Перебор календарных дней от start до end включительно
    """
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def parse_month(value: str) -> Tuple[int, int]:
    """
    Парсинг месяца отчёта в формате YYYY-MM

    Raises:
        HTTPException: Если формат месяца неверный
    """
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Неверный формат месяца: {value}. Используйте YYYY-MM"
        )
    return parsed.year, parsed.month


DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


def _parse_bound(value: str, name: str, end_of_day: bool) -> datetime:
    for fmt in DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        # Дата без времени для верхней границы включает весь день
        if end_of_day and fmt == "%Y-%m-%d":
            parsed = parsed.replace(hour=23, minute=59, second=59)
        return parsed
    raise HTTPException(
        status_code=400,
        detail=f"Неверный формат {name}: {value}. Используйте YYYY-MM-DD или YYYY-MM-DD HH:MM:SS"
    )


def parse_date_range(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Фильтр журнала операций по датам (YYYY-MM-DD или YYYY-MM-DD HH:MM:SS)

    Raises:
        HTTPException: 400 при неверном формате
    """
    parsed_from = _parse_bound(date_from, "date_from", end_of_day=False) if date_from else None
    parsed_to = _parse_bound(date_to, "date_to", end_of_day=True) if date_to else None
    return parsed_from, parsed_to


def system_today() -> date:
    """
    Источник текущей даты по умолчанию
    Сервисы принимают источник даты параметром, чтобы тесты подставляли фиксированную дату
    """
    return date.today()
