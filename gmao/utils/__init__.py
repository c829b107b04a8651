"""
Утилиты
"""
from .date_utils import (
    add_months,
    get_monday,
    iter_days,
    last_day_of_month,
    month_bounds,
    parse_date_range,
    parse_month,
    system_today
)

__all__ = [
    "add_months",
    "get_monday",
    "iter_days",
    "last_day_of_month",
    "month_bounds",
    "parse_date_range",
    "parse_month",
    "system_today",
]
