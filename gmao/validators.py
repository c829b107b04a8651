"""
Валидаторы бизнес-правил
Все проверки выполняются до записи в хранилище и сообщают ошибку человеку понятным текстом
"""
from datetime import date
from typing import Dict, Optional, Tuple

from gmao.exceptions import BusinessValidationError


MAINTENANCE_MODES = ("HOURS", "DATE")
WORKER_ROLES = ("admin", "worker", "cp", "cr", "reparador", "prevencion")
PRODUCTION_FIELDS = ("MACHACADORA", "MOLINOS", "LAVADO", "TRITURACION")

# Погрешность сравнения процентов (сумма 33.3 + 33.3 + 33.4 не должна отклоняться)
PERCENTAGE_TOLERANCE = 1e-9


def validate_hours_reading(
    current_hours: float,
    new_hours: Optional[float],
    requires_hours: bool = True
) -> None:
    """
    Проверка показания счётчика моточасов

    Args:
        current_hours: Текущие моточасы машины
        new_hours: Новое показание (None если не передано)
        requires_hours: Машина требует показание при каждой операции

    Raises:
        BusinessValidationError: Если показание отсутствует, отрицательное или меньше текущего
    """
    if new_hours is None:
        if requires_hours:
            raise BusinessValidationError("Для этой машины необходимо указать показание моточасов")
        return

    if new_hours < 0:
        raise BusinessValidationError("Показание моточасов не может быть отрицательным")

    if new_hours < (current_hours or 0):
        raise BusinessValidationError(
            f"Показание моточасов ({new_hours:g}) меньше текущего значения машины ({current_hours:g})"
        )


def validate_expense_flags(admin_expenses: bool, transport_expenses: bool) -> None:
    """
    Административные и транспортные расходы взаимоисключающие
    """
    if admin_expenses and transport_expenses:
        raise BusinessValidationError(
            "Машина не может одновременно относиться к административным и транспортным расходам"
        )


def validate_maintenance_definition(
    maintenance_type: str,
    interval_hours: Optional[float] = None,
    warning_hours: Optional[float] = None,
    interval_months: Optional[int] = None,
    next_date: Optional[date] = None
) -> None:
    """
    Проверка согласованности режима планового обслуживания

    HOURS требует интервал и порог предупреждения в моточасах,
    DATE требует интервал в месяцах и дату следующего обслуживания
    """
    if maintenance_type not in MAINTENANCE_MODES:
        raise BusinessValidationError(
            f"Неизвестный режим обслуживания: {maintenance_type}. Допустимо: {', '.join(MAINTENANCE_MODES)}"
        )

    if maintenance_type == "HOURS":
        if interval_hours is None or warning_hours is None:
            raise BusinessValidationError(
                "Для обслуживания по моточасам необходимо указать интервал и порог предупреждения"
            )
        if warning_hours < 0:
            raise BusinessValidationError("Порог предупреждения не может быть отрицательным")
    else:
        if interval_months is None or next_date is None:
            raise BusinessValidationError(
                "Для обслуживания по дате необходимо указать интервал в месяцах и дату следующего обслуживания"
            )


def validate_counter_pairs(counters: Dict[str, Tuple[float, float]]) -> None:
    """
    Проверка пар счётчиков производственного отчёта: конец не меньше начала

    Args:
        counters: Название линии -> (начало, конец)
    """
    for line_name, (start, end) in counters.items():
        if end < start:
            raise BusinessValidationError(
                f"Счётчик «{line_name}»: значение на конец ({end:g}) меньше значения на начало ({start:g})"
            )


def validate_monday(day: date) -> None:
    """
    Недельный план привязывается только к понедельнику
    """
    if day.weekday() != 0:
        raise BusinessValidationError(
            f"Дата недельного плана должна быть понедельником, получено: {day.isoformat()}"
        )


def validate_rule_percentage(existing_total: float, percentage: float) -> None:
    """
    Проверка лимита процентов правил распределения одной машины

    Args:
        existing_total: Сумма процентов уже существующих правил машины
        percentage: Процент нового правила

    Raises:
        BusinessValidationError: Если процент вне (0, 100] или сумма превысит 100
    """
    if percentage <= 0 or percentage > 100:
        raise BusinessValidationError("Процент правила должен быть больше 0 и не больше 100")

    if existing_total + percentage > 100 + PERCENTAGE_TOLERANCE:
        raise BusinessValidationError(
            f"Сумма процентов правил машины превысит 100% "
            f"(уже распределено {existing_total:g}%, добавляется {percentage:g}%)"
        )


def check_worker_pin(dni: Optional[str], pin: Optional[str], pin_length: int = 4) -> bool:
    """
    PIN работника: первые символы его DNI
    """
    if not dni or not pin or len(dni) < pin_length:
        return False
    return dni[:pin_length].upper() == pin.strip().upper()
