"""
Расчёт статуса планового техобслуживания
Чистые функции без доступа к БД: вход: машина и её определения, выход: статус по каждому определению
"""
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from gmao.exceptions import BusinessValidationError
from gmao.logger import logger
from gmao.models import Machine, MaintenanceDefinition
from gmao.utils.date_utils import add_months


STATUS_OK = "OK"
STATUS_WARNING = "WARNING"
STATUS_OVERDUE = "OVERDUE"

# Фиксированное окно предупреждения для обслуживания по дате
DATE_WARNING_DAYS = 15
# Моточасы последнего обслуживания, если оно ещё не выполнялось
DEFAULT_LAST_MAINTENANCE_HOURS = 0.0


@dataclass
class MaintenanceDueInfo:
    """
    Статус одного определения планового обслуживания
    """
    definition_id: Optional[int]
    name: str
    mode: str
    status: str
    next_due_hours: Optional[float] = None
    remaining_hours: Optional[float] = None
    next_date: Optional[date] = None
    days_remaining: Optional[int] = None
    config_error: bool = False

    @property
    def is_pending(self) -> bool:
        return self.status != STATUS_OK


def _classify(remaining: float, warning_window: float) -> str:
    if remaining <= 0:
        return STATUS_OVERDUE
    if remaining <= warning_window:
        return STATUS_WARNING
    return STATUS_OK


def _config_error(definition: MaintenanceDefinition, reason: str) -> MaintenanceDueInfo:
    # Бессмысленный интервал считаем всегда просроченным, чтобы его заметили
    logger.warning(
        "Некорректная настройка планового обслуживания",
        extra={
            "definition_id": definition.id,
            "machine_id": definition.machine_id,
            "reason": reason
        }
    )
    return MaintenanceDueInfo(
        definition_id=definition.id,
        name=definition.name,
        mode=definition.maintenance_type,
        status=STATUS_OVERDUE,
        next_date=definition.next_date,
        config_error=True
    )


def compute_definition_status(
    definition: MaintenanceDefinition,
    current_hours: float,
    today: date,
    date_warning_days: int = DATE_WARNING_DAYS,
    default_last_hours: float = DEFAULT_LAST_MAINTENANCE_HOURS
) -> MaintenanceDueInfo:
    """
    Расчёт статуса одного определения обслуживания

    HOURS: остаток = (последние моточасы или 0) + интервал - текущие моточасы
    DATE: остаток в днях до next_date

    Статус OVERDUE при остатке <= 0, WARNING при остатке не больше окна предупреждения, иначе OK.
    Нулевой или отрицательный интервал считается ошибкой настройки: статус OVERDUE с флагом config_error.

    Args:
        definition: Определение обслуживания
        current_hours: Текущие моточасы машины
        today: Текущая дата (из внедряемого источника даты)
        date_warning_days: Окно предупреждения в днях для режима DATE
        default_last_hours: Моточасы последнего обслуживания, если его ещё не было

    Returns:
        MaintenanceDueInfo
    """
    if definition.maintenance_type == "DATE":
        if not definition.interval_months or definition.interval_months <= 0:
            return _config_error(definition, "interval_months <= 0")
        if definition.next_date is None:
            return _config_error(definition, "next_date не задана")

        days_remaining = (definition.next_date - today).days
        return MaintenanceDueInfo(
            definition_id=definition.id,
            name=definition.name,
            mode="DATE",
            status=_classify(days_remaining, date_warning_days),
            next_date=definition.next_date,
            days_remaining=days_remaining
        )

    if not definition.interval_hours or definition.interval_hours <= 0:
        return _config_error(definition, "interval_hours <= 0")

    last_hours = definition.last_maintenance_hours
    if last_hours is None:
        last_hours = default_last_hours

    next_due = last_hours + definition.interval_hours
    remaining = next_due - (current_hours or 0)
    return MaintenanceDueInfo(
        definition_id=definition.id,
        name=definition.name,
        mode="HOURS",
        status=_classify(remaining, definition.warning_hours or 0),
        next_due_hours=next_due,
        remaining_hours=remaining
    )


def compute_machine_status(
    machine: Machine,
    today: date,
    date_warning_days: int = DATE_WARNING_DAYS,
    default_last_hours: float = DEFAULT_LAST_MAINTENANCE_HOURS
) -> List[MaintenanceDueInfo]:
    """
    Статусы всех определений обслуживания машины
    Машина без определений даёт пустой список
    """
    return [
        compute_definition_status(
            definition,
            machine.current_hours,
            today,
            date_warning_days=date_warning_days,
            default_last_hours=default_last_hours
        )
        for definition in machine.maintenance_definitions
    ]


def apply_scheduled_execution(
    definition: MaintenanceDefinition,
    hours_at_execution: Optional[float],
    executed_at: date
) -> None:
    """
    Перенос базы расчёта после выполнения планового обслуживания

    HOURS: last_maintenance_hours = показание при выполнении
    DATE: last_maintenance_date = дата выполнения, next_date = дата выполнения + interval_months

    Флаги отправленных уведомлений сбрасываются, чтобы следующий цикл снова уведомил.

    Raises:
        BusinessValidationError: Для режима HOURS без показания моточасов
    """
    if definition.maintenance_type == "DATE":
        definition.last_maintenance_date = executed_at
        if definition.interval_months and definition.interval_months > 0:
            definition.next_date = add_months(executed_at, definition.interval_months)
    else:
        if hours_at_execution is None:
            raise BusinessValidationError(
                f"Для выполнения обслуживания «{definition.name}» по моточасам необходимо указать показание"
            )
        definition.last_maintenance_hours = hours_at_execution

    definition.notified_warning = False
    definition.notified_overdue = False

    logger.info(
        "База планового обслуживания перенесена",
        extra={
            "definition_id": definition.id,
            "machine_id": definition.machine_id,
            "mode": definition.maintenance_type,
            "last_maintenance_hours": definition.last_maintenance_hours,
            "next_date": definition.next_date.isoformat() if definition.next_date else None
        }
    )
