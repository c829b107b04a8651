"""
Тесты расчёта статуса планового техобслуживания
"""
import pytest
from datetime import date, timedelta

from gmao.exceptions import BusinessValidationError
from gmao.models import Machine, MaintenanceDefinition
from gmao.services.maintenance_scheduler import (
    STATUS_OK,
    STATUS_OVERDUE,
    STATUS_WARNING,
    apply_scheduled_execution,
    compute_definition_status,
    compute_machine_status,
)

TODAY = date(2024, 6, 10)


def hours_definition(interval=100, warning=10, last=0):
    return MaintenanceDefinition(
        name="Cambio de aceite",
        maintenance_type="HOURS",
        interval_hours=interval,
        warning_hours=warning,
        last_maintenance_hours=last
    )


def date_definition(next_date, interval_months=6):
    return MaintenanceDefinition(
        name="Revisión ITV",
        maintenance_type="DATE",
        interval_months=interval_months,
        next_date=next_date
    )


class TestHoursMode:
    """Обслуживание по моточасам"""

    @pytest.mark.parametrize("current_hours,expected", [
        (80, STATUS_OK),
        (89, STATUS_OK),
        (90, STATUS_WARNING),
        (99.5, STATUS_WARNING),
        (100, STATUS_OVERDUE),
        (150, STATUS_OVERDUE),
    ])
    def test_status_boundaries(self, current_hours, expected):
        """Остаток равный окну предупреждения даёт WARNING, нулевой остаток даёт OVERDUE"""
        info = compute_definition_status(hours_definition(), current_hours, TODAY)
        assert info.status == expected

    def test_next_due_and_remaining(self):
        info = compute_definition_status(hours_definition(last=250), 300, TODAY)
        assert info.next_due_hours == 350
        assert info.remaining_hours == 50
        assert info.mode == "HOURS"
        assert info.config_error is False

    def test_missing_last_maintenance_uses_default(self):
        """Без выполненного обслуживания база расчёта равна нулю"""
        definition = hours_definition(last=None)
        info = compute_definition_status(definition, 95, TODAY)
        assert info.next_due_hours == 100
        assert info.status == STATUS_WARNING

    @pytest.mark.parametrize("interval", [0, -50])
    def test_invalid_interval_is_config_error(self, interval):
        info = compute_definition_status(hours_definition(interval=interval), 10, TODAY)
        assert info.status == STATUS_OVERDUE
        assert info.config_error is True


class TestDateMode:
    """Обслуживание по дате"""

    @pytest.mark.parametrize("days_ahead,expected", [
        (30, STATUS_OK),
        (16, STATUS_OK),
        (15, STATUS_WARNING),
        (1, STATUS_WARNING),
        (0, STATUS_OVERDUE),
        (-3, STATUS_OVERDUE),
    ])
    def test_status_boundaries(self, days_ahead, expected):
        info = compute_definition_status(date_definition(TODAY + timedelta(days=days_ahead)), 0, TODAY)
        assert info.status == expected
        assert info.days_remaining == days_ahead

    def test_missing_next_date_is_config_error(self):
        info = compute_definition_status(date_definition(None), 0, TODAY)
        assert info.status == STATUS_OVERDUE
        assert info.config_error is True

    def test_zero_interval_months_is_config_error(self):
        info = compute_definition_status(date_definition(TODAY + timedelta(days=60), interval_months=0), 0, TODAY)
        assert info.config_error is True


class TestMachineStatus:

    def test_machine_without_definitions(self):
        machine = Machine(name="Camión", current_hours=500)
        assert compute_machine_status(machine, TODAY) == []

    def test_one_status_per_definition(self):
        machine = Machine(name="Camión", current_hours=95)
        machine.maintenance_definitions.append(hours_definition())
        machine.maintenance_definitions.append(date_definition(TODAY + timedelta(days=100)))

        statuses = compute_machine_status(machine, TODAY)
        assert [s.status for s in statuses] == [STATUS_WARNING, STATUS_OK]


class TestScheduledExecution:
    """Перенос базы расчёта после выполнения обслуживания"""

    def test_hours_mode_moves_base_and_resets_flags(self):
        definition = hours_definition()
        definition.notified_warning = True
        definition.notified_overdue = True

        apply_scheduled_execution(definition, 105, TODAY)

        assert definition.last_maintenance_hours == 105
        assert definition.notified_warning is False
        assert definition.notified_overdue is False
        info = compute_definition_status(definition, 105, TODAY)
        assert info.next_due_hours == 205
        assert info.status == STATUS_OK

    def test_hours_mode_requires_reading(self):
        with pytest.raises(BusinessValidationError):
            apply_scheduled_execution(hours_definition(), None, TODAY)

    def test_date_mode_reschedules_from_execution_date(self):
        definition = date_definition(date(2024, 1, 15), interval_months=1)
        apply_scheduled_execution(definition, None, date(2024, 1, 31))

        assert definition.last_maintenance_date == date(2024, 1, 31)
        # День прижимается к концу более короткого месяца
        assert definition.next_date == date(2024, 2, 29)
