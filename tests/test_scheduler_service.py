"""
Тесты ежедневной проверки сроков обслуживания
"""
from datetime import date
from sqlalchemy.orm import Session

from gmao.middleware.prometheus_metrics import registry
from gmao.models import Machine, MaintenanceDefinition
from gmao.services.notification_service import MaintenanceNotifier
from gmao.services.scheduler_service import run_maintenance_check


class RecordingChannel:
    def __init__(self):
        self.enabled = True
        self.sent = []

    def send_email(self, to, subject, html, attachment_base64=None, attachment_name=None):
        self.sent.append(subject)
        return {"success": True, "error": None}


class TestDailyMaintenanceCheck:

    def test_notifies_once_per_threshold(self, session_factory, test_db: Session, test_machine: Machine):
        test_db.add(MaintenanceDefinition(
            machine_id=test_machine.id,
            name="ITV",
            maintenance_type="DATE",
            interval_months=12,
            next_date=date(2024, 6, 1)
        ))
        test_db.commit()

        channel = RecordingChannel()
        notifier = MaintenanceNotifier(channel=channel, clock=lambda: date(2024, 6, 10))

        # Cambio de aceite в WARNING (90 из 100 ч), ITV просрочена
        assert run_maintenance_check(session_factory, notifier=notifier) == 2
        assert sorted(channel.sent) == [
            "[GMAO] Просрочено: ITV (Pala Cargadora)",
            "[GMAO] Скоро: Cambio de aceite (Pala Cargadora)",
        ]

        assert run_maintenance_check(session_factory, notifier=notifier) == 0
        assert len(channel.sent) == 2

        test_db.expire_all()
        flags = {
            d.name: (d.notified_warning, d.notified_overdue)
            for d in test_db.query(MaintenanceDefinition).all()
        }
        assert flags == {"Cambio de aceite": (True, False), "ITV": (True, True)}

        due = {
            status: registry.get_sample_value("gmao_maintenance_due_definitions", {"status": status})
            for status in ("WARNING", "OVERDUE")
        }
        assert due == {"WARNING": 1, "OVERDUE": 1}

    def test_inactive_machines_skipped(self, session_factory, test_db: Session, test_machine: Machine):
        test_machine.active = False
        test_db.commit()

        channel = RecordingChannel()
        notifier = MaintenanceNotifier(channel=channel, clock=lambda: date(2024, 6, 10))

        assert run_maintenance_check(session_factory, notifier=notifier) == 0
        assert channel.sent == []
