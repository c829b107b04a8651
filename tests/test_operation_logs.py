"""
Тесты записей операций: моточасы, плановое обслуживание, уведомления, откат транзакции
"""
import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from gmao.models import Machine, OperationLog, Worker
from gmao.schemas import operation_log_adapter
from gmao.services.notification_service import MaintenanceNotifier
from gmao.services.operation_log_service import OperationLogService


def levels_payload(machine_id, worker_id, hours, day="2024-06-10T08:00:00"):
    return {
        "type": "LEVELS",
        "date": day,
        "worker_id": worker_id,
        "machine_id": machine_id,
        "hours_at_execution": hours,
        "motor_oil": 1.5
    }


class FakeChannel:
    """Канал email, запоминающий отправленные письма"""

    def __init__(self, success=True):
        self.enabled = True
        self.success = success
        self.sent = []

    def send_email(self, to, subject, html, attachment_base64=None, attachment_name=None):
        self.sent.append(subject)
        if self.success:
            return {"success": True, "error": None}
        return {"success": False, "error": "SMTP недоступен"}


class ExplodingNotifier:
    def check_maintenance_thresholds(self, machine, new_hours=None):
        raise RuntimeError("сбой проверки порогов")


class TestOperationLogHours:
    """Обновление моточасов машины"""

    def test_hours_progression_changes_status(self, client: TestClient, test_machine: Machine, test_worker: Worker):
        """90 -> 95 (WARNING) -> 105 (OVERDUE)"""
        response = client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 95))
        assert response.status_code == 201
        assert response.json()["type"] == "LEVELS"

        status_response = client.get(f"/api/v1/machines/{test_machine.id}/status")
        assert status_response.status_code == 200
        assert status_response.json()[0]["status"] == "WARNING"

        response = client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 105))
        assert response.status_code == 201

        machine = client.get(f"/api/v1/machines/{test_machine.id}").json()
        assert machine["current_hours"] == 105
        status_response = client.get(f"/api/v1/machines/{test_machine.id}/status")
        assert status_response.json()[0]["status"] == "OVERDUE"

    def test_decreasing_reading_rejected(self, client: TestClient, test_db: Session,
                                         test_machine: Machine, test_worker: Worker):
        """Показание меньше текущего отклоняется без записи"""
        response = client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 80))
        assert response.status_code == 400
        assert "меньше текущего" in response.json()["detail"]

        test_db.refresh(test_machine)
        assert test_machine.current_hours == 90
        assert test_db.query(OperationLog).count() == 0

    def test_equal_reading_accepted(self, client: TestClient, test_machine: Machine, test_worker: Worker):
        response = client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 90))
        assert response.status_code == 201

    def test_missing_reading_rejected_when_required(self, client: TestClient,
                                                     test_machine: Machine, test_worker: Worker):
        response = client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, None))
        assert response.status_code == 400

    def test_missing_reading_allowed_when_not_required(self, client: TestClient, test_db: Session,
                                                       test_machine: Machine, test_worker: Worker):
        test_machine.requires_hours = False
        test_db.commit()

        payload = {
            "type": "REFUELING",
            "date": "2024-06-10T09:00:00",
            "worker_id": test_worker.id,
            "machine_id": test_machine.id,
            "fuel_litres": 120
        }
        response = client.post("/api/v1/operation-logs", json=payload)
        assert response.status_code == 201
        assert response.json()["fuel_litres"] == 120

        test_db.refresh(test_machine)
        assert test_machine.current_hours == 90

    def test_unknown_machine_returns_404(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/operation-logs", json=levels_payload(9999, test_worker.id, 10))
        assert response.status_code == 404

    def test_unknown_type_rejected_by_schema(self, client: TestClient, test_machine: Machine, test_worker: Worker):
        payload = levels_payload(test_machine.id, test_worker.id, 95)
        payload["type"] = "PAINTING"
        response = client.post("/api/v1/operation-logs", json=payload)
        assert response.status_code == 422


class TestScheduledMaintenance:
    """Выполнение планового обслуживания"""

    def test_scheduled_log_moves_maintenance_base(self, client: TestClient, test_machine: Machine,
                                                  test_worker: Worker):
        definition_id = test_machine.maintenance_definitions[0].id
        payload = {
            "type": "SCHEDULED",
            "date": "2024-06-10T10:00:00",
            "worker_id": test_worker.id,
            "machine_id": test_machine.id,
            "hours_at_execution": 105,
            "maintenance_def_id": definition_id
        }
        response = client.post("/api/v1/operation-logs", json=payload)
        assert response.status_code == 201
        assert response.json()["maintenance_def_id"] == definition_id

        status_item = client.get(f"/api/v1/machines/{test_machine.id}/status").json()[0]
        assert status_item["status"] == "OK"
        assert status_item["next_due_hours"] == 205

    def test_scheduled_log_with_foreign_definition_rejected(self, client: TestClient, test_db: Session,
                                                            test_machine: Machine, test_worker: Worker):
        other = Machine(cost_center_id=test_machine.cost_center_id, name="Dumper", current_hours=0)
        test_db.add(other)
        test_db.commit()

        payload = {
            "type": "SCHEDULED",
            "date": "2024-06-10T10:00:00",
            "worker_id": test_worker.id,
            "machine_id": other.id,
            "hours_at_execution": 10,
            "maintenance_def_id": test_machine.maintenance_definitions[0].id
        }
        response = client.post("/api/v1/operation-logs", json=payload)
        assert response.status_code == 400


class TestMaintenanceNotifications:
    """Однократные уведомления о порогах обслуживания"""

    def test_each_threshold_notifies_once(self, test_db: Session, test_machine: Machine,
                                          test_worker: Worker, fixed_today):
        channel = FakeChannel()
        service = OperationLogService(
            test_db,
            notifier=MaintenanceNotifier(channel=channel, clock=lambda: fixed_today)
        )

        for hours in (95, 96, 105, 106):
            service.create_log(operation_log_adapter.validate_python(
                levels_payload(test_machine.id, test_worker.id, hours)
            ))

        assert len(channel.sent) == 2
        assert channel.sent[0].startswith("[GMAO] Скоро")
        assert channel.sent[1].startswith("[GMAO] Просрочено")

        definition = test_machine.maintenance_definitions[0]
        assert definition.notified_warning is True
        assert definition.notified_overdue is True

    def test_failed_send_keeps_flag_unset(self, test_db: Session, test_machine: Machine,
                                          test_worker: Worker, fixed_today):
        channel = FakeChannel(success=False)
        service = OperationLogService(
            test_db,
            notifier=MaintenanceNotifier(channel=channel, clock=lambda: fixed_today)
        )

        log = service.create_log(operation_log_adapter.validate_python(
            levels_payload(test_machine.id, test_worker.id, 95)
        ))

        assert log.id is not None
        assert test_machine.maintenance_definitions[0].notified_warning is False

    def test_no_email_when_commit_fails(self, test_db: Session, test_machine: Machine,
                                        test_worker: Worker, fixed_today, monkeypatch):
        channel = FakeChannel()
        service = OperationLogService(
            test_db,
            notifier=MaintenanceNotifier(channel=channel, clock=lambda: fixed_today)
        )

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(test_db, "commit", failing_commit)

        with pytest.raises(OperationalError):
            service.create_log(operation_log_adapter.validate_python(
                levels_payload(test_machine.id, test_worker.id, 95)
            ))
        monkeypatch.undo()

        assert channel.sent == []
        test_db.refresh(test_machine)
        assert test_machine.current_hours == 90
        assert test_machine.maintenance_definitions[0].notified_warning is False


class TestTransactionRollback:

    def test_failure_after_insert_rolls_back_everything(self, test_db: Session, test_machine: Machine,
                                                        test_worker: Worker):
        service = OperationLogService(test_db, notifier=ExplodingNotifier())

        with pytest.raises(RuntimeError):
            service.create_log(operation_log_adapter.validate_python(
                levels_payload(test_machine.id, test_worker.id, 95)
            ))

        test_db.refresh(test_machine)
        assert test_machine.current_hours == 90
        assert test_db.query(OperationLog).count() == 0


class TestOperationLogQueries:

    def test_list_and_filter(self, client: TestClient, test_machine: Machine, test_worker: Worker):
        client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 95))
        client.post("/api/v1/operation-logs", json={
            "type": "BREAKDOWN",
            "date": "2024-06-11T12:00:00",
            "worker_id": test_worker.id,
            "machine_id": test_machine.id,
            "hours_at_execution": 96,
            "breakdown_cause": "Fuga hidráulica"
        })

        response = client.get("/api/v1/operation-logs")
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = client.get("/api/v1/operation-logs?log_type=BREAKDOWN")
        assert response.json()["total"] == 1

        response = client.get("/api/v1/operation-logs?date_from=2024-06-11&date_to=2024-06-11")
        assert response.json()["total"] == 1

    def test_daily_audit(self, client: TestClient, test_machine: Machine, test_worker: Worker):
        client.post("/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 95))
        client.post("/api/v1/personal-reports", json={
            "date": "2024-06-10",
            "worker_id": test_worker.id,
            "hours": 8,
            "machine_id": test_machine.id,
            "cost_center_id": test_machine.cost_center_id
        })

        response = client.get("/api/v1/operation-logs/audit?day=2024-06-10")
        assert response.status_code == 200
        data = response.json()
        assert len(data["operation_logs"]) == 1
        assert len(data["personal_reports"]) == 1

    def test_admin_edit_does_not_touch_machine_hours(self, client: TestClient, test_db: Session,
                                                      test_machine: Machine, test_worker: Worker):
        log_id = client.post(
            "/api/v1/operation-logs", json=levels_payload(test_machine.id, test_worker.id, 95)
        ).json()["id"]

        response = client.put(f"/api/v1/operation-logs/{log_id}", json={"hours_at_execution": 93})
        assert response.status_code == 200
        assert response.json()["hours_at_execution"] == 93

        test_db.refresh(test_machine)
        assert test_machine.current_hours == 95

    def test_get_missing_log(self, client: TestClient):
        response = client.get("/api/v1/operation-logs/12345")
        assert response.status_code == 404
