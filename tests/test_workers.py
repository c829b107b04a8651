"""
Тесты для модуля работников и входа по PIN
"""
from fastapi.testclient import TestClient

from gmao.models import Worker


class TestWorkersCrud:

    def test_create_worker_normalizes_dni(self, client: TestClient):
        response = client.post("/api/v1/workers", json={
            "name": "María López",
            "dni": " 87654321x ",
            "role": "cp"
        })
        assert response.status_code == 201
        data = response.json()
        assert data["dni"] == "87654321X"
        assert data["role"] == "cp"
        assert data["active"] is True

    def test_duplicate_dni_rejected(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/workers", json={"name": "Otro", "dni": test_worker.dni})
        assert response.status_code == 400

    def test_unknown_role_rejected(self, client: TestClient):
        response = client.post("/api/v1/workers", json={"name": "X", "dni": "11112222A", "role": "boss"})
        assert response.status_code == 422

    def test_update_and_deactivate(self, client: TestClient, test_worker: Worker):
        response = client.put(f"/api/v1/workers/{test_worker.id}", json={"expected_hours": 8})
        assert response.status_code == 200
        assert response.json()["expected_hours"] == 8

        response = client.delete(f"/api/v1/workers/{test_worker.id}")
        assert response.status_code == 200
        assert response.json()["active"] is False

        response = client.get("/api/v1/workers?active=true")
        assert response.json() == []

    def test_get_missing_worker(self, client: TestClient):
        assert client.get("/api/v1/workers/999").status_code == 404


class TestWorkerLogin:
    """Вход по PIN: первые 4 символа DNI"""

    def test_login_success(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/workers/login", json={"worker_id": test_worker.id, "pin": "1234"})
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_worker.id
        assert data["role"] == "worker"

    def test_login_wrong_pin(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/workers/login", json={"worker_id": test_worker.id, "pin": "9999"})
        assert response.status_code == 401

    def test_login_inactive_worker(self, client: TestClient, test_db, test_worker: Worker):
        test_worker.active = False
        test_db.commit()
        response = client.post("/api/v1/workers/login", json={"worker_id": test_worker.id, "pin": "1234"})
        assert response.status_code == 401

    def test_login_unknown_worker(self, client: TestClient):
        response = client.post("/api/v1/workers/login", json={"worker_id": 42, "pin": "1234"})
        assert response.status_code == 401
