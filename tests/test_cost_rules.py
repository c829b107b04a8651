"""
Тесты правил фиксированного распределения затрат
"""
import pytest
from fastapi.testclient import TestClient

from gmao.exceptions import BusinessValidationError
from gmao.models import CostCenter, Machine
from gmao.validators import validate_rule_percentage


class TestRulePercentageValidator:

    @pytest.mark.parametrize("existing,percentage", [(0, 100), (60, 40), (33.3 + 33.3, 33.4)])
    def test_accepts_up_to_hundred(self, existing, percentage):
        validate_rule_percentage(existing, percentage)

    @pytest.mark.parametrize("existing,percentage", [(60, 41), (0, 0), (0, -5), (0, 101)])
    def test_rejects_invalid(self, existing, percentage):
        with pytest.raises(BusinessValidationError):
            validate_rule_percentage(existing, percentage)


class TestCostRulesApi:

    def test_total_percentage_capped(self, client: TestClient, test_machine: Machine, second_center: CostCenter):
        rule = {"machine_origin_id": test_machine.id, "target_center_id": second_center.id, "percentage": 60}
        response = client.post("/api/v1/cost-rules", json=rule)
        assert response.status_code == 201

        rule["percentage"] = 50
        response = client.post("/api/v1/cost-rules", json=rule)
        assert response.status_code == 400
        assert "100%" in response.json()["detail"]

        rule["percentage"] = 40
        response = client.post("/api/v1/cost-rules", json=rule)
        assert response.status_code == 201

        response = client.get(f"/api/v1/cost-rules?machine_origin_id={test_machine.id}")
        assert sum(r["percentage"] for r in response.json()) == 100

    def test_rule_targeting_itself_rejected(self, client: TestClient, test_machine: Machine,
                                            test_center: CostCenter):
        response = client.post("/api/v1/cost-rules", json={
            "machine_origin_id": test_machine.id,
            "target_center_id": test_center.id,
            "target_machine_id": test_machine.id,
            "percentage": 10
        })
        assert response.status_code == 400

    def test_unknown_target_center(self, client: TestClient, test_machine: Machine):
        response = client.post("/api/v1/cost-rules", json={
            "machine_origin_id": test_machine.id,
            "target_center_id": 999,
            "percentage": 10
        })
        assert response.status_code == 404

    def test_delete_rule_frees_percentage(self, client: TestClient, test_machine: Machine,
                                          second_center: CostCenter):
        rule = {"machine_origin_id": test_machine.id, "target_center_id": second_center.id, "percentage": 100}
        rule_id = client.post("/api/v1/cost-rules", json=rule).json()["id"]

        assert client.delete(f"/api/v1/cost-rules/{rule_id}").status_code == 204
        assert client.post("/api/v1/cost-rules", json=rule).status_code == 201
