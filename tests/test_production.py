"""
Тесты производственных отчётов, недельных планов и эффективности
"""
import pytest
from datetime import date, timedelta
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from gmao.exceptions import BusinessValidationError
from gmao.models import CPWeeklyPlan, Worker
from gmao.services.production_efficiency_service import (
    TREND_DOWN,
    TREND_EQUAL,
    TREND_UP,
    ProductionEfficiencyService,
    compare,
    compute_efficiency,
    period_bounds,
    planned_hours_for_range,
    previous_cutoff,
)

MONDAY = date(2024, 6, 10)


def cp_report(worker_id, day, mills_start, mills_end, crusher_start=0, crusher_end=0):
    return {
        "date": day.isoformat(),
        "worker_id": worker_id,
        "crusher_start": crusher_start,
        "crusher_end": crusher_end,
        "mills_start": mills_start,
        "mills_end": mills_end
    }


class TestWeeklyPlansApi:

    def test_upsert_replaces_plan(self, client: TestClient):
        plan = {"monday_date": MONDAY.isoformat(), "monday_hours": 10, "tuesday_hours": 10}
        response = client.put("/api/v1/production/plans", json=plan)
        assert response.status_code == 200
        first_id = response.json()["id"]

        plan["monday_hours"] = 6
        response = client.put("/api/v1/production/plans", json=plan)
        assert response.status_code == 200
        assert response.json()["id"] == first_id

        data = client.get(f"/api/v1/production/plans/{MONDAY.isoformat()}").json()
        assert data["monday_hours"] == 6
        assert data["tuesday_hours"] == 10
        assert data["friday_hours"] == 0

    def test_plan_date_must_be_monday(self, client: TestClient):
        response = client.put("/api/v1/production/plans", json={"monday_date": "2024-06-11"})
        assert response.status_code == 400

    def test_plan_hours_limited_to_day(self, client: TestClient):
        response = client.put("/api/v1/production/plans", json={"monday_date": MONDAY.isoformat(), "monday_hours": 25})
        assert response.status_code == 422

    def test_missing_plan(self, client: TestClient):
        assert client.get("/api/v1/production/plans/2024-06-17").status_code == 404


class TestDailyReportsApi:

    def test_create_and_list_cp_reports(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, MONDAY, 100, 108))
        assert response.status_code == 201

        response = client.get("/api/v1/production/cp-reports?date_from=2024-06-01&date_to=2024-06-30")
        assert response.status_code == 200
        assert len(response.json()) == 1

        response = client.get("/api/v1/production/cp-reports?date_from=2024-07-01&date_to=2024-07-31")
        assert response.json() == []

    def test_counter_going_backwards_rejected(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, MONDAY, 108, 100))
        assert response.status_code == 400
        assert "мельницы" in response.json()["detail"]

    def test_unknown_worker(self, client: TestClient):
        response = client.post("/api/v1/production/cp-reports", json=cp_report(999, MONDAY, 0, 8))
        assert response.status_code == 404

    def test_cr_report(self, client: TestClient, test_worker: Worker):
        response = client.post("/api/v1/production/cr-reports", json={
            "date": MONDAY.isoformat(),
            "worker_id": test_worker.id,
            "washing_start": 10,
            "washing_end": 15,
            "trituration_start": 20,
            "trituration_end": 19
        })
        assert response.status_code == 400

    def test_date_range_required(self, client: TestClient):
        assert client.get("/api/v1/production/cr-reports").status_code == 422


class TestEfficiencyFunctions:

    def test_compute_efficiency(self):
        assert compute_efficiency(16, 20) == pytest.approx(80)
        assert compute_efficiency(5, 0) == 0

    @pytest.mark.parametrize("current,previous,trend", [
        (80, 60, TREND_UP),
        (60, 80, TREND_DOWN),
        (70, 70, TREND_EQUAL),
    ])
    def test_compare_trend(self, current, previous, trend):
        result = compare(current, previous)
        assert result.trend == trend
        assert result.diff == current - previous

    def test_period_bounds(self):
        assert period_bounds("week", date(2024, 6, 13)) == (MONDAY, date(2024, 6, 16))
        assert period_bounds("month", date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert period_bounds("year", MONDAY) == (date(2024, 1, 1), date(2024, 12, 31))
        with pytest.raises(BusinessValidationError):
            period_bounds("quarter", MONDAY)

    @pytest.mark.parametrize("period,cutoff,expected", [
        ("day", date(2024, 3, 1), date(2024, 2, 29)),
        ("week", date(2024, 6, 12), date(2024, 6, 5)),
        ("month", date(2024, 3, 31), date(2024, 2, 29)),
        ("year", date(2024, 2, 29), date(2023, 2, 28)),
    ])
    def test_previous_cutoff(self, period, cutoff, expected):
        assert previous_cutoff(period, cutoff) == expected

    def test_planned_hours_weekend_and_default(self):
        plans = {MONDAY: CPWeeklyPlan(monday_date=MONDAY, monday_hours=10, tuesday_hours=4,
                                      wednesday_hours=0, thursday_hours=0, friday_hours=0)}

        # Суббота и воскресенье
        assert planned_hours_for_range(date(2024, 6, 8), date(2024, 6, 9), plans, 8) == 0
        # Неделя без плана: 5 дней по умолчанию
        assert planned_hours_for_range(date(2024, 6, 3), date(2024, 6, 9), plans, 8) == 40
        # Неделя с планом
        assert planned_hours_for_range(MONDAY, date(2024, 6, 16), plans, 8) == 14


class TestEfficiencyService:

    @pytest.fixture
    def week_reports(self, client: TestClient, test_worker: Worker):
        client.put("/api/v1/production/plans", json={
            "monday_date": MONDAY.isoformat(),
            "monday_hours": 10,
            "tuesday_hours": 10
        })
        client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, MONDAY, 0, 8))
        client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, date(2024, 6, 11), 8, 16))
        # После даты среза, в расчёт не входит
        client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, date(2024, 6, 12), 16, 26))

    def test_week_capped_at_cutoff(self, test_db: Session, week_reports):
        stats = ProductionEfficiencyService(test_db).calculate_period("MILLS", "week", date(2024, 6, 11))

        assert stats.start == MONDAY
        assert stats.end == date(2024, 6, 16)
        assert stats.effective_end == date(2024, 6, 11)
        assert stats.actual_hours == 16
        assert stats.planned_hours == 20
        assert stats.efficiency == pytest.approx(80)

    def test_idle_friday_gives_eighty_percent(self, client: TestClient, test_db: Session, test_worker: Worker):
        client.put("/api/v1/production/plans", json={
            "monday_date": MONDAY.isoformat(),
            "monday_hours": 8,
            "tuesday_hours": 8,
            "wednesday_hours": 8,
            "thursday_hours": 8,
            "friday_hours": 8
        })
        for offset in range(4):
            day = MONDAY + timedelta(days=offset)
            response = client.post(
                "/api/v1/production/cp-reports",
                json=cp_report(test_worker.id, day, offset * 8, offset * 8 + 8)
            )
            assert response.status_code == 201

        stats = ProductionEfficiencyService(test_db).calculate_period("MILLS", "week", date(2024, 6, 14))

        assert stats.planned_hours == 40
        assert stats.actual_hours == 32
        assert stats.efficiency == pytest.approx(80)

    def test_month_uses_default_hours_outside_plan(self, test_db: Session, week_reports):
        service = ProductionEfficiencyService(test_db, default_hours_per_day=8)
        stats = service.calculate_period("MILLS", "month", date(2024, 6, 11))

        # 1..7 июня: 5 рабочих дней по 8 ч, затем 10 + 10 ч по плану
        assert stats.planned_hours == 60
        assert stats.actual_hours == 16

    def test_other_line_reads_other_counter(self, test_db: Session, week_reports):
        stats = ProductionEfficiencyService(test_db).calculate_period("CRUSHER", "day", MONDAY)
        assert stats.actual_hours == 0
        assert stats.efficiency == 0

    def test_unknown_line(self, test_db: Session):
        with pytest.raises(BusinessValidationError):
            ProductionEfficiencyService(test_db).calculate_period("OVEN", "day", MONDAY)

    def test_stats_use_clock(self, test_db: Session, week_reports):
        service = ProductionEfficiencyService(test_db, clock=lambda: date(2024, 6, 11))
        stats = service.get_efficiency_stats()

        assert stats.line == "MILLS"
        assert stats.cutoff == date(2024, 6, 11)
        assert stats.daily.current == pytest.approx(80)
        assert stats.weekly.current == pytest.approx(80)
        assert stats.weekly.previous == 0
        assert stats.weekly.trend == TREND_UP


class TestEfficiencyApi:

    def test_period_endpoint(self, client: TestClient, test_worker: Worker):
        client.put("/api/v1/production/plans", json={"monday_date": MONDAY.isoformat(), "monday_hours": 10})
        client.post("/api/v1/production/cp-reports", json=cp_report(test_worker.id, MONDAY, 0, 5))

        response = client.get("/api/v1/production/efficiency/week?cutoff=2024-06-10")

        assert response.status_code == 200
        data = response.json()
        assert data["current"] == pytest.approx(50)
        assert data["trend"] == "up"
        assert data["current_period"]["planned_hours"] == 10

    def test_full_stats(self, client: TestClient):
        response = client.get("/api/v1/production/efficiency?cutoff=2024-06-10&line=washing")
        assert response.status_code == 200
        data = response.json()
        assert data["line"] == "WASHING"
        assert set(data) >= {"daily", "weekly", "monthly", "yearly"}

    def test_unknown_period(self, client: TestClient):
        assert client.get("/api/v1/production/efficiency/quarter").status_code == 400

    def test_unknown_line(self, client: TestClient):
        assert client.get("/api/v1/production/efficiency?line=OVEN&cutoff=2024-06-10").status_code == 400
