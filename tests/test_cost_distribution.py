"""
Тесты распределения топлива и затрат на персонал
"""
import pytest
from datetime import date, datetime
from sqlalchemy.orm import Session

from gmao.models import CostCenter, Machine, OperationLog, PersonalReport, SpecificCostRule, Worker
from gmao.schemas import WorkerCostEntry
from gmao.services.cost_distribution_service import (
    ADMON_CENTER_CODE,
    GENERAL_MACHINE_CODE,
    UNASSIGNED_CENTER_CODE,
    CostDistributionService,
    distribute_source_totals,
)


def refuel(db: Session, machine: Machine, worker: Worker, litres: float, day: datetime):
    db.add(OperationLog(
        type="REFUELING",
        date=day,
        worker_id=worker.id,
        machine_id=machine.id,
        fuel_litres=litres
    ))


def rows_by_key(result):
    return {(row.center_code, row.machine_code): row.amount for row in result.rows}


@pytest.fixture
def fleet(test_db: Session, test_center: CostCenter, second_center: CostCenter,
          test_machine: Machine, test_worker: Worker):
    """
    Парк для расчёта:
    PC-01 с правилами 60% на C2 и 30% на машину CA-02 в C1,
    CA-02 без правил с часами 6 ч в C1 и 2 ч в C2,
    DU-03 без правил и часов (центр по умолчанию C1)
    """
    truck = Machine(cost_center_id=second_center.id, name="Camión", company_code="CA-02", current_hours=0)
    dumper = Machine(cost_center_id=test_center.id, name="Dumper", company_code="DU-03", current_hours=0)
    test_db.add_all([truck, dumper])
    test_db.flush()

    test_db.add_all([
        SpecificCostRule(machine_origin_id=test_machine.id, target_center_id=second_center.id, percentage=60),
        SpecificCostRule(
            machine_origin_id=test_machine.id,
            target_center_id=test_center.id,
            target_machine_id=truck.id,
            percentage=30
        ),
        PersonalReport(date=date(2024, 6, 3), worker_id=test_worker.id, hours=6,
                       machine_id=truck.id, cost_center_id=test_center.id),
        PersonalReport(date=date(2024, 6, 4), worker_id=test_worker.id, hours=2,
                       machine_id=truck.id, cost_center_id=second_center.id),
    ])

    refuel(test_db, test_machine, test_worker, 1000, datetime(2024, 6, 5, 8, 0))
    refuel(test_db, truck, test_worker, 400, datetime(2024, 6, 30, 23, 30))
    refuel(test_db, dumper, test_worker, 50, datetime(2024, 6, 1, 0, 0))
    # Другой месяц в расчёт не попадает
    refuel(test_db, dumper, test_worker, 999, datetime(2024, 7, 1, 0, 0))
    test_db.commit()

    return {"truck": truck, "dumper": dumper}


class TestFuelDistribution:

    def test_rules_ratio_and_default_center(self, test_db: Session, fleet):
        result = CostDistributionService(test_db).distribute_fuel(2024, 6)

        rows = rows_by_key(result)
        assert rows == {
            ("C1", "CA-02"): pytest.approx(600),   # 30% правила PC-01 + 6/8 часов CA-02
            ("C1", "DU-03"): pytest.approx(50),
            ("C2", "CA-02"): pytest.approx(100),
            ("C2", GENERAL_MACHINE_CODE): pytest.approx(600),
        }
        assert result.total_source == pytest.approx(1450)
        assert result.undistributed == pytest.approx(100)
        assert result.total_distributed == pytest.approx(1350)

    def test_rows_sorted_by_center_and_machine(self, test_db: Session, fleet):
        result = CostDistributionService(test_db).distribute_fuel(2024, 6)
        keys = [(row.center_code, row.machine_code) for row in result.rows]
        assert keys == sorted(keys)

    def test_empty_month(self, test_db: Session, fleet):
        result = CostDistributionService(test_db).distribute_fuel(2023, 1)
        assert result.rows == []
        assert result.total_source == 0


class TestDistributeSourceTotals:
    """Чистая функция распределения"""

    def test_report_without_center_goes_to_unassigned(self):
        center = CostCenter(id=1, code="C1", name="Norte")
        machine = Machine(id=10, cost_center_id=1, name="Pala", company_code="P-10")
        reports = [
            PersonalReport(worker_id=1, hours=3, machine_id=10, cost_center_id=None),
            PersonalReport(worker_id=1, hours=1, machine_id=10, cost_center_id=1),
        ]

        rows, undistributed = distribute_source_totals({10: 100.0}, {10: machine}, {1: center}, {}, reports)

        amounts = {(r.center_code, r.machine_code): r.amount for r in rows}
        assert amounts == {
            ("C1", "P-10"): pytest.approx(25),
            (UNASSIGNED_CENTER_CODE, "P-10"): pytest.approx(75),
        }
        assert undistributed == 0

    def test_full_rules_conserve_total(self):
        centers = {i: CostCenter(id=i, code=f"C{i}", name=f"Centro {i}") for i in (1, 2, 3)}
        machine = Machine(id=10, cost_center_id=1, name="Pala", company_code="P-10")
        rules = {10: [
            SpecificCostRule(machine_origin_id=10, target_center_id=1, percentage=33.3),
            SpecificCostRule(machine_origin_id=10, target_center_id=2, percentage=33.3),
            SpecificCostRule(machine_origin_id=10, target_center_id=3, percentage=33.4),
        ]}

        rows, undistributed = distribute_source_totals({10: 1234.56}, {10: machine}, centers, rules, [])

        assert [(r.center_code, r.machine_code) for r in rows] == [
            ("C1", GENERAL_MACHINE_CODE), ("C2", GENERAL_MACHINE_CODE), ("C3", GENERAL_MACHINE_CODE)
        ]
        assert sum(r.amount for r in rows) == pytest.approx(1234.56, abs=1e-6)
        assert undistributed == 0

    def test_unknown_machine_without_center(self):
        rows, _ = distribute_source_totals({77: 10.0}, {}, {}, {}, [])
        assert len(rows) == 1
        assert rows[0].center_code == UNASSIGNED_CENTER_CODE
        assert rows[0].machine_code == "#77"

    def test_machine_code_falls_back_to_name(self):
        center = CostCenter(id=1, code="C1", name="Norte")
        machine = Machine(id=5, cost_center_id=1, name="Grúa", company_code=None)
        rows, _ = distribute_source_totals({5: 10.0}, {5: machine}, {1: center}, {}, [])
        assert rows[0].machine_code == "Grúa"


class TestLaborDistribution:

    @pytest.fixture
    def labor_setup(self, test_db: Session, fleet, test_worker: Worker, second_center: CostCenter):
        test_db.add(Worker(name="Ana Ruiz", dni="55556666B", role="worker"))
        # 2 ч без машины в C2
        test_db.add(PersonalReport(date=date(2024, 6, 10), worker_id=test_worker.id, hours=2,
                                   cost_center_id=second_center.id))
        test_db.commit()
        return fleet

    def test_labor_split_by_worker_hours(self, test_db: Session, labor_setup):
        entries = [WorkerCostEntry(name="JUAN PEREZ GARCIA", amount=1000)]
        result = CostDistributionService(test_db).distribute_labor(2024, 6, entries)

        # Часы Хуана: 6 (CA-02) + 2 (CA-02) + 2 (без машины, C2) = 10
        # 800 на CA-02 делятся по часам машины 6:2, 200 на (C2, GENERAL)
        rows = rows_by_key(result)
        assert rows == {
            ("C1", "CA-02"): pytest.approx(600),
            ("C2", "CA-02"): pytest.approx(200),
            ("C2", GENERAL_MACHINE_CODE): pytest.approx(200),
        }
        assert result.admon_total == 0
        assert result.unmatched == []
        assert result.total_distributed == pytest.approx(1000)

    def test_unmatched_and_zero_hours_go_to_admon(self, test_db: Session, labor_setup):
        entries = [
            WorkerCostEntry(name="Ana Ruiz", amount=300),
            WorkerCostEntry(name="Pedro Sánchez", amount=500),
        ]
        result = CostDistributionService(test_db).distribute_labor(2024, 6, entries)

        rows = rows_by_key(result)
        assert rows == {(ADMON_CENTER_CODE, GENERAL_MACHINE_CODE): pytest.approx(800)}
        assert result.admon_total == pytest.approx(800)
        assert [u.name for u in result.unmatched] == ["Pedro Sánchez"]

    def test_unmatched_entry_gets_suggestion(self, test_db: Session, labor_setup):
        entries = [WorkerCostEntry(name="Juan Peres Garcia", amount=100)]
        result = CostDistributionService(test_db).distribute_labor(2024, 6, entries)

        assert result.admon_total == pytest.approx(100)
        assert len(result.unmatched) == 1
        assert result.unmatched[0].suggestion == "Juan Pérez García"
        assert result.unmatched[0].score >= 70


class TestWorkerHoursDistribution:

    def test_ratios_per_worker(self, test_db: Session, fleet, test_worker: Worker):
        items = CostDistributionService(test_db).get_worker_hours_distribution(2024, 6)

        assert len(items) == 1
        item = items[0]
        assert item.worker_id == test_worker.id
        assert item.total_hours == 8
        lines = {(line.center_code, line.machine_code): line.ratio for line in item.lines}
        assert lines == {("C1", "CA-02"): 0.75, ("C2", "CA-02"): 0.25}
