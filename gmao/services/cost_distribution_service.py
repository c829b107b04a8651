"""
Сервис распределения затрат по центрам затрат и машинам

Общий механизм для топлива (литры по записям REFUELING) и затрат на персонал
(внешняя таблица затрат по работникам):
1. правила фиксированного распределения машины, если они есть;
2. иначе пропорционально отработанным часам по личным отчётам;
3. иначе целиком на центр затрат машины по умолчанию.
Суммы накапливаются без округления, округление остаётся на стороне отображения.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from gmao.logger import logger
from gmao.models import CostCenter, Machine, PersonalReport, SpecificCostRule, Worker
from gmao.repositories.cost_center_repository import CostCenterRepository
from gmao.repositories.cost_rule_repository import CostRuleRepository
from gmao.repositories.machine_repository import MachineRepository
from gmao.repositories.operation_log_repository import OperationLogRepository
from gmao.repositories.personal_report_repository import PersonalReportRepository
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import WorkerCostEntry
from gmao.services.normalization_service import build_name_index, find_similar_name, normalize_person_name
from gmao.utils.date_utils import month_bounds
from gmao.validators import PERCENTAGE_TOLERANCE

GENERAL_MACHINE_CODE = "GENERAL"
UNASSIGNED_CENTER_CODE = "N/A"
ADMON_CENTER_CODE = "ADMON"
UNKNOWN_MACHINE_NAME = "Неизвестная машина"


@dataclass
class DistributionRow:
    center_code: str
    center_name: str
    machine_code: str
    machine_name: str
    amount: float


@dataclass
class UnmatchedCostEntry:
    """
    Строка внешней таблицы без соответствия среди работников
    suggestion только подсказка для администратора
    """
    name: str
    amount: float
    suggestion: Optional[str] = None
    score: Optional[float] = None


@dataclass
class DistributionResult:
    kind: str
    year: int
    month: int
    total_source: float
    total_distributed: float
    undistributed: float
    rows: List[DistributionRow]
    admon_total: float = 0.0
    unmatched: List[UnmatchedCostEntry] = field(default_factory=list)


@dataclass
class WorkerHoursLine:
    center_code: str
    machine_code: str
    hours: float
    ratio: float


@dataclass
class WorkerHoursDistribution:
    worker_id: int
    worker_name: str
    total_hours: float
    lines: List[WorkerHoursLine]


class _RowAccumulator:
    """
    Накопитель сумм по ключу (код центра, код машины | GENERAL)
    """

    def __init__(self):
        self._rows: Dict[Tuple[str, str], DistributionRow] = {}

    def add(self, center: Optional[CostCenter], machine_code: str, machine_name: str, amount: float) -> None:
        center_code = center.code if center else UNASSIGNED_CENTER_CODE
        center_name = center.name if center else UNASSIGNED_CENTER_CODE
        self.add_raw(center_code, center_name, machine_code, machine_name, amount)

    def add_raw(self, center_code: str, center_name: str, machine_code: str, machine_name: str, amount: float) -> None:
        key = (center_code, machine_code)
        row = self._rows.get(key)
        if row is None:
            row = DistributionRow(center_code, center_name, machine_code, machine_name, 0.0)
            self._rows[key] = row
        row.amount += amount

    def rows(self) -> List[DistributionRow]:
        return sorted(self._rows.values(), key=lambda r: (r.center_code, r.machine_code))


def _machine_labels(machine: Optional[Machine], machine_id: int) -> Tuple[str, str]:
    if machine is None:
        return f"#{machine_id}", UNKNOWN_MACHINE_NAME
    return machine.code, machine.name


def _distribute_into(
    accumulator: _RowAccumulator,
    source_totals: Dict[int, float],
    machines: Dict[int, Machine],
    centers: Dict[int, CostCenter],
    rules_by_origin: Dict[int, List[SpecificCostRule]],
    personal_reports: Iterable[PersonalReport]
) -> float:
    """
    Распределение исходных сумм по машинам в накопитель

    Returns:
        Нераспределённый остаток (правила с суммой процентов меньше 100)
    """
    hours_by_machine: Dict[int, Dict[Optional[int], float]] = {}
    for report in personal_reports:
        if report.machine_id is None:
            continue
        by_center = hours_by_machine.setdefault(report.machine_id, {})
        by_center[report.cost_center_id] = by_center.get(report.cost_center_id, 0.0) + (report.hours or 0.0)

    undistributed = 0.0

    for machine_id, total in source_totals.items():
        machine = machines.get(machine_id)
        machine_code, machine_name = _machine_labels(machine, machine_id)
        rules = rules_by_origin.get(machine_id) or []

        if rules:
            distributed_pct = 0.0
            for rule in rules:
                target_machine = machines.get(rule.target_machine_id) if rule.target_machine_id else None
                if target_machine is not None:
                    target_code, target_name = target_machine.code, target_machine.name
                else:
                    target_code, target_name = GENERAL_MACHINE_CODE, GENERAL_MACHINE_CODE
                accumulator.add(
                    centers.get(rule.target_center_id),
                    target_code,
                    target_name,
                    total * rule.percentage / 100
                )
                distributed_pct += rule.percentage
            if distributed_pct < 100 - PERCENTAGE_TOLERANCE:
                undistributed += total * (100 - distributed_pct) / 100
            continue

        center_hours = hours_by_machine.get(machine_id) or {}
        total_hours = sum(center_hours.values())
        if total_hours > 0:
            for center_id, hours in center_hours.items():
                center = centers.get(center_id) if center_id is not None else None
                accumulator.add(center, machine_code, machine_name, total * hours / total_hours)
            continue

        default_center = centers.get(machine.cost_center_id) if machine is not None else None
        accumulator.add(default_center, machine_code, machine_name, total)

    return undistributed


def distribute_source_totals(
    source_totals: Dict[int, float],
    machines: Dict[int, Machine],
    centers: Dict[int, CostCenter],
    rules_by_origin: Dict[int, List[SpecificCostRule]],
    personal_reports: Iterable[PersonalReport]
) -> Tuple[List[DistributionRow], float]:
    """
    Распределение сумм по машинам на пары (центр затрат, машина)

    Args:
        source_totals: ID машины -> сумма за период (литры или деньги)
        machines: ID -> машина (включая неактивные)
        centers: ID -> центр затрат
        rules_by_origin: ID исходной машины -> правила распределения
        personal_reports: Личные отчёты за тот же период

    Returns:
        tuple: (строки, отсортированные по коду центра и коду машины; нераспределённый остаток)

    Examples:
        Машина с правилами 60% и 30% и суммой 1000 даёт строки 600 и 300,
        остаток 100 возвращается как нераспределённый
    """
    accumulator = _RowAccumulator()
    undistributed = _distribute_into(
        accumulator, source_totals, machines, centers, rules_by_origin, personal_reports
    )
    return accumulator.rows(), undistributed


class CostDistributionService:
    """
    Сервис распределения топлива и затрат на персонал за месяц
    """

    def __init__(self, db: Session):
        self.db = db
        self.machine_repo = MachineRepository(db)
        self.center_repo = CostCenterRepository(db)
        self.rule_repo = CostRuleRepository(db)
        self.log_repo = OperationLogRepository(db)
        self.report_repo = PersonalReportRepository(db)
        self.worker_repo = WorkerRepository(db)

    def _load_reference_data(self) -> Tuple[Dict[int, Machine], Dict[int, CostCenter], Dict[int, List[SpecificCostRule]]]:
        machines, _ = self.machine_repo.get_all(limit=100000)
        centers = self.center_repo.get_all()
        return (
            {m.id: m for m in machines},
            {c.id: c for c in centers},
            self.rule_repo.get_grouped_by_origin(),
        )

    def distribute_fuel(self, year: int, month: int) -> DistributionResult:
        """
        Распределение заправленного за месяц топлива (литры)
        """
        date_from, date_to = month_bounds(year, month)
        machines, centers, rules = self._load_reference_data()
        reports = self.report_repo.get_range(date_from, date_to)
        litres = self.log_repo.sum_fuel_by_machine(date_from, date_to)

        rows, undistributed = distribute_source_totals(litres, machines, centers, rules, reports)
        result = DistributionResult(
            kind="fuel",
            year=year,
            month=month,
            total_source=sum(litres.values()),
            total_distributed=sum(row.amount for row in rows),
            undistributed=undistributed,
            rows=rows,
        )

        logger.info(
            "Распределение топлива рассчитано",
            extra={
                "year": year,
                "month": month,
                "machines_count": len(litres),
                "total_litres": result.total_source,
                "undistributed": undistributed
            }
        )
        return result

    def distribute_labor(self, year: int, month: int, entries: List[WorkerCostEntry]) -> DistributionResult:
        """
        Распределение затрат на персонал по внешней таблице

        Затраты работника делятся пропорционально его часам в личных отчётах:
        часы по машине уходят в общий механизм распределения как затраты машины,
        часы без машины сразу относятся на (центр, GENERAL).
        Строки без отработанных часов (нет соответствия или ноль часов) относятся на ADMON.
        """
        date_from, date_to = month_bounds(year, month)
        machines, centers, rules = self._load_reference_data()
        reports = self.report_repo.get_range(date_from, date_to)

        workers, _ = self.worker_repo.get_all(limit=100000)
        worker_names = {w.id: w.name for w in workers}
        name_index = build_name_index(worker_names)

        reports_by_worker: Dict[int, List[PersonalReport]] = {}
        for report in reports:
            reports_by_worker.setdefault(report.worker_id, []).append(report)

        accumulator = _RowAccumulator()
        machine_costs: Dict[int, float] = {}
        unmatched: List[UnmatchedCostEntry] = []
        admon_total = 0.0

        for entry in entries:
            worker_ids = name_index.get(normalize_person_name(entry.name))
            if not worker_ids:
                admon_total += entry.amount
                unmatched.append(self._build_unmatched(entry, worker_names))
                continue

            if len(worker_ids) > 1:
                logger.warning(
                    "Имя из таблицы затрат соответствует нескольким работникам, используется первый",
                    extra={"name": entry.name, "worker_ids": worker_ids}
                )

            worker_reports = reports_by_worker.get(worker_ids[0]) or []
            total_hours = sum(r.hours or 0.0 for r in worker_reports)
            if total_hours <= 0:
                admon_total += entry.amount
                continue

            for report in worker_reports:
                share = entry.amount * (report.hours or 0.0) / total_hours
                if report.machine_id is not None:
                    machine_costs[report.machine_id] = machine_costs.get(report.machine_id, 0.0) + share
                else:
                    center = centers.get(report.cost_center_id) if report.cost_center_id is not None else None
                    accumulator.add(center, GENERAL_MACHINE_CODE, GENERAL_MACHINE_CODE, share)

        undistributed = _distribute_into(accumulator, machine_costs, machines, centers, rules, reports)
        if admon_total:
            accumulator.add_raw(ADMON_CENTER_CODE, ADMON_CENTER_CODE, GENERAL_MACHINE_CODE, GENERAL_MACHINE_CODE, admon_total)

        rows = accumulator.rows()
        result = DistributionResult(
            kind="labor",
            year=year,
            month=month,
            total_source=sum(entry.amount for entry in entries),
            total_distributed=sum(row.amount for row in rows),
            undistributed=undistributed,
            rows=rows,
            admon_total=admon_total,
            unmatched=unmatched,
        )

        logger.info(
            "Распределение затрат на персонал рассчитано",
            extra={
                "year": year,
                "month": month,
                "entries_count": len(entries),
                "unmatched_count": len(unmatched),
                "admon_total": admon_total,
                "undistributed": undistributed
            }
        )
        return result

    @staticmethod
    def _build_unmatched(entry: WorkerCostEntry, worker_names: Dict[int, str]) -> UnmatchedCostEntry:
        similar = find_similar_name(entry.name, worker_names)
        if similar is None:
            return UnmatchedCostEntry(name=entry.name, amount=entry.amount)
        _, suggestion, score = similar
        return UnmatchedCostEntry(name=entry.name, amount=entry.amount, suggestion=suggestion, score=score)

    def get_worker_hours_distribution(self, year: int, month: int) -> List[WorkerHoursDistribution]:
        """
        Распределение часов каждого работника по центрам и машинам за месяц

        ratio выражен в долях единицы от всех часов работника за месяц
        """
        date_from, date_to = month_bounds(year, month)
        reports = self.report_repo.get_range(date_from, date_to)
        machines, centers, _ = self._load_reference_data()

        workers: Dict[int, Worker] = {
            w.id: w for w in self.worker_repo.get_by_ids(sorted({r.worker_id for r in reports}))
        }

        grouped: Dict[int, Dict[Tuple[str, str], float]] = {}
        for report in reports:
            center = centers.get(report.cost_center_id) if report.cost_center_id is not None else None
            center_code = center.code if center else UNASSIGNED_CENTER_CODE
            if report.machine_id is not None:
                machine_code, _ = _machine_labels(machines.get(report.machine_id), report.machine_id)
            else:
                machine_code = GENERAL_MACHINE_CODE
            lines = grouped.setdefault(report.worker_id, {})
            lines[(center_code, machine_code)] = lines.get((center_code, machine_code), 0.0) + (report.hours or 0.0)

        result: List[WorkerHoursDistribution] = []
        for worker_id, lines in grouped.items():
            total_hours = sum(lines.values())
            worker = workers.get(worker_id)
            result.append(WorkerHoursDistribution(
                worker_id=worker_id,
                worker_name=worker.name if worker else f"#{worker_id}",
                total_hours=total_hours,
                lines=[
                    WorkerHoursLine(
                        center_code=center_code,
                        machine_code=machine_code,
                        hours=hours,
                        ratio=round(hours / total_hours, 4) if total_hours > 0 else 0.0
                    )
                    for (center_code, machine_code), hours in sorted(lines.items())
                ]
            ))

        result.sort(key=lambda item: item.worker_name)
        return result
