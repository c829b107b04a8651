"""
Репозитории для работы с данными
"""
from .worker_repository import WorkerRepository
from .cost_center_repository import CostCenterRepository
from .machine_repository import MachineRepository
from .operation_log_repository import OperationLogRepository
from .personal_report_repository import PersonalReportRepository
from .production_report_repository import ProductionReportRepository
from .cost_rule_repository import CostRuleRepository

__all__ = [
    "WorkerRepository",
    "CostCenterRepository",
    "MachineRepository",
    "OperationLogRepository",
    "PersonalReportRepository",
    "ProductionReportRepository",
    "CostRuleRepository",
]
