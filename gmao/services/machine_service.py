"""
Сервис для работы с машинами и их плановым обслуживанием
Содержит бизнес-логику поверх репозитория
"""
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from gmao.config import get_settings
from gmao.exceptions import BusinessValidationError, DependencyBlockedError, EntityNotFoundError
from gmao.logger import logger
from gmao.models import Machine, MaintenanceDefinition
from gmao.repositories.cost_center_repository import CostCenterRepository
from gmao.repositories.machine_repository import MachineRepository
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import (
    MachineCreate,
    MachineUpdate,
    MaintenanceDefinitionCreate,
    MaintenanceDefinitionUpdate,
)
from gmao.services.maintenance_scheduler import MaintenanceDueInfo, compute_machine_status
from gmao.utils.date_utils import system_today
from gmao.validators import validate_expense_flags, validate_hours_reading, validate_maintenance_definition

settings = get_settings()

# Поля машины, которые можно явно сбросить в null
NULLABLE_MACHINE_FIELDS = {"sub_center_id", "company_code", "responsible_worker_id"}


@dataclass
class PendingMaintenance:
    """
    Строка отчёта о предстоящем или просроченном обслуживании
    """
    machine_id: int
    machine_name: str
    cost_center_id: int
    current_hours: float
    item: MaintenanceDueInfo


def _validate_definition(definition) -> None:
    validate_maintenance_definition(
        definition.maintenance_type,
        interval_hours=definition.interval_hours,
        warning_hours=definition.warning_hours,
        interval_months=definition.interval_months,
        next_date=definition.next_date
    )


class MachineService:
    """
    Сервис для работы с машинами
    """

    def __init__(self, db: Session, clock: Callable[[], date] = system_today):
        self.db = db
        self.clock = clock
        self.machine_repo = MachineRepository(db)
        self.center_repo = CostCenterRepository(db)
        self.worker_repo = WorkerRepository(db)

    def _require_machine(self, machine_id: int) -> Machine:
        machine = self.machine_repo.get_by_id(machine_id)
        if not machine:
            raise EntityNotFoundError("Машина", machine_id)
        return machine

    def _check_references(
        self,
        cost_center_id: Optional[int],
        responsible_worker_id: Optional[int],
        sub_center_id: Optional[int] = None
    ) -> None:
        if cost_center_id is not None and not self.center_repo.get_by_id(cost_center_id):
            raise EntityNotFoundError("Центр затрат", cost_center_id)
        if responsible_worker_id is not None and not self.worker_repo.get_by_id(responsible_worker_id):
            raise EntityNotFoundError("Работник", responsible_worker_id)
        if sub_center_id is not None:
            sub_center = self.center_repo.get_sub_center(sub_center_id)
            if not sub_center:
                raise EntityNotFoundError("Подцентр", sub_center_id)
            if cost_center_id is not None and sub_center.center_id != cost_center_id:
                raise BusinessValidationError("Подцентр не относится к выбранному центру затрат")

    def create_machine(self, data: MachineCreate) -> Machine:
        """
        Создание машины вместе с определениями обслуживания

        Raises:
            BusinessValidationError: Нарушены правила расходов или режима обслуживания
            EntityNotFoundError: Центр затрат или ответственный работник не найдены
        """
        validate_expense_flags(data.admin_expenses, data.transport_expenses)
        for definition in data.maintenance_definitions:
            _validate_definition(definition)
        self._check_references(data.cost_center_id, data.responsible_worker_id, data.sub_center_id)

        fields = data.model_dump(exclude={"maintenance_definitions"})
        definitions = [d.model_dump() for d in data.maintenance_definitions]

        machine = self.machine_repo.create(definitions, **fields)
        self.db.commit()
        self.db.refresh(machine)

        logger.info(
            "Машина создана",
            extra={
                "machine_id": machine.id,
                "machine_name": machine.name,
                "definitions_count": len(definitions)
            }
        )
        return machine

    def get_machine(self, machine_id: int) -> Optional[Machine]:
        """
        Получение машины по ID
        """
        return self.machine_repo.get_by_id(machine_id)

    def get_machines(
        self,
        skip: int = 0,
        limit: int = 100,
        cost_center_id: Optional[int] = None,
        active: Optional[bool] = None,
        selectable_for_reports: Optional[bool] = None
    ) -> Tuple[List[Machine], int]:
        return self.machine_repo.get_all(
            skip=skip,
            limit=limit,
            cost_center_id=cost_center_id,
            active=active,
            selectable_for_reports=selectable_for_reports
        )

    def update_machine(self, machine_id: int, data: MachineUpdate) -> Machine:
        """
        Обновление атрибутов машины

        Моточасы через обновление атрибутов могут только расти, как и через записи операций.
        """
        machine = self._require_machine(machine_id)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_MACHINE_FIELDS
        }

        validate_expense_flags(
            changes.get("admin_expenses", machine.admin_expenses),
            changes.get("transport_expenses", machine.transport_expenses)
        )
        if changes.get("current_hours") is not None:
            validate_hours_reading(machine.current_hours, changes["current_hours"], requires_hours=False)
        self._check_references(
            changes.get("cost_center_id"),
            changes.get("responsible_worker_id"),
            changes.get("sub_center_id")
        )

        for field, value in changes.items():
            setattr(machine, field, value)

        self.db.commit()
        self.db.refresh(machine)

        logger.info("Машина обновлена", extra={"machine_id": machine_id, "fields": sorted(changes.keys())})
        return machine

    def deactivate_machine(self, machine_id: int) -> Machine:
        """
        Мягкое удаление машины: история операций сохраняется
        """
        machine = self._require_machine(machine_id)
        machine.active = False
        self.db.commit()
        self.db.refresh(machine)
        logger.info("Машина деактивирована", extra={"machine_id": machine_id})
        return machine

    def delete_machine(self, machine_id: int) -> None:
        """
        Удаление машины

        Raises:
            DependencyBlockedError: У машины есть записи операций или личные отчёты
        """
        machine = self._require_machine(machine_id)

        dependents = self.machine_repo.count_dependents(machine_id)
        if any(dependents.values()):
            error = DependencyBlockedError("машину", machine_id, dependents)
            logger.warning(
                "Удаление машины заблокировано зависимыми записями",
                extra={"machine_id": machine_id, "dependents": error.dependents}
            )
            raise error

        self.machine_repo.delete(machine)
        self.db.commit()
        logger.info("Машина удалена", extra={"machine_id": machine_id})

    def add_definition(self, machine_id: int, data: MaintenanceDefinitionCreate) -> MaintenanceDefinition:
        """
        Добавление определения планового обслуживания к машине
        """
        machine = self._require_machine(machine_id)
        _validate_definition(data)

        definition = self.machine_repo.add_definition(machine, **data.model_dump())
        self.db.commit()
        self.db.refresh(definition)
        return definition

    def update_definition(self, definition_id: int, data: MaintenanceDefinitionUpdate) -> MaintenanceDefinition:
        definition = self.machine_repo.get_definition(definition_id)
        if not definition:
            raise EntityNotFoundError("Плановое обслуживание", definition_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(definition, field, value)
        _validate_definition(definition)

        self.db.commit()
        self.db.refresh(definition)
        return definition

    def delete_definition(self, definition_id: int) -> None:
        definition = self.machine_repo.get_definition(definition_id)
        if not definition:
            raise EntityNotFoundError("Плановое обслуживание", definition_id)
        self.db.delete(definition)
        self.db.commit()

    def get_machine_status(self, machine_id: int) -> List[MaintenanceDueInfo]:
        """
        Статус всех плановых обслуживаний машины на текущую дату
        """
        machine = self._require_machine(machine_id)
        return compute_machine_status(
            machine,
            self.clock(),
            date_warning_days=settings.maintenance_date_warning_days,
            default_last_hours=settings.default_last_maintenance_hours
        )

    def get_pending_maintenance(self) -> List[PendingMaintenance]:
        """
        Отчёт о предстоящих и просроченных обслуживаниях по всем активным машинам
        Сначала просроченные, затем по наименованию машины
        """
        machines, _ = self.machine_repo.get_all(limit=100000, active=True)
        today = self.clock()

        pending: List[PendingMaintenance] = []
        for machine in machines:
            for info in compute_machine_status(
                machine,
                today,
                date_warning_days=settings.maintenance_date_warning_days,
                default_last_hours=settings.default_last_maintenance_hours
            ):
                if info.is_pending:
                    pending.append(PendingMaintenance(
                        machine_id=machine.id,
                        machine_name=machine.name,
                        cost_center_id=machine.cost_center_id,
                        current_hours=machine.current_hours,
                        item=info
                    ))

        pending.sort(key=lambda p: (p.item.status != "OVERDUE", p.machine_name, p.item.name))
        return pending
