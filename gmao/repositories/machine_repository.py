"""
Репозиторий для работы с машинами и определениями планового обслуживания
"""
from sqlalchemy.orm import Session, selectinload
from typing import Dict, Optional, List, Tuple
from gmao.models import Machine, MaintenanceDefinition, OperationLog, PersonalReport


class MachineRepository:
    """
    Репозиторий для работы с машинами
    Инкапсулирует логику доступа к данным
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, machine_id: int) -> Optional[Machine]:
        """
        Получение машины по ID вместе с определениями обслуживания
        """
        return (
            self.db.query(Machine)
            .options(selectinload(Machine.maintenance_definitions))
            .filter(Machine.id == machine_id)
            .first()
        )

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        cost_center_id: Optional[int] = None,
        active: Optional[bool] = None,
        selectable_for_reports: Optional[bool] = None
    ) -> Tuple[List[Machine], int]:
        """
        Получение списка машин с фильтрацией

        Returns:
            tuple: (список машин, общее количество)
        """
        query = self.db.query(Machine).options(selectinload(Machine.maintenance_definitions))

        if cost_center_id is not None:
            query = query.filter(Machine.cost_center_id == cost_center_id)
        if active is not None:
            query = query.filter(Machine.active == active)
        if selectable_for_reports is not None:
            query = query.filter(Machine.selectable_for_reports == selectable_for_reports)

        total = query.count()
        machines = query.order_by(Machine.name).offset(skip).limit(limit).all()

        return machines, total

    def get_by_ids(self, machine_ids: List[int]) -> List[Machine]:
        """
        Получение списка машин по списку ID
        """
        if not machine_ids:
            return []
        return self.db.query(Machine).filter(Machine.id.in_(machine_ids)).all()

    def create(self, definitions: List[dict], **fields) -> Machine:
        """
        Создание машины вместе с её определениями обслуживания
        """
        machine = Machine(**fields)
        machine.maintenance_definitions = [MaintenanceDefinition(**d) for d in definitions]
        self.db.add(machine)
        self.db.flush()
        return machine

    def get_definition(self, definition_id: int) -> Optional[MaintenanceDefinition]:
        return self.db.query(MaintenanceDefinition).filter(MaintenanceDefinition.id == definition_id).first()

    def add_definition(self, machine: Machine, **fields) -> MaintenanceDefinition:
        definition = MaintenanceDefinition(**fields)
        machine.maintenance_definitions.append(definition)
        self.db.flush()
        return definition

    def count_dependents(self, machine_id: int) -> Dict[str, int]:
        """
        Подсчёт записей, блокирующих удаление машины

        Returns:
            Словарь: тип зависимой записи -> количество
        """
        return {
            "operation_logs": self.db.query(OperationLog).filter(OperationLog.machine_id == machine_id).count(),
            "personal_reports": self.db.query(PersonalReport).filter(PersonalReport.machine_id == machine_id).count(),
        }

    def delete(self, machine: Machine) -> None:
        """
        Удаление машины (определения обслуживания удаляются каскадно)
        """
        self.db.delete(machine)
        self.db.flush()
