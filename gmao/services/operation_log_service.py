"""
Сервис для работы с записями операций
Запись операции, обновление моточасов машины, перенос базы планового обслуживания
и проверка порогов уведомлений выполняются одной транзакцией,
уведомления отправляются после её фиксации
"""
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gmao.exceptions import BusinessValidationError, EntityNotFoundError
from gmao.logger import logger
from gmao.middleware.prometheus_metrics import record_operation_log
from gmao.models import OperationLog
from gmao.repositories.machine_repository import MachineRepository
from gmao.repositories.operation_log_repository import OperationLogRepository
from gmao.repositories.personal_report_repository import PersonalReportRepository
from gmao.repositories.worker_repository import WorkerRepository
from gmao.schemas import OperationLogCreate, OperationLogUpdate
from gmao.services.maintenance_scheduler import apply_scheduled_execution
from gmao.services.notification_service import MaintenanceAlert, MaintenanceNotifier
from gmao.utils.date_utils import system_today
from gmao.validators import validate_hours_reading


class OperationLogService:
    """
    Сервис для работы с записями операций
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[MaintenanceNotifier] = None,
        clock: Callable[[], date] = system_today
    ):
        self.db = db
        self.log_repo = OperationLogRepository(db)
        self.machine_repo = MachineRepository(db)
        self.worker_repo = WorkerRepository(db)
        self.report_repo = PersonalReportRepository(db)
        self.notifier = notifier or MaintenanceNotifier(clock=clock)

    def create_log(self, data: OperationLogCreate) -> OperationLog:
        """
        Создание записи операции

        В одной транзакции:
        1. вставка записи;
        2. обновление моточасов машины, если показание не меньше текущего;
        3. для SCHEDULED перенос базы расчёта планового обслуживания;
        4. проверка порогов и подготовка уведомлений.
        Любая ошибка откатывает всё целиком. Письма уходят только после commit.

        Args:
            data: Вариант размеченного объединения по полю type

        Returns:
            OperationLog: созданная запись

        Raises:
            EntityNotFoundError: Машина, работник или определение обслуживания не найдены
            BusinessValidationError: Показание моточасов отсутствует или меньше текущего
        """
        machine = self.machine_repo.get_by_id(data.machine_id)
        if not machine:
            raise EntityNotFoundError("Машина", data.machine_id)

        if not self.worker_repo.get_by_id(data.worker_id):
            raise EntityNotFoundError("Работник", data.worker_id)

        definition = None
        if data.type == "SCHEDULED":
            definition = self.machine_repo.get_definition(data.maintenance_def_id)
            if definition is None or definition.machine_id != machine.id:
                raise BusinessValidationError(
                    f"Плановое обслуживание {data.maintenance_def_id} не относится к машине «{machine.name}»"
                )

        new_hours = data.hours_at_execution
        validate_hours_reading(machine.current_hours, new_hours, machine.requires_hours)

        try:
            log = self.log_repo.create(**data.model_dump())

            hours_updated = False
            if new_hours is not None and new_hours >= (machine.current_hours or 0):
                machine.current_hours = new_hours
                hours_updated = True

            if definition is not None:
                apply_scheduled_execution(definition, new_hours, data.date.date())

            alerts: List[MaintenanceAlert] = []
            if hours_updated or definition is not None:
                alerts = self.notifier.check_maintenance_thresholds(machine, new_hours).alerts

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Ошибка при создании записи операции, транзакция откачена",
                extra={
                    "machine_id": data.machine_id,
                    "type": data.type,
                    "hours_at_execution": new_hours,
                    "error": str(e)
                },
                exc_info=not isinstance(e, BusinessValidationError)
            )
            raise

        self.db.refresh(log)
        record_operation_log(log.type)
        if alerts:
            self._send_alerts(alerts, log.id)

        logger.info(
            "Запись операции создана",
            extra={
                "log_id": log.id,
                "machine_id": machine.id,
                "type": log.type,
                "hours_at_execution": new_hours,
                "machine_current_hours": machine.current_hours
            }
        )
        return log

    def _send_alerts(self, alerts: List[MaintenanceAlert], log_id: int) -> None:
        """
        Отправка уведомлений после сохранения записи и сохранение флагов порогов

        Запись операции уже сохранена, поэтому ошибка сохранения флагов
        не отменяет её: уведомление повторится при следующей проверке.
        """
        if not self.notifier.send_alerts(alerts):
            return
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Не удалось сохранить флаги уведомлений об обслуживании",
                extra={"log_id": log_id, "error": str(e)},
                exc_info=True
            )

    def update_log(self, log_id: int, data: OperationLogUpdate) -> OperationLog:
        """
        Административная правка записи операции

        Меняет только саму запись: моточасы машины и планы обслуживания не пересчитываются
        """
        log = self.log_repo.get_by_id(log_id)
        if not log:
            raise EntityNotFoundError("Запись операции", log_id)

        changes = data.model_dump(exclude_unset=True)
        if "worker_id" in changes and not self.worker_repo.get_by_id(changes["worker_id"]):
            raise EntityNotFoundError("Работник", changes["worker_id"])

        for field, value in changes.items():
            setattr(log, field, value)

        self.db.commit()
        self.db.refresh(log)

        logger.info(
            "Запись операции исправлена администратором",
            extra={"log_id": log_id, "fields": sorted(changes.keys())}
        )
        return log

    def get_log(self, log_id: int) -> Optional[OperationLog]:
        return self.log_repo.get_by_id(log_id)

    def get_logs(
        self,
        skip: int = 0,
        limit: int = 100,
        machine_id: Optional[int] = None,
        log_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Tuple[List[OperationLog], int]:
        """
        Получение списка записей операций с фильтрацией

        Returns:
            tuple: (список записей, общее количество)
        """
        return self.log_repo.get_all(
            skip=skip,
            limit=limit,
            machine_id=machine_id,
            log_type=log_type,
            date_from=date_from,
            date_to=date_to
        )

    def get_daily_audit(self, day: date) -> Dict[str, Any]:
        """
        Все записи операций и личные отчёты за день
        """
        return {
            "date": day,
            "operation_logs": self.log_repo.get_for_day(day),
            "personal_reports": self.report_repo.get_range(day, day),
        }
