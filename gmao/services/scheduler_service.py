"""
Планировщики задач (APScheduler)

SchedulerService: задачи сервера, ежедневная проверка сроков планового обслуживания
(обслуживание по дате не проверяется при записи операций, только по расписанию).
SyncScheduler: периодическая синхронизация офлайн-очереди полевого клиента.
"""
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from gmao.config import get_settings
from gmao.database import SessionLocal
from gmao.logger import logger
from gmao.middleware.prometheus_metrics import update_maintenance_due
from gmao.repositories.machine_repository import MachineRepository
from gmao.services.entity_store import EntityStore
from gmao.services.maintenance_scheduler import STATUS_OVERDUE, STATUS_WARNING
from gmao.services.notification_service import MaintenanceNotifier
from gmao.services.sync_service import SyncEngine, SyncResult

settings = get_settings()

MAINTENANCE_CHECK_JOB_ID = "maintenance_daily_check"
SYNC_JOB_ID = "offline_queue_sync"


def run_maintenance_check(
    session_factory: Callable[[], Session] = SessionLocal,
    notifier: Optional[MaintenanceNotifier] = None
) -> int:
    """
    Проверка порогов обслуживания всех активных машин

    Returns:
        Количество отправленных уведомлений
    """
    notifier = notifier or MaintenanceNotifier()
    db = session_factory()
    try:
        machines, _ = MachineRepository(db).get_all(limit=100000, active=True)
        due = {STATUS_WARNING: 0, STATUS_OVERDUE: 0}
        alerts = []
        for machine in machines:
            check = notifier.check_maintenance_thresholds(machine, machine.current_hours)
            alerts.extend(check.alerts)
            for info in check.statuses:
                if info.status in due:
                    due[info.status] += 1
        # Сброс флагов OK фиксируется до отправки писем
        db.commit()

        notified_count = len(notifier.send_alerts(alerts))
        if notified_count:
            db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Ошибка ежедневной проверки обслуживания", extra={
            "error": str(e),
            "event_type": "scheduler",
            "event_category": "maintenance"
        }, exc_info=True)
        raise
    finally:
        db.close()

    update_maintenance_due(due[STATUS_WARNING], due[STATUS_OVERDUE])
    logger.info("Ежедневная проверка обслуживания выполнена", extra={
        "machines_count": len(machines),
        "notified_count": notified_count,
        "warning_count": due[STATUS_WARNING],
        "overdue_count": due[STATUS_OVERDUE],
        "event_type": "scheduler",
        "event_category": "maintenance"
    })
    return notified_count


class SchedulerService:
    """
    Планировщик задач сервера
    """

    _instance: Optional['SchedulerService'] = None
    _scheduler: Optional[AsyncIOScheduler] = None

    def __init__(self):
        if SchedulerService._instance is not None:
            raise RuntimeError("SchedulerService is a singleton. Use get_instance() instead.")
        self._scheduler = AsyncIOScheduler()
        SchedulerService._instance = self

    @classmethod
    def get_instance(cls) -> 'SchedulerService':
        """
        Получить экземпляр планировщика (singleton)
        """
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def start(self):
        """
        Запустить планировщик
        """
        try:
            if self._scheduler.running:
                logger.warning("Планировщик уже запущен", extra={
                    "event_type": "scheduler",
                    "event_category": "startup"
                })
                return

            self._scheduler.add_job(
                run_maintenance_check,
                trigger=CronTrigger(hour=settings.maintenance_check_hour, minute=0),
                id=MAINTENANCE_CHECK_JOB_ID,
                replace_existing=True,
                max_instances=1
            )
            self._scheduler.start()
            logger.info("Планировщик задач запущен", extra={
                "maintenance_check_hour": settings.maintenance_check_hour,
                "event_type": "scheduler",
                "event_category": "startup"
            })
        except Exception as e:
            logger.error("Критическая ошибка при запуске планировщика", extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "event_type": "scheduler",
                "event_category": "startup"
            }, exc_info=True)
            raise

    def shutdown(self):
        """
        Остановить планировщик
        """
        if self._scheduler.running:
            self._scheduler.shutdown()
            logger.info("Планировщик задач остановлен")

    def get_status(self) -> Dict[str, Any]:
        job = self._scheduler.get_job(MAINTENANCE_CHECK_JOB_ID) if self._scheduler.running else None
        return {
            "running": self._scheduler.running,
            "next_maintenance_check": job.next_run_time.isoformat() if job and job.next_run_time else None
        }


class SyncScheduler:
    """
    Периодическая синхронизация офлайн-очереди

    Перед каждым проходом проверяется связь с сервером
    """

    _instance: Optional['SyncScheduler'] = None

    def __init__(self):
        if SyncScheduler._instance is not None:
            raise RuntimeError("SyncScheduler is a singleton. Use get_instance() instead.")
        self._scheduler = AsyncIOScheduler()
        self._engine: Optional[SyncEngine] = None
        self._store: Optional[EntityStore] = None
        self.last_result: Optional[SyncResult] = None
        SyncScheduler._instance = self

    @classmethod
    def get_instance(cls) -> 'SyncScheduler':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def run_once(self) -> SyncResult:
        """
        Проверка связи и один проход синхронизации
        """
        if self._engine is None or self._store is None:
            raise RuntimeError("SyncScheduler не настроен: вызовите start()")

        is_online = await self._store.check_connectivity()
        self.last_result = await self._engine.sync(is_online)
        return self.last_result

    def start(self, engine: SyncEngine, store: EntityStore, interval_seconds: Optional[int] = None):
        """
        Запустить периодическую синхронизацию (нужен работающий event loop)
        """
        self._engine = engine
        self._store = store
        interval = interval_seconds or settings.sync_interval_seconds

        if self._scheduler.running:
            logger.warning("Планировщик синхронизации уже запущен")
            return

        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=interval),
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self._scheduler.start()
        logger.info("Планировщик синхронизации запущен", extra={
            "interval_seconds": interval,
            "event_type": "scheduler",
            "event_category": "sync"
        })

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown()
            logger.info("Планировщик синхронизации остановлен")
