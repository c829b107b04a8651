"""
Синхронизация офлайн-очереди и шлюз записи полевого клиента

Шлюз записи проверяет данные до постановки в очередь, без связи сохраняет запись
в очередь, при наличии связи пишет сразу (ошибки при этом не ставятся в очередь).
Движок синхронизации воспроизводит очередь по порядку и удаляет запись
только после подтверждённого успеха.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from gmao.exceptions import BusinessValidationError
from gmao.logger import logger
from gmao.middleware.prometheus_metrics import record_offline_event
from gmao.schemas import (
    CPDailyReportCreate,
    CPWeeklyPlanUpsert,
    CRDailyReportCreate,
    PersonalReportCreate,
    operation_log_adapter,
)
from gmao.services.entity_store import EntityStore
from gmao.services.offline_queue import OfflineQueue, PendingAction

# Тип записи -> метод хранилища
STORE_METHODS = {
    "LOG": "create_operation_log",
    "CP_REPORT": "create_cp_report",
    "CR_REPORT": "create_cr_report",
    "CP_PLAN": "upsert_cp_plan",
    "PERSONAL_REPORT": "create_personal_report",
}

PAYLOAD_SCHEMAS = {
    "CP_REPORT": CPDailyReportCreate,
    "CR_REPORT": CRDailyReportCreate,
    "CP_PLAN": CPWeeklyPlanUpsert,
    "PERSONAL_REPORT": PersonalReportCreate,
}


def _store_handler(store: EntityStore, action_type: str) -> Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]:
    method_name = STORE_METHODS.get(action_type)
    if method_name is None:
        raise BusinessValidationError(f"Неизвестный тип офлайн-записи: {action_type}")
    return getattr(store, method_name)


def validate_payload(action_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Проверка данных записи схемой и приведение к JSON-совместимому виду

    Raises:
        pydantic.ValidationError: Данные не проходят проверку схемы
        BusinessValidationError: Неизвестный тип записи
    """
    if action_type == "LOG":
        model = operation_log_adapter.validate_python(payload)
        return operation_log_adapter.dump_python(model, mode="json")

    schema = PAYLOAD_SCHEMAS.get(action_type)
    if schema is None:
        raise BusinessValidationError(f"Неизвестный тип офлайн-записи: {action_type}")
    model: BaseModel = schema.model_validate(payload)
    return model.model_dump(mode="json")


@dataclass
class SubmitResult:
    queued: bool
    action_id: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


@dataclass
class SyncResult:
    """
    Итог прохода синхронизации

    skipped: проход не выполнялся (нет связи или уже идёт другой проход)
    deferred: записи LOG, отложенные из-за неудачи более ранней записи той же машины
    """
    synced: int = 0
    failed: int = 0
    deferred: int = 0
    remaining: int = 0
    skipped: bool = False


class OfflineWriteGateway:
    """
    Точка записи полевого клиента
    """

    def __init__(self, queue: OfflineQueue, store: EntityStore):
        self.queue = queue
        self.store = store

    async def submit(self, action_type: str, payload: Dict[str, Any], is_online: bool) -> SubmitResult:
        """
        Запись с учётом состояния связи

        Args:
            action_type: LOG, CP_REPORT, CR_REPORT, CP_PLAN или PERSONAL_REPORT
            payload: Данные записи
            is_online: Есть ли связь с сервером

        Returns:
            SubmitResult: queued=True и ID записи очереди без связи,
            либо ответ хранилища при наличии связи
        """
        data = validate_payload(action_type, payload)

        if not is_online:
            action = self.queue.enqueue(action_type, data)
            return SubmitResult(queued=True, action_id=action.id)

        handler = _store_handler(self.store, action_type)
        result = await handler(data)
        return SubmitResult(queued=False, result=result)


class SyncEngine:
    """
    Движок воспроизведения офлайн-очереди

    Одновременно выполняется не более одного прохода: повторный вызов во время
    прохода сразу возвращает skipped=True. Записи воспроизводятся по одной
    в порядке постановки. Записи LOG одной машины применяются строго по порядку:
    после неудачи все следующие записи LOG этой машины ждут следующего прохода.
    """

    def __init__(self, queue: OfflineQueue, store: EntityStore):
        self.queue = queue
        self.store = store
        self._lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    async def _replay(self, action: PendingAction) -> None:
        handler = _store_handler(self.store, action.type)
        await handler(action.payload)

    async def sync(self, is_online: bool) -> SyncResult:
        """
        Один проход синхронизации

        Успешно записанная запись удаляется из очереди, неудачная остаётся
        на своём месте с увеличенным retry_count. Повторная попытка будет
        в следующем проходе.
        """
        if not is_online:
            return SyncResult(remaining=len(self.queue), skipped=True)

        if self._lock.locked():
            logger.debug("Синхронизация уже выполняется, проход пропущен")
            return SyncResult(remaining=len(self.queue), skipped=True)

        async with self._lock:
            snapshot = self.queue.get_queue()
            if not snapshot:
                return SyncResult()

            logger.info("Начало синхронизации офлайн-очереди", extra={"queue_size": len(snapshot)})

            synced = 0
            failed = 0
            deferred = 0
            blocked_machines = set()
            for action in snapshot:
                machine_id = action.payload.get("machine_id") if action.type == "LOG" else None
                if machine_id is not None and machine_id in blocked_machines:
                    deferred += 1
                    continue

                try:
                    await self._replay(action)
                except Exception as e:
                    failed += 1
                    if machine_id is not None:
                        blocked_machines.add(machine_id)
                    updated = self.queue.mark_failed(action.id)
                    record_offline_event("failed")
                    logger.warning(
                        "Не удалось синхронизировать офлайн-запись",
                        extra={
                            "action_id": action.id,
                            "action_type": action.type,
                            "retry_count": updated.retry_count if updated else action.retry_count + 1,
                            "error": str(e),
                            "error_type": type(e).__name__
                        }
                    )
                    continue

                self.queue.remove(action.id)
                synced += 1
                record_offline_event("synced")

            result = SyncResult(synced=synced, failed=failed, deferred=deferred, remaining=len(self.queue))

        logger.info(
            "Синхронизация офлайн-очереди завершена",
            extra={
                "synced": result.synced,
                "failed": result.failed,
                "deferred": result.deferred,
                "remaining": result.remaining
            }
        )
        return result
