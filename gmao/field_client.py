"""
Сборка полевого клиента: офлайн-очередь, хранилище, шлюз записи и движок синхронизации
"""
from dataclasses import dataclass
from typing import Optional

from gmao.config import Settings, get_settings
from gmao.services.entity_store import EntityStore, HttpEntityStore
from gmao.services.offline_queue import JsonFileQueueStorage, OfflineQueue
from gmao.services.sync_service import OfflineWriteGateway, SyncEngine


@dataclass
class FieldClient:
    queue: OfflineQueue
    store: EntityStore
    gateway: OfflineWriteGateway
    engine: SyncEngine

    async def aclose(self) -> None:
        if isinstance(self.store, HttpEntityStore):
            await self.store.aclose()


def build_field_client(
    settings: Optional[Settings] = None,
    store: Optional[EntityStore] = None
) -> FieldClient:
    """
    Полевой клиент по настройкам: очередь в JSON файле, запись через HTTP API сервера
    """
    settings = settings or get_settings()
    queue = OfflineQueue(JsonFileQueueStorage(settings.offline_queue_path))
    store = store or HttpEntityStore(
        settings.remote_api_url,
        timeout=settings.remote_api_timeout,
        terminal_id=settings.terminal_id
    )
    return FieldClient(
        queue=queue,
        store=store,
        gateway=OfflineWriteGateway(queue, store),
        engine=SyncEngine(queue, store),
    )
