"""
Скрипт синхронизации офлайн-очереди полевого терминала

Без аргументов выполняет один проход синхронизации,
с аргументом --watch синхронизирует периодически (SYNC_INTERVAL_SECONDS)
"""
import sys
import os
import asyncio

# Добавляем путь к приложению
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gmao.field_client import build_field_client
from gmao.logger import logger
from gmao.services.scheduler_service import SyncScheduler


async def sync_once():
    client = build_field_client()
    try:
        is_online = await client.store.check_connectivity()
        result = await client.engine.sync(is_online)
        print(
            f"Синхронизировано: {result.synced}, ошибок: {result.failed}, "
            f"отложено: {result.deferred}, "
            f"осталось в очереди: {result.remaining}"
            + (" (пропущено: нет связи)" if result.skipped else "")
        )
        return result
    finally:
        await client.aclose()


async def sync_forever():
    client = build_field_client()
    scheduler = SyncScheduler.get_instance()
    try:
        scheduler.start(client.engine, client.store)
        # Первый проход сразу, не дожидаясь интервала
        await scheduler.run_once()
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await client.aclose()


if __name__ == "__main__":
    try:
        if "--watch" in sys.argv[1:]:
            asyncio.run(sync_forever())
        else:
            asyncio.run(sync_once())
    except KeyboardInterrupt:
        logger.info("Синхронизация остановлена пользователем")
