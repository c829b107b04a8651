"""
Тесты шлюза записи и движка синхронизации офлайн-очереди
"""
import asyncio
import json
import httpx
import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from gmao.exceptions import BusinessValidationError
from gmao.models import Machine, OperationLog, Worker
from gmao.services.entity_store import EntityStore, HttpEntityStore, SqlEntityStore
from gmao.services.offline_queue import InMemoryQueueStorage, OfflineQueue
from gmao.services.sync_service import OfflineWriteGateway, SyncEngine, validate_payload


def log_payload(machine_id=1, worker_id=1, hours=95.0):
    return {
        "type": "LEVELS",
        "date": "2024-06-10T08:00:00",
        "worker_id": worker_id,
        "machine_id": machine_id,
        "hours_at_execution": hours
    }


class RecordingStore(EntityStore):
    """Хранилище, запоминающее вызовы; может падать на заданных записях"""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on or (lambda payload: False)

    async def _record(self, kind, payload):
        if self.fail_on(payload):
            raise RuntimeError("сервер отклонил запись")
        self.calls.append((kind, payload))
        return {"id": len(self.calls)}

    async def create_operation_log(self, payload):
        return await self._record("LOG", payload)

    async def create_cp_report(self, payload):
        return await self._record("CP_REPORT", payload)

    async def create_cr_report(self, payload):
        return await self._record("CR_REPORT", payload)

    async def create_personal_report(self, payload):
        return await self._record("PERSONAL_REPORT", payload)

    async def upsert_cp_plan(self, payload):
        return await self._record("CP_PLAN", payload)


class BlockingStore(RecordingStore):
    """Хранилище, которое ждёт разрешения перед каждой записью"""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def _record(self, kind, payload):
        self.started.set()
        await self.release.wait()
        return await super()._record(kind, payload)


@pytest.fixture
def queue():
    return OfflineQueue(InMemoryQueueStorage())


class TestValidatePayload:

    def test_log_payload_normalized_to_json(self):
        data = validate_payload("LOG", log_payload())
        assert data["type"] == "LEVELS"
        assert data["date"] == "2024-06-10T08:00:00"

    def test_invalid_payload_raises(self):
        with pytest.raises(ValidationError):
            validate_payload("CP_REPORT", {"date": "2024-06-10"})

    def test_unknown_type_raises(self):
        with pytest.raises(BusinessValidationError):
            validate_payload("PHOTO", {})


class TestOfflineWriteGateway:

    @pytest.mark.asyncio
    async def test_offline_write_is_queued(self, queue):
        store = RecordingStore()
        gateway = OfflineWriteGateway(queue, store)

        result = await gateway.submit("LOG", log_payload(), is_online=False)

        assert result.queued is True
        assert queue.get_queue()[0].id == result.action_id
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_online_write_goes_to_store(self, queue):
        store = RecordingStore()
        gateway = OfflineWriteGateway(queue, store)

        result = await gateway.submit("CP_PLAN", {"monday_date": "2024-06-10", "monday_hours": 8}, is_online=True)

        assert result.queued is False
        assert result.result == {"id": 1}
        assert store.calls[0][0] == "CP_PLAN"
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_online_failure_is_not_queued(self, queue):
        store = RecordingStore(fail_on=lambda payload: True)
        gateway = OfflineWriteGateway(queue, store)

        with pytest.raises(RuntimeError):
            await gateway.submit("LOG", log_payload(), is_online=True)
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_invalid_payload_never_queued(self, queue):
        gateway = OfflineWriteGateway(queue, RecordingStore())
        with pytest.raises(ValidationError):
            await gateway.submit("LOG", {"type": "LEVELS"}, is_online=False)
        assert len(queue) == 0


class TestSyncEngine:

    @pytest.mark.asyncio
    async def test_offline_sync_is_noop(self, queue):
        queue.enqueue("LOG", log_payload())
        store = RecordingStore()

        result = await SyncEngine(queue, store).sync(is_online=False)

        assert result.skipped is True
        assert result.remaining == 1
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_replays_in_fifo_order(self, queue):
        for hours in (91, 92, 93):
            queue.enqueue("LOG", log_payload(hours=hours))
        store = RecordingStore()

        result = await SyncEngine(queue, store).sync(is_online=True)

        assert result.synced == 3
        assert result.failed == 0
        assert result.remaining == 0
        assert [payload["hours_at_execution"] for _, payload in store.calls] == [91, 92, 93]

    @pytest.mark.asyncio
    async def test_failed_action_stays_with_retry_count(self, queue):
        queue.enqueue("LOG", log_payload(hours=91))
        bad = queue.enqueue("LOG", log_payload(hours=-1))
        queue.enqueue("LOG", log_payload(machine_id=2, hours=93))
        store = RecordingStore(fail_on=lambda payload: payload.get("hours_at_execution") == -1)
        engine = SyncEngine(queue, store)

        result = await engine.sync(is_online=True)

        assert (result.synced, result.failed, result.remaining) == (2, 1, 1)
        remaining = queue.get_queue()
        assert remaining[0].id == bad.id
        assert remaining[0].retry_count == 1

        await engine.sync(is_online=True)
        assert queue.get_queue()[0].retry_count == 2

    @pytest.mark.asyncio
    async def test_later_logs_of_failed_machine_wait(self, queue):
        first = queue.enqueue("LOG", log_payload(machine_id=1, hours=95))
        queue.enqueue("LOG", log_payload(machine_id=1, hours=105))
        queue.enqueue("LOG", log_payload(machine_id=2, hours=40))
        queue.enqueue("CP_PLAN", {"monday_date": "2024-06-10", "monday_hours": 8})
        failures = {"left": 1}

        def fail_once(payload):
            if failures["left"] and payload.get("hours_at_execution") == 95:
                failures["left"] -= 1
                return True
            return False

        store = RecordingStore(fail_on=fail_once)
        engine = SyncEngine(queue, store)

        result = await engine.sync(is_online=True)

        assert (result.synced, result.failed, result.deferred, result.remaining) == (2, 1, 1, 2)
        assert [kind for kind, _ in store.calls] == ["LOG", "CP_PLAN"]
        assert store.calls[0][1]["machine_id"] == 2
        pending = queue.get_queue()
        assert pending[0].id == first.id
        assert pending[0].retry_count == 1
        assert pending[1].retry_count == 0

        result = await engine.sync(is_online=True)

        assert (result.synced, result.failed, result.deferred, result.remaining) == (2, 0, 0, 0)
        assert [payload["hours_at_execution"] for _, payload in store.calls[2:]] == [95, 105]

    @pytest.mark.asyncio
    async def test_concurrent_sync_is_skipped(self, queue):
        queue.enqueue("LOG", log_payload())
        store = BlockingStore()
        engine = SyncEngine(queue, store)

        first = asyncio.create_task(engine.sync(is_online=True))
        await store.started.wait()
        assert engine.is_syncing is True

        second = await engine.sync(is_online=True)
        assert second.skipped is True

        store.release.set()
        result = await first
        assert result.synced == 1
        assert len(store.calls) == 1
        assert engine.is_syncing is False

    @pytest.mark.asyncio
    async def test_empty_queue(self, queue):
        result = await SyncEngine(queue, RecordingStore()).sync(is_online=True)
        assert result.synced == 0
        assert result.skipped is False


class TestSyncWithDatabase:
    """Воспроизведение очереди в базу через те же сервисы, что и HTTP API"""

    @pytest.mark.asyncio
    async def test_replay_applies_business_rules(self, queue, session_factory, test_db: Session,
                                                 test_machine: Machine, test_worker: Worker):
        gateway = OfflineWriteGateway(queue, SqlEntityStore(session_factory))
        await gateway.submit("LOG", log_payload(test_machine.id, test_worker.id, 95), is_online=False)
        # Меньше уже записанных 95: будет отклонено при воспроизведении
        await gateway.submit("LOG", log_payload(test_machine.id, test_worker.id, 80), is_online=False)

        result = await SyncEngine(queue, SqlEntityStore(session_factory)).sync(is_online=True)

        assert (result.synced, result.failed, result.remaining) == (1, 1, 1)
        test_db.expire_all()
        assert test_db.query(OperationLog).count() == 1
        assert test_db.get(Machine, test_machine.id).current_hours == 95
        assert queue.get_queue()[0].payload["hours_at_execution"] == 80

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_machine_order(self, queue, session_factory, test_db: Session,
                                                         test_machine: Machine, test_worker: Worker):
        class FlakyStore(SqlEntityStore):
            failures_left = 1

            async def create_operation_log(self, payload):
                if self.failures_left:
                    self.failures_left -= 1
                    raise ConnectionError("нет связи с сервером")
                return await super().create_operation_log(payload)

        queue.enqueue("LOG", log_payload(test_machine.id, test_worker.id, 95))
        queue.enqueue("LOG", log_payload(test_machine.id, test_worker.id, 105))
        engine = SyncEngine(queue, FlakyStore(session_factory))

        first = await engine.sync(is_online=True)
        second = await engine.sync(is_online=True)

        assert (first.synced, first.failed, first.deferred) == (0, 1, 1)
        assert (second.synced, second.failed, second.remaining) == (2, 0, 0)
        test_db.expire_all()
        hours = [log.hours_at_execution for log in test_db.query(OperationLog).order_by(OperationLog.id)]
        assert hours == [95, 105]
        assert test_db.get(Machine, test_machine.id).current_hours == 105


class TestHttpEntityStore:

    @pytest.mark.asyncio
    async def test_posts_to_api(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"id": 5})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with HttpEntityStore("http://server:8000/", client=client, terminal_id="PALA-1") as store:
            result = await store.upsert_cp_plan({"monday_date": "2024-06-10"})

        assert result == {"id": 5}
        assert requests[0].method == "PUT"
        assert requests[0].headers["X-Terminal-Id"] == "PALA-1"
        assert str(requests[0].url) == "http://server:8000/api/v1/production/plans"
        assert json.loads(requests[0].content) == {"monday_date": "2024-06-10"}

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"detail": "меньше текущего"})
        ))
        async with HttpEntityStore("http://server:8000", client=client) as store:
            with pytest.raises(httpx.HTTPStatusError):
                await store.create_operation_log(log_payload())

    @pytest.mark.asyncio
    async def test_connectivity(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/health/live":
                return httpx.Response(200, json={"status": "alive"})
            return httpx.Response(404)

        online = HttpEntityStore("http://server:8000", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        assert await online.check_connectivity() is True
        await online.aclose()

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        offline = HttpEntityStore("http://server:8000", client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
        assert await offline.check_connectivity() is False
        await offline.aclose()
