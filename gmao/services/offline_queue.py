"""
Офлайн-очередь полевого терминала

Записи, сделанные без связи, сохраняются в устойчивое локальное хранилище
и воспроизводятся движком синхронизации после восстановления связи.
Очередь никогда не обращается к сети.
"""
import json
import os
import tempfile
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from gmao.exceptions import BusinessValidationError
from gmao.logger import logger
from gmao.middleware.prometheus_metrics import record_offline_event, update_offline_queue_size

OFFLINE_ACTION_TYPES = ("LOG", "CP_REPORT", "CR_REPORT", "CP_PLAN", "PERSONAL_REPORT")

# Ключ, под которым очередь хранится в JSON документе
STORAGE_KEY = "gmao_offline_queue"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PendingAction:
    """
    Отложенная запись

    Attributes:
        id: Случайный идентификатор
        type: LOG, CP_REPORT, CR_REPORT, CP_PLAN или PERSONAL_REPORT
        payload: Данные записи (JSON-совместимые)
        timestamp: Время постановки в очередь, мс
        retry_count: Количество неудачных попыток воспроизведения
    """
    id: str
    type: str
    payload: Dict[str, Any]
    timestamp: int
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingAction":
        return cls(
            id=str(data["id"]),
            type=data["type"],
            payload=data.get("payload") or {},
            timestamp=int(data.get("timestamp") or 0),
            retry_count=int(data.get("retry_count") or 0),
        )


class QueueStorage(ABC):
    """
    Устойчивое хранилище очереди: список словарей целиком
    """

    @abstractmethod
    def load(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def save(self, items: List[Dict[str, Any]]) -> None:
        ...


class InMemoryQueueStorage(QueueStorage):
    """Хранилище в памяти (для тестов)"""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None):
        self.items: List[Dict[str, Any]] = [dict(item) for item in (items or [])]

    def load(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in self.items]

    def save(self, items: List[Dict[str, Any]]) -> None:
        self.items = [dict(item) for item in items]


class JsonFileQueueStorage(QueueStorage):
    """
    Хранилище в JSON документе на диске

    Очередь лежит массивом под ключом gmao_offline_queue, прочие ключи документа сохраняются.
    Запись выполняется через временный файл и атомарную замену, поэтому очередь
    переживает перезапуск и обрыв питания во время записи.
    """

    def __init__(self, path: str, key: str = STORAGE_KEY):
        self.path = path
        self.key = key

    def _read_document(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            corrupt_path = f"{self.path}.corrupt-{_now_ms()}"
            os.replace(self.path, corrupt_path)
            logger.error(
                "Файл офлайн-очереди повреждён, сохранён отдельно",
                extra={"path": self.path, "corrupt_path": corrupt_path, "error": str(e)}
            )
            return {}
        return document if isinstance(document, dict) else {}

    def load(self) -> List[Dict[str, Any]]:
        items = self._read_document().get(self.key) or []
        return [item for item in items if isinstance(item, dict)]

    def save(self, items: List[Dict[str, Any]]) -> None:
        document = self._read_document()
        document[self.key] = items

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".gmao_queue_", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class OfflineQueue:
    """
    Очередь отложенных записей поверх устойчивого хранилища
    Каждое изменение сразу сохраняется целиком
    """

    def __init__(self, storage: QueueStorage, clock_ms: Callable[[], int] = _now_ms):
        self.storage = storage
        self.clock_ms = clock_ms
        self._lock = threading.RLock()

    def _load(self) -> List[PendingAction]:
        return [PendingAction.from_dict(item) for item in self.storage.load()]

    def _save(self, actions: List[PendingAction]) -> None:
        self.storage.save([action.to_dict() for action in actions])
        update_offline_queue_size(len(actions))

    def enqueue(self, action_type: str, payload: Dict[str, Any]) -> PendingAction:
        """
        Постановка записи в очередь

        Raises:
            BusinessValidationError: Неизвестный тип записи
        """
        if action_type not in OFFLINE_ACTION_TYPES:
            raise BusinessValidationError(
                f"Неизвестный тип офлайн-записи: {action_type}. Допустимо: {', '.join(OFFLINE_ACTION_TYPES)}"
            )

        action = PendingAction(
            id=uuid.uuid4().hex,
            type=action_type,
            payload=payload,
            timestamp=self.clock_ms(),
        )
        with self._lock:
            actions = self._load()
            actions.append(action)
            self._save(actions)

        record_offline_event("queued")
        logger.info(
            "Запись сохранена в офлайн-очередь",
            extra={"action_id": action.id, "action_type": action_type, "queue_size": len(actions)}
        )
        return action

    def get_queue(self) -> List[PendingAction]:
        """
        Снимок очереди в порядке постановки
        """
        with self._lock:
            return self._load()

    def remove(self, action_id: str) -> bool:
        with self._lock:
            actions = self._load()
            remaining = [a for a in actions if a.id != action_id]
            if len(remaining) == len(actions):
                return False
            self._save(remaining)
        return True

    def mark_failed(self, action_id: str) -> Optional[PendingAction]:
        """
        Увеличение счётчика попыток, запись остаётся на своём месте
        """
        with self._lock:
            actions = self._load()
            for action in actions:
                if action.id == action_id:
                    action.retry_count += 1
                    self._save(actions)
                    return action
        return None

    def clear(self) -> None:
        with self._lock:
            self._save([])
        logger.info("Офлайн-очередь очищена")

    def __len__(self) -> int:
        return len(self.get_queue())
