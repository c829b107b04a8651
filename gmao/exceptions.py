"""
Исключения предметной области
"""
from typing import Dict, Optional


class GmaoError(Exception):
    """Базовое исключение приложения"""


class BusinessValidationError(GmaoError, ValueError):
    """
    Нарушение бизнес-правила (убывающие моточасы, сумма процентов > 100 и т.п.)
    Отклоняется до записи в хранилище, сообщение показывается пользователю как есть
    """


class EntityNotFoundError(GmaoError):
    """Запрошенная сущность не найдена"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} с ID {entity_id} не найден(а)")


class DependencyBlockedError(GmaoError):
    """
    Удаление запрещено: у сущности есть зависимые записи

    Attributes:
        entity: Тип удаляемой сущности
        entity_id: ID удаляемой сущности
        dependents: Количество зависимых записей по типам
    """

    def __init__(self, entity: str, entity_id: int, dependents: Optional[Dict[str, int]] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.dependents = {k: v for k, v in (dependents or {}).items() if v}
        super().__init__(
            f"Нельзя удалить {entity} (ID {entity_id}): найдено зависимых записей: {self.count} "
            f"({', '.join(f'{k}: {v}' for k, v in self.dependents.items())})"
        )

    @property
    def count(self) -> int:
        return sum(self.dependents.values())
