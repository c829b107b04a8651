"""
Репозиторий для работы с работниками
"""
from sqlalchemy.orm import Session
from typing import Optional, List, Tuple
from gmao.models import Worker


class WorkerRepository:
    """
    Репозиторий для работы с работниками
    Инкапсулирует логику доступа к данным
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, worker_id: int) -> Optional[Worker]:
        """
        Получение работника по ID
        """
        return self.db.query(Worker).filter(Worker.id == worker_id).first()

    def get_by_dni(self, dni: str) -> Optional[Worker]:
        return self.db.query(Worker).filter(Worker.dni == dni).first()

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        active: Optional[bool] = None,
        role: Optional[str] = None
    ) -> Tuple[List[Worker], int]:
        """
        Получение списка работников с фильтрацией

        Returns:
            tuple: (список работников, общее количество)
        """
        query = self.db.query(Worker)

        if active is not None:
            query = query.filter(Worker.active == active)
        if role:
            query = query.filter(Worker.role == role)

        total = query.count()
        items = query.order_by(Worker.name).offset(skip).limit(limit).all()

        return items, total

    def get_by_ids(self, worker_ids: List[int]) -> List[Worker]:
        if not worker_ids:
            return []
        return self.db.query(Worker).filter(Worker.id.in_(worker_ids)).all()

    def create(self, **fields) -> Worker:
        """
        Создание работника
        """
        worker = Worker(**fields)
        self.db.add(worker)
        self.db.flush()
        return worker
