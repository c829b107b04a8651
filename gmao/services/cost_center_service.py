"""
Сервис для работы с центрами затрат и подцентрами
"""
from sqlalchemy.orm import Session
from typing import Optional, List

from gmao.exceptions import BusinessValidationError, DependencyBlockedError, EntityNotFoundError
from gmao.logger import logger
from gmao.models import CostCenter, SubCenter
from gmao.repositories.cost_center_repository import CostCenterRepository
from gmao.schemas import CostCenterCreate, CostCenterUpdate, SubCenterCreate
from gmao.validators import PRODUCTION_FIELDS


class CostCenterService:
    """
    Сервис для работы с центрами затрат
    """

    def __init__(self, db: Session):
        self.center_repo = CostCenterRepository(db)
        self.db = db

    def _require_center(self, center_id: int) -> CostCenter:
        center = self.center_repo.get_by_id(center_id)
        if not center:
            raise EntityNotFoundError("Центр затрат", center_id)
        return center

    def get_center(self, center_id: int) -> Optional[CostCenter]:
        return self.center_repo.get_by_id(center_id)

    def get_centers(
        self,
        active: Optional[bool] = None,
        selectable_for_reports: Optional[bool] = None
    ) -> List[CostCenter]:
        return self.center_repo.get_all(active=active, selectable_for_reports=selectable_for_reports)

    def create_center(self, data: CostCenterCreate) -> CostCenter:
        """
        Создание центра затрат

        Raises:
            BusinessValidationError: Код центра уже занят
        """
        if self.center_repo.get_by_code(data.code):
            raise BusinessValidationError(f"Центр затрат с кодом '{data.code}' уже существует")

        center = self.center_repo.create(**data.model_dump())
        self.db.commit()
        self.db.refresh(center)

        logger.info("Центр затрат создан", extra={"center_id": center.id, "code": center.code})
        return center

    def update_center(self, center_id: int, data: CostCenterUpdate) -> CostCenter:
        center = self._require_center(center_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("company_code", "location"):
                continue
            setattr(center, field, value)

        self.db.commit()
        self.db.refresh(center)
        return center

    def delete_center(self, center_id: int) -> None:
        """
        Удаление центра затрат

        Raises:
            DependencyBlockedError: К центру привязаны машины, их записи операций или личные отчёты
        """
        center = self._require_center(center_id)

        dependents = self.center_repo.count_dependents(center_id)
        if any(dependents.values()):
            error = DependencyBlockedError("центр затрат", center_id, dependents)
            logger.warning(
                "Удаление центра затрат заблокировано зависимыми записями",
                extra={"center_id": center_id, "dependents": error.dependents}
            )
            raise error

        self.center_repo.delete(center)
        self.db.commit()
        logger.info("Центр затрат удалён", extra={"center_id": center_id, "code": center.code})

    def add_sub_center(self, center_id: int, data: SubCenterCreate) -> SubCenter:
        """
        Добавление подцентра

        Подцентр, учитывающий производство, должен указывать производственную линию
        """
        center = self._require_center(center_id)

        if data.tracks_production and data.production_field not in PRODUCTION_FIELDS:
            raise BusinessValidationError(
                f"Для подцентра с учётом производства укажите линию: {', '.join(PRODUCTION_FIELDS)}"
            )

        sub_center = self.center_repo.add_sub_center(center, **data.model_dump())
        self.db.commit()
        self.db.refresh(sub_center)
        return sub_center
