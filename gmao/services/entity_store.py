"""
Хранилище сущностей для полевого клиента

Единый асинхронный интерфейс записи, которым пользуются шлюз записи и движок синхронизации.
SqlEntityStore пишет напрямую в базу через те же сервисы, что и HTTP API,
HttpEntityStore обращается к API сервера.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from gmao.config import TERMINAL_ID_HEADER
from gmao.database import SessionLocal
from gmao.logger import logger
from gmao.schemas import (
    CPDailyReportCreate,
    CPDailyReportResponse,
    CPWeeklyPlanResponse,
    CPWeeklyPlanUpsert,
    CRDailyReportCreate,
    CRDailyReportResponse,
    OperationLogResponse,
    PersonalReportCreate,
    PersonalReportResponse,
    operation_log_adapter,
)
from gmao.services.operation_log_service import OperationLogService
from gmao.services.personal_report_service import PersonalReportService
from gmao.services.production_report_service import ProductionReportService


class EntityStore(ABC):
    """
    Асинхронный интерфейс записи сущностей
    Все методы принимают и возвращают JSON-совместимые словари
    """

    @abstractmethod
    async def create_operation_log(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def create_cp_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def create_cr_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def create_personal_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def upsert_cp_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def check_connectivity(self) -> bool:
        return True


class SqlEntityStore(EntityStore):
    """
    Запись напрямую в базу, одна сессия на вызов
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def _with_session(self, func: Callable[[Session], Dict[str, Any]]) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            return func(db)
        finally:
            db.close()

    async def create_operation_log(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = operation_log_adapter.validate_python(payload)
        return self._with_session(
            lambda db: OperationLogResponse.model_validate(
                OperationLogService(db).create_log(data)
            ).model_dump(mode="json")
        )

    async def create_cp_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = CPDailyReportCreate.model_validate(payload)
        return self._with_session(
            lambda db: CPDailyReportResponse.model_validate(
                ProductionReportService(db).create_cp_report(data)
            ).model_dump(mode="json")
        )

    async def create_cr_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = CRDailyReportCreate.model_validate(payload)
        return self._with_session(
            lambda db: CRDailyReportResponse.model_validate(
                ProductionReportService(db).create_cr_report(data)
            ).model_dump(mode="json")
        )

    async def create_personal_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = PersonalReportCreate.model_validate(payload)
        return self._with_session(
            lambda db: PersonalReportResponse.model_validate(
                PersonalReportService(db).create_report(data)
            ).model_dump(mode="json")
        )

    async def upsert_cp_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = CPWeeklyPlanUpsert.model_validate(payload)
        return self._with_session(
            lambda db: CPWeeklyPlanResponse.model_validate(
                ProductionReportService(db).upsert_plan(data)
            ).model_dump(mode="json")
        )


class HttpEntityStore(EntityStore):
    """
    Запись через HTTP API сервера

    Ошибки HTTP пробрасываются вызывающему коду (httpx.HTTPError)
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        terminal_id: Optional[str] = None
    ):
        self.base_url = base_url.rstrip("/")
        headers = {TERMINAL_ID_HEADER: terminal_id} if terminal_id else {}
        if client is None:
            client = httpx.AsyncClient(timeout=timeout, headers=headers)
        else:
            client.headers.update(headers)
        self.client = client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _send_json(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{self.API_PREFIX}{path}"
        try:
            response = await self.client.request(method, url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Ошибка HTTP при записи на сервер: {e.response.status_code}", extra={
                "url": url,
                "status_code": e.response.status_code,
                "response_text": e.response.text[:500]
            })
            raise
        except httpx.RequestError as e:
            logger.error(f"Ошибка запроса к серверу: {str(e)}", extra={"url": url})
            raise

    async def create_operation_log(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send_json("POST", "/operation-logs", payload)

    async def create_cp_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send_json("POST", "/production/cp-reports", payload)

    async def create_cr_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send_json("POST", "/production/cr-reports", payload)

    async def create_personal_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send_json("POST", "/personal-reports", payload)

    async def upsert_cp_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._send_json("PUT", "/production/plans", payload)

    async def check_connectivity(self) -> bool:
        """
        Проверка связи с сервером по /health/live
        """
        try:
            response = await self.client.get(f"{self.base_url}/health/live")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("Сервер недоступен", extra={"base_url": self.base_url, "error": str(e)})
            return False
