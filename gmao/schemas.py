"""
Pydantic схемы для валидации данных API
"""
from pydantic import BaseModel, Field, TypeAdapter, field_validator
from datetime import datetime, date
from typing import Annotated, List, Literal, Optional, Union


# ---------------------------------------------------------------------------
# Работники
# ---------------------------------------------------------------------------

WorkerRole = Literal["admin", "worker", "cp", "cr", "reparador", "prevencion"]


class WorkerBase(BaseModel):
    """
    Базовая схема работника
    """
    name: str = Field(..., min_length=1, max_length=200, description="ФИО работника")
    dni: str = Field(..., min_length=4, max_length=20, description="DNI")
    phone: Optional[str] = Field(None, max_length=50, description="Телефон")
    email: Optional[str] = Field(None, max_length=200, description="Email")
    role: WorkerRole = Field("worker", description="Роль")
    active: bool = Field(True, description="Активен")
    expected_hours: float = Field(0, ge=0, description="Ожидаемые часы в день")
    requires_report: bool = Field(True, description="Обязан сдавать личный отчёт")

    @field_validator("dni")
    @classmethod
    def normalize_dni(cls, v: str) -> str:
        return v.strip().upper()


class WorkerCreate(WorkerBase):
    """
    Схема для создания работника
    """
    pass


class WorkerUpdate(BaseModel):
    """
    Схема для обновления работника
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=200)
    role: Optional[WorkerRole] = None
    active: Optional[bool] = None
    expected_hours: Optional[float] = Field(None, ge=0)
    requires_report: Optional[bool] = None


class WorkerResponse(WorkerBase):
    """
    Схема ответа с работником
    """
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkerLoginRequest(BaseModel):
    """
    Вход работника по PIN (первые 4 символа DNI)
    """
    worker_id: int = Field(..., description="ID работника")
    pin: str = Field(..., min_length=1, max_length=10, description="PIN")


class WorkerLoginResponse(BaseModel):
    """
    Ответ на успешный вход работника
    """
    id: int
    name: str
    role: str

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Центры затрат
# ---------------------------------------------------------------------------

ProductionField = Literal["MACHACADORA", "MOLINOS", "LAVADO", "TRITURACION"]


class SubCenterCreate(BaseModel):
    """
    Схема для создания подцентра
    """
    name: str = Field(..., min_length=1, max_length=200)
    tracks_production: bool = False
    production_field: Optional[ProductionField] = None


class SubCenterResponse(SubCenterCreate):
    id: int
    center_id: int

    class Config:
        from_attributes = True


class CostCenterBase(BaseModel):
    """
    Базовая схема центра затрат
    """
    code: str = Field(..., min_length=1, max_length=50, description="Код центра затрат")
    name: str = Field(..., min_length=1, max_length=200, description="Наименование")
    company_code: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    selectable_for_reports: bool = True
    active: bool = True


class CostCenterCreate(CostCenterBase):
    pass


class CostCenterUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_code: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    selectable_for_reports: Optional[bool] = None
    active: Optional[bool] = None


class CostCenterResponse(CostCenterBase):
    """
    Схема ответа с центром затрат
    """
    id: int
    sub_centers: List[SubCenterResponse] = []

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Машины и плановое обслуживание
# ---------------------------------------------------------------------------

MaintenanceMode = Literal["HOURS", "DATE"]


class MaintenanceDefinitionCreate(BaseModel):
    """
    Схема определения планового обслуживания
    """
    name: str = Field(..., min_length=1, max_length=200, description="Наименование обслуживания")
    maintenance_type: MaintenanceMode = Field("HOURS", description="Режим: HOURS или DATE")
    tasks: Optional[str] = Field(None, description="Перечень работ")
    interval_hours: Optional[float] = Field(None, description="Интервал в моточасах")
    warning_hours: Optional[float] = Field(None, description="Предупреждение за N моточасов")
    last_maintenance_hours: Optional[float] = Field(None, ge=0, description="Моточасы при последнем выполнении")
    interval_months: Optional[int] = Field(None, description="Интервал в месяцах")
    next_date: Optional[date] = Field(None, description="Дата следующего обслуживания")


class MaintenanceDefinitionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    maintenance_type: Optional[MaintenanceMode] = None
    tasks: Optional[str] = None
    interval_hours: Optional[float] = None
    warning_hours: Optional[float] = None
    last_maintenance_hours: Optional[float] = Field(None, ge=0)
    interval_months: Optional[int] = None
    next_date: Optional[date] = None


class MaintenanceDefinitionResponse(MaintenanceDefinitionCreate):
    id: int
    machine_id: int
    last_maintenance_date: Optional[date] = None
    notified_warning: bool = False
    notified_overdue: bool = False

    class Config:
        from_attributes = True


class MachineBase(BaseModel):
    """
    Базовая схема машины
    """
    cost_center_id: int = Field(..., description="ID центра затрат по умолчанию")
    sub_center_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    company_code: Optional[str] = Field(None, max_length=50)
    requires_hours: bool = True
    admin_expenses: bool = False
    transport_expenses: bool = False
    active: bool = True
    selectable_for_reports: bool = True
    linked_to_production: bool = False
    responsible_worker_id: Optional[int] = None


class MachineCreate(MachineBase):
    """
    Схема для создания машины вместе с её плановыми обслуживаниями
    """
    current_hours: float = Field(0, ge=0, description="Начальные моточасы")
    maintenance_definitions: List[MaintenanceDefinitionCreate] = []


class MachineUpdate(BaseModel):
    """
    Схема для обновления атрибутов машины
    Моточасы здесь только увеличиваются, штатно они меняются через записи операций
    """
    cost_center_id: Optional[int] = None
    sub_center_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_code: Optional[str] = Field(None, max_length=50)
    current_hours: Optional[float] = Field(None, ge=0)
    requires_hours: Optional[bool] = None
    admin_expenses: Optional[bool] = None
    transport_expenses: Optional[bool] = None
    active: Optional[bool] = None
    selectable_for_reports: Optional[bool] = None
    linked_to_production: Optional[bool] = None
    responsible_worker_id: Optional[int] = None


class MachineResponse(MachineBase):
    """
    Схема ответа с машиной
    """
    id: int
    current_hours: float
    maintenance_definitions: List[MaintenanceDefinitionResponse] = []

    class Config:
        from_attributes = True


class MachineListResponse(BaseModel):
    total: int
    items: List[MachineResponse]


class MaintenanceStatusResponse(BaseModel):
    """
    Статус планового обслуживания
    """
    definition_id: Optional[int] = None
    name: str
    mode: str
    status: Literal["OK", "WARNING", "OVERDUE"]
    next_due_hours: Optional[float] = None
    remaining_hours: Optional[float] = None
    next_date: Optional[date] = None
    days_remaining: Optional[int] = None
    config_error: bool = False

    class Config:
        from_attributes = True


class PendingMaintenanceResponse(BaseModel):
    """
    Строка отчёта о предстоящих и просроченных обслуживаниях
    """
    machine_id: int
    machine_name: str
    cost_center_id: int
    current_hours: float
    item: MaintenanceStatusResponse

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Записи операций (размеченное объединение по типу)
# ---------------------------------------------------------------------------

class OperationLogBase(BaseModel):
    """
    Общие поля записи операции
    """
    date: datetime = Field(..., description="Дата и время операции")
    worker_id: int = Field(..., description="ID работника")
    machine_id: int = Field(..., description="ID машины")
    hours_at_execution: Optional[float] = Field(None, ge=0, description="Показание моточасов")


class LevelsLogCreate(OperationLogBase):
    """Долив жидкостей"""
    type: Literal["LEVELS"]
    motor_oil: Optional[float] = Field(None, ge=0, description="Моторное масло, л")
    hydraulic_oil: Optional[float] = Field(None, ge=0, description="Гидравлическое масло, л")
    coolant: Optional[float] = Field(None, ge=0, description="Охлаждающая жидкость, л")


class BreakdownLogCreate(OperationLogBase):
    """Поломка"""
    type: Literal["BREAKDOWN"]
    breakdown_cause: str = Field(..., min_length=1, description="Причина поломки")
    breakdown_solution: Optional[str] = Field(None, description="Решение")
    repairer_id: Optional[int] = Field(None, description="ID ремонтника")


class MaintenanceLogCreate(OperationLogBase):
    """Внеплановое обслуживание"""
    type: Literal["MAINTENANCE"]
    maintenance_type: str = Field(..., min_length=1, max_length=100, description="Вид обслуживания")
    description: Optional[str] = None
    materials: Optional[str] = None


class ScheduledLogCreate(OperationLogBase):
    """Выполнение планового обслуживания"""
    type: Literal["SCHEDULED"]
    maintenance_def_id: int = Field(..., description="ID планового обслуживания")
    description: Optional[str] = None
    repairer_id: Optional[int] = None


class RefuelingLogCreate(OperationLogBase):
    """Заправка"""
    type: Literal["REFUELING"]
    fuel_litres: float = Field(..., gt=0, description="Заправлено топлива, л")


OperationLogCreate = Annotated[
    Union[LevelsLogCreate, BreakdownLogCreate, MaintenanceLogCreate, ScheduledLogCreate, RefuelingLogCreate],
    Field(discriminator="type")
]

operation_log_adapter = TypeAdapter(OperationLogCreate)


class OperationLogUpdate(BaseModel):
    """
    Административная правка записи операции (без влияния на моточасы машины)
    """
    date: Optional[datetime] = None
    worker_id: Optional[int] = None
    hours_at_execution: Optional[float] = Field(None, ge=0)
    motor_oil: Optional[float] = Field(None, ge=0)
    hydraulic_oil: Optional[float] = Field(None, ge=0)
    coolant: Optional[float] = Field(None, ge=0)
    breakdown_cause: Optional[str] = None
    breakdown_solution: Optional[str] = None
    repairer_id: Optional[int] = None
    maintenance_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    materials: Optional[str] = None
    fuel_litres: Optional[float] = Field(None, gt=0)


class OperationLogResponse(BaseModel):
    """
    Схема ответа с записью операции
    """
    id: int
    date: datetime
    worker_id: int
    machine_id: int
    hours_at_execution: Optional[float] = None
    type: str
    motor_oil: Optional[float] = None
    hydraulic_oil: Optional[float] = None
    coolant: Optional[float] = None
    breakdown_cause: Optional[str] = None
    breakdown_solution: Optional[str] = None
    repairer_id: Optional[int] = None
    maintenance_type: Optional[str] = None
    description: Optional[str] = None
    materials: Optional[str] = None
    maintenance_def_id: Optional[int] = None
    fuel_litres: Optional[float] = None

    class Config:
        from_attributes = True


class OperationLogListResponse(BaseModel):
    total: int
    items: List[OperationLogResponse]


# ---------------------------------------------------------------------------
# Личные и производственные отчёты
# ---------------------------------------------------------------------------

class PersonalReportCreate(BaseModel):
    """
    Схема личного отчёта работника
    """
    date: date
    worker_id: int
    hours: float = Field(..., ge=0, le=24, description="Отработано часов")
    cost_center_id: Optional[int] = None
    machine_id: Optional[int] = None
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=200)


class PersonalReportResponse(PersonalReportCreate):
    id: int

    class Config:
        from_attributes = True


class DailyAuditResponse(BaseModel):
    """
    Все записи операций и личные отчёты за один день
    """
    date: date
    operation_logs: List[OperationLogResponse]
    personal_reports: List[PersonalReportResponse]


class CPDailyReportCreate(BaseModel):
    """
    Суточный отчёт CP
    """
    date: date
    worker_id: int
    crusher_start: float = Field(..., ge=0)
    crusher_end: float = Field(..., ge=0)
    mills_start: float = Field(..., ge=0)
    mills_end: float = Field(..., ge=0)
    comments: Optional[str] = None
    ai_analysis: Optional[str] = None


class CPDailyReportResponse(CPDailyReportCreate):
    id: int

    class Config:
        from_attributes = True


class CRDailyReportCreate(BaseModel):
    """
    Суточный отчёт CR
    """
    date: date
    worker_id: int
    washing_start: float = Field(..., ge=0)
    washing_end: float = Field(..., ge=0)
    trituration_start: float = Field(..., ge=0)
    trituration_end: float = Field(..., ge=0)
    comments: Optional[str] = None
    ai_analysis: Optional[str] = None


class CRDailyReportResponse(CRDailyReportCreate):
    id: int

    class Config:
        from_attributes = True


class CPWeeklyPlanUpsert(BaseModel):
    """
    Недельный план CP (ключ: дата понедельника)
    """
    monday_date: date
    monday_hours: float = Field(0, ge=0, le=24)
    tuesday_hours: float = Field(0, ge=0, le=24)
    wednesday_hours: float = Field(0, ge=0, le=24)
    thursday_hours: float = Field(0, ge=0, le=24)
    friday_hours: float = Field(0, ge=0, le=24)


class CPWeeklyPlanResponse(CPWeeklyPlanUpsert):
    id: int

    class Config:
        from_attributes = True


class PeriodStatsResponse(BaseModel):
    period: str
    start: date
    end: date
    effective_end: date
    actual_hours: float
    planned_hours: float
    efficiency: float

    class Config:
        from_attributes = True


class PeriodComparisonResponse(BaseModel):
    """
    Сравнение эффективности текущего и предыдущего периода
    """
    current: float
    previous: float
    trend: Literal["up", "down", "equal"]
    diff: float
    current_period: Optional[PeriodStatsResponse] = None
    previous_period: Optional[PeriodStatsResponse] = None

    class Config:
        from_attributes = True


class EfficiencyStatsResponse(BaseModel):
    line: str
    cutoff: date
    daily: PeriodComparisonResponse
    weekly: PeriodComparisonResponse
    monthly: PeriodComparisonResponse
    yearly: PeriodComparisonResponse

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Распределение затрат
# ---------------------------------------------------------------------------

class SpecificCostRuleCreate(BaseModel):
    """
    Правило фиксированного распределения затрат машины
    """
    machine_origin_id: int
    target_center_id: int
    target_machine_id: Optional[int] = None
    percentage: float = Field(..., description="Доля, %")


class SpecificCostRuleResponse(SpecificCostRuleCreate):
    id: int

    class Config:
        from_attributes = True


class WorkerCostEntry(BaseModel):
    """
    Строка внешней таблицы затрат на персонал
    """
    name: str = Field(..., min_length=1)
    amount: float


class LaborDistributionRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    entries: List[WorkerCostEntry]


class DistributionRowResponse(BaseModel):
    center_code: str
    center_name: str
    machine_code: str
    machine_name: str
    amount: float

    class Config:
        from_attributes = True


class UnmatchedCostEntryResponse(BaseModel):
    name: str
    amount: float
    suggestion: Optional[str] = None
    score: Optional[float] = None

    class Config:
        from_attributes = True


class DistributionReportResponse(BaseModel):
    """
    Результат распределения топлива или затрат на персонал за месяц
    """
    kind: str
    year: int
    month: int
    total_source: float
    total_distributed: float
    undistributed: float
    admon_total: float = 0.0
    rows: List[DistributionRowResponse]
    unmatched: List[UnmatchedCostEntryResponse] = []

    class Config:
        from_attributes = True


class WorkerHoursLineResponse(BaseModel):
    center_code: str
    machine_code: str
    hours: float
    ratio: float

    class Config:
        from_attributes = True


class WorkerHoursDistributionResponse(BaseModel):
    worker_id: int
    worker_name: str
    total_hours: float
    lines: List[WorkerHoursLineResponse]

    class Config:
        from_attributes = True


class ReportEmailRequest(BaseModel):
    """
    Отправка отчёта о распределении топлива по email
    """
    to: List[str] = Field(..., min_length=1)
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    subject: Optional[str] = None


class ReportEmailResponse(BaseModel):
    success: bool
    error: Optional[str] = None
