"""
Модели базы данных GMAO: парк машин, техобслуживание, отчёты и правила распределения затрат
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Index, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gmao.database import Base


class Worker(Base):
    """
    Модель работника
    """
    __tablename__ = "workers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True, comment="ФИО работника")
    dni = Column(String(20), nullable=False, unique=True, comment="DNI (первые 4 символа служат PIN-кодом)")
    phone = Column(String(50), comment="Телефон")
    email = Column(String(200), comment="Email")
    role = Column(String(20), nullable=False, default="worker", comment="Роль: admin, worker, cp, cr, reparador, prevencion")
    active = Column(Boolean, nullable=False, default=True, comment="Активен")
    expected_hours = Column(Float, default=0, comment="Ожидаемые часы в день")
    requires_report = Column(Boolean, nullable=False, default=True, comment="Обязан сдавать личный отчёт")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления записи")


class CostCenter(Base):
    """
    Модель центра затрат (площадка карьера)
    """
    __tablename__ = "cost_centers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True, index=True, comment="Код центра затрат")
    name = Column(String(200), nullable=False, comment="Наименование")
    company_code = Column(String(50), comment="Код компании")
    location = Column(String(200), comment="Местоположение")
    selectable_for_reports = Column(Boolean, nullable=False, default=True, comment="Доступен для выбора в отчётах")
    active = Column(Boolean, nullable=False, default=True, comment="Активен")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")

    sub_centers = relationship("SubCenter", back_populates="center", cascade="all, delete-orphan")
    machines = relationship("Machine", back_populates="cost_center")


class SubCenter(Base):
    """
    Модель подцентра (установка или участок центра затрат)
    """
    __tablename__ = "sub_centers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey("cost_centers.id", ondelete="CASCADE"), nullable=False, index=True, comment="ID центра затрат")
    name = Column(String(200), nullable=False, comment="Наименование")
    tracks_production = Column(Boolean, nullable=False, default=False, comment="Учитывает производство")
    production_field = Column(String(20), comment="Производственная линия: MACHACADORA, MOLINOS, LAVADO, TRITURACION")

    center = relationship("CostCenter", back_populates="sub_centers")


class Machine(Base):
    """
    Модель машины (единица техники со счётчиком моточасов)
    """
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    cost_center_id = Column(Integer, ForeignKey("cost_centers.id"), nullable=False, index=True, comment="ID центра затрат по умолчанию")
    sub_center_id = Column(Integer, ForeignKey("sub_centers.id", ondelete="SET NULL"), nullable=True, comment="ID подцентра")
    name = Column(String(200), nullable=False, comment="Наименование")
    company_code = Column(String(50), index=True, comment="Внутренний код машины")
    current_hours = Column(Float, nullable=False, default=0, comment="Текущие моточасы (не убывают)")
    requires_hours = Column(Boolean, nullable=False, default=True, comment="Операции обязаны передавать показание счётчика")
    admin_expenses = Column(Boolean, nullable=False, default=False, comment="Относится к административным расходам")
    transport_expenses = Column(Boolean, nullable=False, default=False, comment="Относится к транспортным расходам")
    active = Column(Boolean, nullable=False, default=True, comment="Активна (мягкое удаление)")
    selectable_for_reports = Column(Boolean, nullable=False, default=True, comment="Доступна для выбора в отчётах")
    linked_to_production = Column(Boolean, nullable=False, default=False, comment="Связана с производственной линией")
    responsible_worker_id = Column(Integer, ForeignKey("workers.id", ondelete="SET NULL"), nullable=True, comment="ID ответственного работника")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления записи")

    cost_center = relationship("CostCenter", back_populates="machines")
    responsible_worker = relationship("Worker")
    maintenance_definitions = relationship(
        "MaintenanceDefinition",
        back_populates="machine",
        cascade="all, delete-orphan",
        order_by="MaintenanceDefinition.id"
    )

    @property
    def code(self) -> str:
        """Код машины для отчётов (внутренний код или наименование)"""
        return self.company_code or self.name


class MaintenanceDefinition(Base):
    """
    Определение планового техобслуживания машины (по моточасам или по дате)
    """
    __tablename__ = "maintenance_definitions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    machine_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True, comment="ID машины")
    name = Column(String(200), nullable=False, comment="Наименование обслуживания")
    maintenance_type = Column(String(10), nullable=False, default="HOURS", comment="Режим: HOURS или DATE")
    tasks = Column(Text, comment="Перечень работ")

    # Режим HOURS
    interval_hours = Column(Float, comment="Интервал в моточасах")
    warning_hours = Column(Float, comment="Предупреждение за N моточасов")
    last_maintenance_hours = Column(Float, nullable=True, comment="Моточасы при последнем выполнении")

    # Режим DATE
    interval_months = Column(Integer, comment="Интервал в месяцах")
    next_date = Column(Date, comment="Дата следующего обслуживания")
    last_maintenance_date = Column(Date, comment="Дата последнего выполнения")

    # Однократные уведомления
    notified_warning = Column(Boolean, nullable=False, default=False, comment="Уведомление о приближении отправлено")
    notified_overdue = Column(Boolean, nullable=False, default=False, comment="Уведомление о просрочке отправлено")

    machine = relationship("Machine", back_populates="maintenance_definitions")


class OperationLog(Base):
    """
    Запись об операции работника с машиной (неизменяемый факт, правится только администратором)
    """
    __tablename__ = "operation_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(DateTime, nullable=False, index=True, comment="Дата и время операции")
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=False, index=True, comment="ID работника")
    machine_id = Column(Integer, ForeignKey("machines.id"), nullable=False, index=True, comment="ID машины")
    hours_at_execution = Column(Float, nullable=True, comment="Показание счётчика моточасов")
    type = Column(String(20), nullable=False, index=True, comment="Тип: LEVELS, BREAKDOWN, MAINTENANCE, SCHEDULED, REFUELING")

    # LEVELS
    motor_oil = Column(Float, comment="Долито моторного масла, л")
    hydraulic_oil = Column(Float, comment="Долито гидравлического масла, л")
    coolant = Column(Float, comment="Долито охлаждающей жидкости, л")

    # BREAKDOWN
    breakdown_cause = Column(Text, comment="Причина поломки")
    breakdown_solution = Column(Text, comment="Решение")
    repairer_id = Column(Integer, ForeignKey("workers.id"), nullable=True, comment="ID ремонтника")

    # MAINTENANCE / SCHEDULED
    maintenance_type = Column(String(100), comment="Вид обслуживания")
    description = Column(Text, comment="Описание работ")
    materials = Column(Text, comment="Использованные материалы")
    maintenance_def_id = Column(Integer, ForeignKey("maintenance_definitions.id", ondelete="SET NULL"), nullable=True, comment="ID планового обслуживания")

    # REFUELING
    fuel_litres = Column(Float, comment="Заправлено топлива, л")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления записи")

    __table_args__ = (
        Index("idx_operation_logs_machine_date", "machine_id", "date"),
    )


class PersonalReport(Base):
    """
    Личный отчёт работника: отработанные часы по машине и центру затрат
    """
    __tablename__ = "personal_reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True, comment="Дата")
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=False, index=True, comment="ID работника")
    hours = Column(Float, nullable=False, comment="Отработано часов")
    cost_center_id = Column(Integer, ForeignKey("cost_centers.id"), nullable=True, index=True, comment="ID центра затрат")
    machine_id = Column(Integer, ForeignKey("machines.id"), nullable=True, index=True, comment="ID машины")
    description = Column(Text, comment="Описание работ")
    location = Column(String(200), comment="Место работ")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")


class CPDailyReport(Base):
    """
    Суточный производственный отчёт CP (дробилка и мельницы)
    """
    __tablename__ = "cp_daily_reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True, comment="Дата")
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=False, comment="ID работника")
    crusher_start = Column(Float, nullable=False, comment="Счётчик дробилки на начало")
    crusher_end = Column(Float, nullable=False, comment="Счётчик дробилки на конец")
    mills_start = Column(Float, nullable=False, comment="Счётчик мельниц на начало")
    mills_end = Column(Float, nullable=False, comment="Счётчик мельниц на конец")
    comments = Column(Text, comment="Комментарии")
    ai_analysis = Column(Text, comment="Сгенерированный анализ (хранится как текст)")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")


class CRDailyReport(Base):
    """
    Суточный производственный отчёт CR (мойка и измельчение)
    """
    __tablename__ = "cr_daily_reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True, comment="Дата")
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=False, comment="ID работника")
    washing_start = Column(Float, nullable=False, comment="Счётчик мойки на начало")
    washing_end = Column(Float, nullable=False, comment="Счётчик мойки на конец")
    trituration_start = Column(Float, nullable=False, comment="Счётчик измельчения на начало")
    trituration_end = Column(Float, nullable=False, comment="Счётчик измельчения на конец")
    comments = Column(Text, comment="Комментарии")
    ai_analysis = Column(Text, comment="Сгенерированный анализ (хранится как текст)")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")


class CPWeeklyPlan(Base):
    """
    Недельный план часов работы CP (ключ: дата понедельника)
    """
    __tablename__ = "cp_weekly_plans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    monday_date = Column(Date, nullable=False, unique=True, index=True, comment="Дата понедельника недели")
    monday_hours = Column(Float, nullable=False, default=0, comment="План на понедельник, ч")
    tuesday_hours = Column(Float, nullable=False, default=0, comment="План на вторник, ч")
    wednesday_hours = Column(Float, nullable=False, default=0, comment="План на среду, ч")
    thursday_hours = Column(Float, nullable=False, default=0, comment="План на четверг, ч")
    friday_hours = Column(Float, nullable=False, default=0, comment="План на пятницу, ч")

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления записи")

    def hours_for_weekday(self, weekday: int) -> float:
        """
        Плановые часы по номеру дня недели (0 = понедельник)
        Суббота и воскресенье в плане не задаются
        """
        fields = (
            self.monday_hours,
            self.tuesday_hours,
            self.wednesday_hours,
            self.thursday_hours,
            self.friday_hours,
        )
        if weekday >= len(fields):
            return 0.0
        return float(fields[weekday] or 0)


class SpecificCostRule(Base):
    """
    Правило фиксированного процентного распределения затрат машины
    """
    __tablename__ = "specific_cost_rules"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    machine_origin_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True, comment="ID исходной машины")
    target_center_id = Column(Integer, ForeignKey("cost_centers.id"), nullable=False, comment="ID целевого центра затрат")
    target_machine_id = Column(Integer, ForeignKey("machines.id", ondelete="SET NULL"), nullable=True, comment="ID целевой машины")
    percentage = Column(Float, nullable=False, comment="Доля, %")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания записи")


class SystemLog(Base):
    """
    Логи системных событий
    """
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    level = Column(String(20), nullable=False, index=True, comment="Уровень: DEBUG, INFO, WARNING, ERROR, CRITICAL")
    message = Column(Text, nullable=False, comment="Сообщение лога")
    module = Column(String(200), comment="Модуль, где произошло событие")
    function = Column(String(200), comment="Функция, где произошло событие")
    line_number = Column(Integer, comment="Номер строки кода")
    event_type = Column(String(100), index=True, comment="Тип события: request, database, service, scheduler")
    event_category = Column(String(100), index=True, comment="Категория события")
    extra_data = Column(Text, comment="Дополнительные данные в формате JSON")
    exception_type = Column(String(200), comment="Тип исключения")
    exception_message = Column(Text, comment="Сообщение исключения")
    stack_trace = Column(Text, comment="Трассировка стека")
    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата и время создания")
