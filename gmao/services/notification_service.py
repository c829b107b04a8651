"""
Сервис уведомлений: отправка email и уведомления о плановом техобслуживании
"""
import base64
import smtplib
from dataclasses import dataclass, field
from datetime import date
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from gmao.config import get_settings
from gmao.logger import logger
from gmao.models import Machine, MaintenanceDefinition
from gmao.middleware.prometheus_metrics import record_maintenance_alert
from gmao.services.maintenance_scheduler import (
    STATUS_OK,
    STATUS_OVERDUE,
    STATUS_WARNING,
    MaintenanceDueInfo,
    compute_machine_status,
)
from gmao.utils.date_utils import system_today

settings = get_settings()


class EmailChannel:
    """
    Канал отправки email через SMTP
    """

    def __init__(self):
        self.enabled = settings.email_enabled
        self.smtp_host = settings.email_smtp_host
        self.smtp_port = settings.email_smtp_port
        self.smtp_user = settings.email_smtp_user
        self.smtp_password = settings.email_smtp_password
        self.from_address = settings.email_from_address
        self.from_name = settings.email_from_name
        self.use_tls = settings.email_use_tls

    def send_email(
        self,
        to: Union[str, Sequence[str]],
        subject: str,
        html: str,
        attachment_base64: Optional[str] = None,
        attachment_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Отправка письма с необязательным вложением

        Args:
            to: Адрес или список адресов
            subject: Тема
            html: HTML тело письма
            attachment_base64: Вложение в base64
            attachment_name: Имя файла вложения

        Returns:
            {"success": bool, "error": Optional[str]}
        """
        recipients = [to] if isinstance(to, str) else [address for address in to if address]

        if not self.enabled:
            return {"success": False, "error": "Email уведомления отключены"}

        if not recipients:
            return {"success": False, "error": "Не указан ни один получатель"}

        if not all([self.smtp_host, self.from_address]):
            return {"success": False, "error": "Конфигурация email неполная"}

        try:
            msg = MIMEMultipart()
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_address}>"
            msg["To"] = ", ".join(recipients)
            msg.attach(MIMEText(html, "html", "utf-8"))

            if attachment_base64:
                part = MIMEApplication(base64.b64decode(attachment_base64))
                part.add_header("Content-Disposition", "attachment", filename=attachment_name or "report.xlsx")
                msg.attach(part)

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info("Email отправлен", extra={"recipients": recipients, "subject": subject})
            return {"success": True, "error": None}

        except (smtplib.SMTPException, OSError) as e:
            error_msg = f"Не удалось отправить email: {str(e)}"
            logger.error(error_msg, extra={"recipients": recipients, "error": str(e)}, exc_info=True)
            return {"success": False, "error": error_msg}


def _alert_html(machine: Machine, info: MaintenanceDueInfo) -> str:
    if info.mode == "HOURS":
        detail = (
            f"Следующее обслуживание: {info.next_due_hours:g} ч, "
            f"текущие моточасы: {machine.current_hours:g} ч, остаток: {info.remaining_hours:g} ч"
        ) if info.next_due_hours is not None else "Интервал обслуживания настроен некорректно"
    else:
        detail = (
            f"Дата обслуживания: {info.next_date.strftime('%d.%m.%Y')}, осталось дней: {info.days_remaining}"
        ) if info.days_remaining is not None else "Интервал обслуживания настроен некорректно"

    title = "Просрочено обслуживание" if info.status == STATUS_OVERDUE else "Приближается обслуживание"
    return f"""
    <html>
        <body>
            <h2>{title}</h2>
            <p><b>Машина:</b> {escape(machine.name)} ({escape(machine.code)})</p>
            <p><b>Обслуживание:</b> {escape(info.name)}</p>
            <p>{detail}</p>
        </body>
    </html>
    """


@dataclass
class MaintenanceAlert:
    """
    Уведомление, подготовленное в транзакции записи и отправляемое после commit
    """
    definition: MaintenanceDefinition
    info: MaintenanceDueInfo
    machine_id: int
    recipients: List[str]
    subject: str
    html: str


@dataclass
class MaintenanceCheck:
    statuses: List[MaintenanceDueInfo] = field(default_factory=list)
    alerts: List[MaintenanceAlert] = field(default_factory=list)


class MaintenanceNotifier:
    """
    Уведомления о достижении порогов планового обслуживания

    Каждое определение уведомляет один раз на порог (флаги notified_warning/notified_overdue),
    флаги сбрасываются при возврате в OK и при выполнении обслуживания.

    Работа в два шага: check_maintenance_thresholds внутри транзакции записи,
    send_alerts после commit.
    Письмо не уходит, если транзакция записи откатилась.
    """

    def __init__(
        self,
        channel: Optional[EmailChannel] = None,
        clock: Callable[[], date] = system_today
    ):
        self.channel = channel or EmailChannel()
        self.clock = clock

    def _recipients(self, machine: Machine) -> List[str]:
        recipients = settings.get_alert_recipients_list()
        worker = machine.responsible_worker
        if worker is not None and worker.email and worker.email not in recipients:
            recipients.append(worker.email)
        return recipients

    def check_maintenance_thresholds(self, machine: Machine, new_hours: Optional[float] = None) -> MaintenanceCheck:
        """
        Статусы обслуживания машины и уведомления, которые нужно отправить

        Сбрасывает флаги определений, вернувшихся в OK. Флаги отправки
        выставляет только send_alerts.

        Args:
            machine: Машина с уже обновлёнными моточасами
            new_hours: Новое показание моточасов (для журнала)
        """
        statuses = compute_machine_status(
            machine,
            self.clock(),
            date_warning_days=settings.maintenance_date_warning_days,
            default_last_hours=settings.default_last_maintenance_hours
        )
        check = MaintenanceCheck(statuses=statuses)
        definitions = {d.id: d for d in machine.maintenance_definitions}

        for info in statuses:
            definition = definitions.get(info.definition_id)
            if definition is None:
                continue

            if info.status == STATUS_OK:
                definition.notified_warning = False
                definition.notified_overdue = False
                continue

            if info.status == STATUS_WARNING and definition.notified_warning:
                continue
            if info.status == STATUS_OVERDUE and definition.notified_overdue:
                continue

            if not self.channel.enabled:
                logger.debug("Email отключён, уведомление об обслуживании пропущено", extra={
                    "machine_id": machine.id,
                    "definition_id": definition.id,
                    "status": info.status,
                    "new_hours": new_hours
                })
                continue

            prefix = "[GMAO] Просрочено" if info.status == STATUS_OVERDUE else "[GMAO] Скоро"
            check.alerts.append(MaintenanceAlert(
                definition=definition,
                info=info,
                machine_id=machine.id,
                recipients=self._recipients(machine),
                subject=f"{prefix}: {info.name} ({machine.name})",
                html=_alert_html(machine, info)
            ))

        return check

    def send_alerts(self, alerts: List[MaintenanceAlert]) -> List[MaintenanceDueInfo]:
        """
        Отправка подготовленных уведомлений

        После успешной отправки выставляет флаг порога на определении;
        сохранить флаги должен вызывающий код. Ошибка отправки логируется,
        флаг остаётся снятым и уведомление повторится при следующей проверке.

        Returns:
            Определения, по которым уведомление отправлено
        """
        sent: List[MaintenanceDueInfo] = []
        for alert in alerts:
            result = self.channel.send_email(alert.recipients, alert.subject, alert.html)
            if not result["success"]:
                logger.warning(
                    "Уведомление об обслуживании не отправлено",
                    extra={
                        "machine_id": alert.machine_id,
                        "definition_id": alert.info.definition_id,
                        "status": alert.info.status,
                        "error": result.get("error")
                    }
                )
                continue

            if alert.info.status == STATUS_OVERDUE:
                alert.definition.notified_overdue = True
            alert.definition.notified_warning = True
            record_maintenance_alert(alert.info.status)
            sent.append(alert.info)
        return sent
