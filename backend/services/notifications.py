"""Appointment invite and reminder emails sent over SMTP.

Dispatch never raises to the caller: every send reports success as a bool so
that a failed email cannot roll back the appointment change that triggered it.
"""

import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import Appointment
from backend.models.case import Case
from backend.models.user import User
from backend.services.slot_grid import format_slot_display

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_MARKER = '@placeholder'


class NotificationDispatcher(Protocol):
    def send_invite(
        self,
        to: str,
        petitioner_name: str,
        staff_name: str,
        scheduled_at: datetime,
        case_number: str,
    ) -> bool: ...

    def send_reminder(self, to: str, scheduled_at: datetime, other_party_name: str | None) -> bool: ...


def is_deliverable(user: User | None) -> bool:
    return bool(user and user.email and PLACEHOLDER_EMAIL_MARKER not in user.email)


def format_when(scheduled_at: datetime) -> str:
    return f'{scheduled_at:%A, %B} {scheduled_at.day}, {scheduled_at.year} at {format_slot_display(scheduled_at.time())} UTC'


class SmtpNotificationDispatcher:
    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USERNAME,
        password: str = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        from_address: str = config.EMAIL_FROM_ADDRESS,
        app_url: str = config.APP_BASE_URL,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.app_url = app_url

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(), timeout=30)
        server = smtplib.SMTP(self.host, self.port, timeout=30)
        if self.use_tls:
            server.starttls(context=ssl.create_default_context())
        return server

    def send(self, to: str, subject: str, html_content: str) -> bool:
        if not self.host:
            logger.warning('SMTP_HOST is not configured; skipping email "%s" to %s.', subject, to)
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.from_address
        msg['To'] = to
        msg.attach(MIMEText(html_content, 'html'))

        try:
            server = self._connect()
            try:
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_address.split('<')[-1].rstrip('>'), [to], msg.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError):
            logger.exception('Failed to send email "%s" to %s via %s.', subject, to, self.host)
            return False

        logger.info('Sent email "%s" to %s.', subject, to)
        return True

    def send_invite(
        self,
        to: str,
        petitioner_name: str,
        staff_name: str,
        scheduled_at: datetime,
        case_number: str,
    ) -> bool:
        case_line = f'<p>Case: {case_number}</p>' if case_number else ''
        html = (
            f'<p>An appointment between {petitioner_name} and {staff_name} has been scheduled '
            f'for {format_when(scheduled_at)}.</p>'
            f'{case_line}'
            f'<p><a href="{self.app_url}/upcoming-events">Review the appointment</a></p>'
        )
        return self.send(to, 'Appointment invitation', html)

    def send_reminder(self, to: str, scheduled_at: datetime, other_party_name: str | None) -> bool:
        with_line = f' with {other_party_name}' if other_party_name else ''
        html = (
            f'<p>Reminder: you have an appointment{with_line} on {format_when(scheduled_at)}.</p>'
            f'<p><a href="{self.app_url}/upcoming-events">View your upcoming events</a></p>'
        )
        return self.send(to, 'Appointment reminder', html)


def get_notification_dispatcher() -> NotificationDispatcher:
    return SmtpNotificationDispatcher()


def send_appointment_invites(db: Session, appointment: Appointment, dispatcher: NotificationDispatcher) -> bool:
    """Invite the petitioner and the staff participant; True only if every deliverable send succeeded."""
    petitioner = db.query(User).filter(User.id == appointment.petitioner_id).first()
    staff = db.query(User).filter(User.id == appointment.staff_id).first()
    case = db.query(Case).filter(Case.id == appointment.case_id).first()

    petitioner_name = (petitioner.display_name if petitioner else '') or 'Petitioner'
    if staff and staff.display_name:
        staff_name = staff.display_name
    else:
        staff_name = 'Attorney' if appointment.staff_attorney_id is not None else 'Legal Assistant'
    case_number = (case.case_number if case else '') or ''

    sent = True
    for recipient in (petitioner, staff):
        if not is_deliverable(recipient):
            continue
        sent = dispatcher.send_invite(
            to=recipient.email,
            petitioner_name=petitioner_name,
            staff_name=staff_name,
            scheduled_at=appointment.scheduled_at,
            case_number=case_number,
        ) and sent
    return sent
