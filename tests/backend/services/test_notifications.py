import smtplib
from datetime import datetime

from backend.models.user import User
from backend.services import notifications
from backend.services.notifications import (
    SmtpNotificationDispatcher,
    format_when,
    is_deliverable,
    send_appointment_invites,
)
from conftest import LEGAL_ASSISTANT_ID, OTHER_ATTORNEY_ID, OTHER_CASE_ID, OTHER_PETITIONER_ID, RecordingDispatcher


class FakeSMTP:
    instances: list['FakeSMTP'] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in_as = None
        self.sent: list[tuple] = []
        self.closed = False
        type(self).instances.append(self)

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in_as = username

    def sendmail(self, from_addr, to_addrs, message):
        self.sent.append((from_addr, to_addrs, message))

    def quit(self):
        self.closed = True


class RefusingSMTP(FakeSMTP):
    def sendmail(self, from_addr, to_addrs, message):
        raise smtplib.SMTPRecipientsRefused({to_addrs[0]: (550, b'No such user')})


def _dispatcher(**overrides) -> SmtpNotificationDispatcher:
    settings = {
        'host': 'smtp.example.com',
        'port': 587,
        'username': 'mailer',
        'password': 'secret',
        'use_tls': True,
        'from_address': 'Scheduling <noreply@example.com>',
        'app_url': 'https://app.example.com',
    }
    settings.update(overrides)
    return SmtpNotificationDispatcher(**settings)


def test_placeholder_and_missing_emails_are_not_deliverable() -> None:
    assert is_deliverable(User(email='pat@example.com'))
    assert not is_deliverable(User(email='kim@placeholder.local'))
    assert not is_deliverable(User(email=None))
    assert not is_deliverable(None)


def test_format_when_uses_twelve_hour_clock() -> None:
    assert format_when(datetime(2026, 3, 2, 14, 30)) == 'Monday, March 2, 2026 at 2:30 PM UTC'


def test_invites_go_to_petitioner_and_staff(appointment_db, make_appointment, dispatcher) -> None:
    appointment = make_appointment(scheduled_at=datetime(2026, 3, 2, 10, 0))

    assert send_appointment_invites(appointment_db, appointment, dispatcher)

    assert [invite['to'] for invite in dispatcher.invites] == ['pat@example.com', 'alex@firm.com']
    assert dispatcher.invites[0]['petitioner_name'] == 'Pat Doe'
    assert dispatcher.invites[0]['staff_name'] == 'Alex Lee'
    assert dispatcher.invites[0]['case_number'] == '2026-DR-123'
    assert dispatcher.invites[0]['scheduled_at'] == datetime(2026, 3, 2, 10, 0)


def test_invites_skip_placeholder_addresses(appointment_db, make_appointment, dispatcher) -> None:
    appointment = make_appointment(
        case_id=OTHER_CASE_ID,
        petitioner_id=OTHER_PETITIONER_ID,
        staff_attorney_id=OTHER_ATTORNEY_ID,
    )

    assert send_appointment_invites(appointment_db, appointment, dispatcher)

    assert [invite['to'] for invite in dispatcher.invites] == ['jo@firm.com']


def test_legal_assistant_without_full_name_falls_back_to_username(appointment_db, make_appointment, dispatcher) -> None:
    appointment = make_appointment(staff_attorney_id=None, staff_legal_assistant_id=LEGAL_ASSISTANT_ID)

    send_appointment_invites(appointment_db, appointment, dispatcher)

    assert dispatcher.invites[1]['to'] == 'sam@firm.com'
    assert dispatcher.invites[1]['staff_name'] == 'sam'


def test_invite_failure_is_reported_without_raising(appointment_db, make_appointment) -> None:
    failing = RecordingDispatcher(succeed=False)

    assert not send_appointment_invites(appointment_db, make_appointment(), failing)
    assert len(failing.invites) == 2


def test_smtp_send_uses_starttls_and_login(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, 'SMTP', FakeSMTP)

    assert _dispatcher().send_invite('pat@example.com', 'Pat Doe', 'Alex Lee', datetime(2026, 3, 2, 9, 0), '2026-DR-123')

    server = FakeSMTP.instances[0]
    assert server.started_tls
    assert server.logged_in_as == 'mailer'
    assert server.closed
    from_addr, to_addrs, message = server.sent[0]
    assert from_addr == 'noreply@example.com'
    assert to_addrs == ['pat@example.com']
    assert 'Subject: Appointment invitation' in message


def test_smtp_failure_returns_false(monkeypatch) -> None:
    RefusingSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, 'SMTP', RefusingSMTP)

    assert not _dispatcher().send_reminder('pat@example.com', datetime(2026, 3, 2, 9, 0), 'Alex Lee')
    assert RefusingSMTP.instances[0].closed


def test_missing_smtp_host_skips_send(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, 'SMTP', FakeSMTP)

    assert not _dispatcher(host='').send_reminder('pat@example.com', datetime(2026, 3, 2, 9, 0), None)
    assert FakeSMTP.instances == []
