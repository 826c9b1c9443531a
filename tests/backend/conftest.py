import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.case import Case  # noqa: E402
from backend.models.user import Role, User  # noqa: E402

PETITIONER_ID = 1
ATTORNEY_ID = 2
LEGAL_ASSISTANT_ID = 3
ADMIN_ID = 4
OTHER_ATTORNEY_ID = 5
OTHER_PETITIONER_ID = 6
CASE_ID = 10
OTHER_CASE_ID = 11


class RecordingDispatcher:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.invites: list[dict] = []
        self.reminders: list[dict] = []

    def send_invite(self, to, petitioner_name, staff_name, scheduled_at, case_number) -> bool:
        self.invites.append(
            {
                'to': to,
                'petitioner_name': petitioner_name,
                'staff_name': staff_name,
                'scheduled_at': scheduled_at,
                'case_number': case_number,
            }
        )
        return self.succeed

    def send_reminder(self, to, scheduled_at, other_party_name) -> bool:
        self.reminders.append({'to': to, 'scheduled_at': scheduled_at, 'other_party_name': other_party_name})
        return self.succeed


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Case.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def appointment_db(session_factory):
    db = session_factory()
    db.add_all(
        [
            User(id=PETITIONER_ID, email='pat@example.com', uname='pat', first_name='Pat', last_name='Doe', role=Role.PETITIONER.value),
            User(id=ATTORNEY_ID, email='alex@firm.com', uname='alex', first_name='Alex', last_name='Lee', role=Role.STAFF_ATTORNEY.value),
            User(id=LEGAL_ASSISTANT_ID, email='sam@firm.com', uname='sam', role=Role.STAFF_LEGAL_ASSISTANT.value),
            User(id=ADMIN_ID, email='admin@firm.com', uname='admin', role=Role.ADMIN.value),
            User(id=OTHER_ATTORNEY_ID, email='jo@firm.com', uname='jo', role=Role.STAFF_ATTORNEY.value),
            User(id=OTHER_PETITIONER_ID, email='kim@placeholder.local', uname='kim', role=Role.PETITIONER.value),
            Case(
                id=CASE_ID,
                case_number='2026-DR-123',
                petitioner_id=PETITIONER_ID,
                petitioner_attorney_id=ATTORNEY_ID,
                legal_assistant_id=LEGAL_ASSISTANT_ID,
            ),
            Case(
                id=OTHER_CASE_ID,
                case_number='2026-DR-456',
                petitioner_id=OTHER_PETITIONER_ID,
                petitioner_attorney_id=OTHER_ATTORNEY_ID,
            ),
        ]
    )
    db.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_appointment(appointment_db):
    def _make(**overrides) -> Appointment:
        fields = {
            'case_id': CASE_ID,
            'petitioner_id': PETITIONER_ID,
            'staff_attorney_id': ATTORNEY_ID,
            'scheduled_at': datetime(2026, 3, 2, 9, 0),
            'duration_minutes': 15,
            'status': 'pending',
            'created_by': ATTORNEY_ID,
            'created_at': datetime(2026, 2, 1, 12, 0),
        }
        fields.update(overrides)
        appointment = Appointment(**fields)
        appointment_db.add(appointment)
        appointment_db.commit()
        appointment_db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
