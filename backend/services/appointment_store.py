from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from backend.models.appointment import Appointment, AppointmentStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class AppointmentFilter:
    case_id: int | None = None
    staff_id: int | None = None
    staff_attorney_id: int | None = None
    staff_legal_assistant_id: int | None = None
    petitioner_id: int | None = None
    day: date | None = None
    statuses: tuple[str, ...] | None = None
    exclude_cancelled: bool = False


class AppointmentStore:
    """CRUD over the appointments table. Business rules live in the callers."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, criteria: AppointmentFilter) -> Query:
        query = self.db.query(Appointment)
        if criteria.case_id is not None:
            query = query.filter(Appointment.case_id == criteria.case_id)
        if criteria.staff_id is not None:
            query = query.filter(
                or_(
                    Appointment.staff_attorney_id == criteria.staff_id,
                    Appointment.staff_legal_assistant_id == criteria.staff_id,
                )
            )
        if criteria.staff_attorney_id is not None:
            query = query.filter(Appointment.staff_attorney_id == criteria.staff_attorney_id)
        if criteria.staff_legal_assistant_id is not None:
            query = query.filter(Appointment.staff_legal_assistant_id == criteria.staff_legal_assistant_id)
        if criteria.petitioner_id is not None:
            query = query.filter(Appointment.petitioner_id == criteria.petitioner_id)
        if criteria.day is not None:
            start_of_day = datetime.combine(criteria.day, time.min)
            query = query.filter(
                Appointment.scheduled_at >= start_of_day,
                Appointment.scheduled_at < start_of_day + timedelta(days=1),
            )
        if criteria.statuses:
            query = query.filter(Appointment.status.in_(criteria.statuses))
        if criteria.exclude_cancelled:
            query = query.filter(Appointment.status != AppointmentStatus.CANCELLED.value)
        return query

    def create(self, **fields) -> int:
        fields.setdefault('status', AppointmentStatus.PENDING.value)
        fields.setdefault('created_at', utc_now())
        appointment = Appointment(**fields)
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment.id

    def get(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def list(self, criteria: AppointmentFilter | None = None) -> list[Appointment]:
        query = self._query(criteria or AppointmentFilter())
        return query.order_by(Appointment.scheduled_at.asc(), Appointment.id.asc()).all()

    def count(self, criteria: AppointmentFilter | None = None) -> int:
        return self._query(criteria or AppointmentFilter()).count()

    def patch(self, appointment_id: int, fields: dict, expected_status: str | None = None) -> bool:
        """Update ``fields``; returns False when the row is missing or its status moved on."""
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if expected_status is not None:
            query = query.filter(Appointment.status == expected_status)
        updated = query.update(fields, synchronize_session=False)
        self.db.commit()
        self.db.expire_all()
        return updated > 0
