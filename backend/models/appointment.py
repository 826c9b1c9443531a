"""Appointment model definitions."""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, Integer, DateTime, ForeignKey, String
from backend.database import Base


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    RESCHEDULE_REQUESTED = "reschedule_requested"


DEFAULT_DURATION_MINUTES = 15
ALLOWED_DURATIONS = (15, 30, 45, 60)
MAX_APPOINTMENT_NOTES_LENGTH = 500


class Appointment(Base):
    """Represents a scheduled appointment between a petitioner and one staff member."""
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "(staff_attorney_id IS NULL) <> (staff_legal_assistant_id IS NULL)",
            name="ck_appointments_single_staff",
        ),
    )

    id = Column(Integer, primary_key=True)
    case_id = Column(Integer, ForeignKey("cases.id"), nullable=False)
    petitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    staff_attorney_id = Column(Integer, ForeignKey("users.id"))
    staff_legal_assistant_id = Column(Integer, ForeignKey("users.id"))
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=DEFAULT_DURATION_MINUTES)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    notes = Column(String(MAX_APPOINTMENT_NOTES_LENGTH))
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False)

    @property
    def staff_id(self) -> int | None:
        return self.staff_attorney_id if self.staff_attorney_id is not None else self.staff_legal_assistant_id
