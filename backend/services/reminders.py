import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from backend.models.appointment import AppointmentStatus
from backend.models.user import User
from backend.services.appointment_store import AppointmentFilter, AppointmentStore
from backend.services.notifications import NotificationDispatcher, is_deliverable

logger = logging.getLogger(__name__)

REMINDER_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.ACCEPTED.value)


def send_day_before_reminders(db: Session, dispatcher: NotificationDispatcher, now: datetime) -> int:
    """Email both participants of every live appointment on the day after ``now``.

    Returns the number of reminders the dispatcher accepted.
    """
    tomorrow = now.date() + timedelta(days=1)
    appointments = AppointmentStore(db).list(AppointmentFilter(day=tomorrow, statuses=REMINDER_STATUSES))

    sent = 0
    for appointment in appointments:
        petitioner = db.query(User).filter(User.id == appointment.petitioner_id).first()
        staff = db.query(User).filter(User.id == appointment.staff_id).first()
        if petitioner is None or staff is None:
            logger.warning('Appointment %s is missing a participant; no reminder sent.', appointment.id)
            continue

        pairs = ((petitioner, staff), (staff, petitioner))
        for recipient, other_party in pairs:
            if not is_deliverable(recipient):
                continue
            if dispatcher.send_reminder(
                to=recipient.email,
                scheduled_at=appointment.scheduled_at,
                other_party_name=other_party.display_name or None,
            ):
                sent += 1

    logger.info('Sent %s reminders for %s appointments on %s.', sent, len(appointments), tomorrow)
    return sent
