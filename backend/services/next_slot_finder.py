import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from backend.core import config
from backend.core.errors import NoAvailability, ValidationError
from backend.models.appointment import ALLOWED_DURATIONS
from backend.services.appointment_store import AppointmentFilter, AppointmentStore, utc_now
from backend.services.availability import busy_slots, first_open_slot
from backend.services.slot_grid import slot_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenSlot:
    date: date
    slot: time

    @property
    def scheduled_at(self) -> datetime:
        return slot_datetime(self.date, self.slot)


def validate_duration(duration_minutes: int) -> int:
    if duration_minutes not in ALLOWED_DURATIONS:
        raise ValidationError(
            'durationMinutes must be 15, 30, 45, or 60.',
            {'durationMinutes': duration_minutes},
        )
    return duration_minutes


def day_busy_slots(store: AppointmentStore, staff_id: int, petitioner_id: int, day: date) -> set[time]:
    staff_appointments = store.list(AppointmentFilter(staff_id=staff_id, day=day, exclude_cancelled=True))
    petitioner_appointments = store.list(
        AppointmentFilter(petitioner_id=petitioner_id, day=day, exclude_cancelled=True)
    )
    return busy_slots(day, staff_appointments, petitioner_appointments)


def find_next_available(
    store: AppointmentStore,
    staff_id: int,
    petitioner_id: int,
    duration_minutes: int,
    start_date: date | None = None,
    horizon_days: int | None = None,
) -> OpenSlot:
    """Earliest (date, slot) free on both calendars for the whole duration.

    Days are scanned in order from ``start_date`` (today, UTC, by default) and
    slots left to right within a day. Raises ``NoAvailability`` when nothing
    fits within the horizon.
    """
    validate_duration(duration_minutes)
    horizon = horizon_days or config.NEXT_AVAILABLE_HORIZON_DAYS
    first_day = start_date or utc_now().date()

    for offset in range(horizon):
        day = first_day + timedelta(days=offset)
        busy = day_busy_slots(store, staff_id, petitioner_id, day)
        slot = first_open_slot(busy, duration_minutes)
        if slot is not None:
            return OpenSlot(date=day, slot=slot)

    logger.info(
        'No %s-minute opening for staff %s and petitioner %s within %s days of %s.',
        duration_minutes,
        staff_id,
        petitioner_id,
        horizon,
        first_day,
    )
    raise NoAvailability(horizon)
