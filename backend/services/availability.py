import logging
from collections.abc import Callable, Iterable
from datetime import date, time

from backend.models.appointment import Appointment, AppointmentStatus
from backend.services.slot_grid import (
    GRID_SLOTS,
    block_fits,
    contiguous_slots,
    time_to_slot,
)

logger = logging.getLogger(__name__)


def occupied_slots(appointment: Appointment) -> list[time]:
    """Grid slots covered by an appointment; empty when it starts off the grid."""
    try:
        start_slot = time_to_slot(appointment.scheduled_at)
    except ValueError:
        logger.warning(
            'Appointment %s at %s starts outside the scheduling grid; ignoring it for availability.',
            appointment.id,
            appointment.scheduled_at,
        )
        return []
    return contiguous_slots(start_slot, appointment.duration_minutes or 15)


def busy_slots(day: date, *calendars: Iterable[Appointment]) -> set[time]:
    """Union of the slots occupied on ``day`` by non-cancelled appointments of every calendar."""
    busy: set[time] = set()
    for calendar in calendars:
        for appointment in calendar:
            if appointment.status == AppointmentStatus.CANCELLED.value:
                continue
            if appointment.scheduled_at is None or appointment.scheduled_at.date() != day:
                continue
            busy.update(occupied_slots(appointment))
    return busy


def is_selectable(slot: time, busy: set[time], duration_minutes: int) -> bool:
    if slot in busy:
        return False
    if not block_fits(slot, duration_minutes):
        return False
    return all(candidate not in busy for candidate in contiguous_slots(slot, duration_minutes))


def first_open_slot(busy: set[time], duration_minutes: int) -> time | None:
    for slot in GRID_SLOTS:
        if is_selectable(slot, busy, duration_minutes):
            return slot
    return None


def busy_slot_labels(
    day: date,
    appointments: Iterable[Appointment],
    labeler: Callable[[Appointment], str],
) -> dict[time, str]:
    """Display labels (e.g. ``Case #123``) for busy slots; first appointment wins."""
    labels: dict[time, str] = {}
    for appointment in appointments:
        if appointment.status == AppointmentStatus.CANCELLED.value:
            continue
        if appointment.scheduled_at is None or appointment.scheduled_at.date() != day:
            continue
        label = labeler(appointment)
        for slot in occupied_slots(appointment):
            labels.setdefault(slot, label)
    return labels
