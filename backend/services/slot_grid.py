"""Fifteen-minute daily slot grid, 06:00 through 22:00 (last bookable start).

Slots are ``datetime.time`` values; all appointment timestamps are naive UTC.
This is the only place the grid is defined.
"""

import math
from datetime import date, datetime, time

SLOT_INCREMENT_MINUTES = 15
GRID_START = time(6, 0)
GRID_LAST_START = time(22, 0)
MIN_SLOTS_PER_APPOINTMENT = 1
MAX_SLOTS_PER_APPOINTMENT = 4


def _build_grid() -> tuple[time, ...]:
    slots = []
    minutes = GRID_START.hour * 60 + GRID_START.minute
    last = GRID_LAST_START.hour * 60 + GRID_LAST_START.minute
    while minutes <= last:
        slots.append(time(minutes // 60, minutes % 60))
        minutes += SLOT_INCREMENT_MINUTES
    return tuple(slots)


GRID_SLOTS = _build_grid()
_SLOT_INDEX = {slot: index for index, slot in enumerate(GRID_SLOTS)}


def slot_index(slot: time) -> int | None:
    return _SLOT_INDEX.get(slot.replace(second=0, microsecond=0))


def time_to_slot(value: time | datetime) -> time:
    """Round a wall-clock time to the nearest grid slot.

    Minutes round to the nearest multiple of 15; a result of 60 rolls the hour
    forward. Raises ``ValueError`` when the rounded time is not on the grid.
    """
    if isinstance(value, datetime):
        value = value.time()

    hour = value.hour
    minute = math.floor(value.minute / SLOT_INCREMENT_MINUTES + 0.5) * SLOT_INCREMENT_MINUTES
    if minute == 60:
        hour += 1
        minute = 0

    if hour > 23:
        raise ValueError(f'{value.strftime("%H:%M")} is outside the scheduling grid.')

    slot = time(hour, minute)
    if slot not in _SLOT_INDEX:
        raise ValueError(f'{value.strftime("%H:%M")} is outside the scheduling grid.')
    return slot


def slot_count_for_duration(minutes: int) -> int:
    count = math.floor(minutes / SLOT_INCREMENT_MINUTES + 0.5)
    return max(MIN_SLOTS_PER_APPOINTMENT, min(MAX_SLOTS_PER_APPOINTMENT, count))


def contiguous_slots(start_slot: time, minutes: int) -> list[time]:
    """Consecutive slots from ``start_slot`` covering ``minutes``.

    The list is cut short at the end of the grid, so callers compare its length
    with ``slot_count_for_duration`` to detect a block that does not fit.
    """
    start = slot_index(start_slot)
    if start is None:
        return []
    count = slot_count_for_duration(minutes)
    return list(GRID_SLOTS[start:start + count])


def block_fits(start_slot: time, minutes: int) -> bool:
    return len(contiguous_slots(start_slot, minutes)) == slot_count_for_duration(minutes)


def slot_datetime(day: date, slot: time) -> datetime:
    return datetime.combine(day, slot)


def format_slot(slot: time) -> str:
    return slot.strftime('%H:%M')


def format_slot_display(slot: time) -> str:
    """``06:00`` -> ``6:00 AM``, ``14:30`` -> ``2:30 PM``."""
    hour = slot.hour % 12 or 12
    suffix = 'AM' if slot.hour < 12 else 'PM'
    return f'{hour}:{slot.minute:02d} {suffix}'
