from datetime import date, datetime, time

import pytest

from backend.services.slot_grid import (
    GRID_SLOTS,
    contiguous_slots,
    format_slot,
    format_slot_display,
    slot_count_for_duration,
    slot_datetime,
    time_to_slot,
)


def test_grid_runs_from_six_to_ten_in_fifteen_minute_steps() -> None:
    assert GRID_SLOTS[0] == time(6, 0)
    assert GRID_SLOTS[1] == time(6, 15)
    assert GRID_SLOTS[-1] == time(22, 0)
    assert len(GRID_SLOTS) == 65


@pytest.mark.parametrize(('minutes', 'expected'), [(15, 1), (30, 2), (45, 3), (60, 4)])
def test_slot_count_for_allowed_durations(minutes: int, expected: int) -> None:
    assert slot_count_for_duration(minutes) == expected


@pytest.mark.parametrize(('minutes', 'expected'), [(0, 1), (5, 1), (22, 1), (23, 2), (90, 4), (240, 4)])
def test_slot_count_is_clamped(minutes: int, expected: int) -> None:
    assert slot_count_for_duration(minutes) == expected


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (time(9, 0), time(9, 0)),
        (time(9, 7), time(9, 0)),
        (time(9, 8), time(9, 15)),
        (time(9, 52), time(9, 45)),
        (time(9, 53), time(10, 0)),
        (time(5, 53), time(6, 0)),
        (time(22, 7), time(22, 0)),
        (datetime(2026, 3, 2, 14, 31, 59), time(14, 30)),
    ],
)
def test_time_to_slot_rounds_to_nearest_slot(value, expected: time) -> None:
    assert time_to_slot(value) == expected


@pytest.mark.parametrize('value', [time(5, 0), time(5, 52), time(22, 8), time(23, 55), time(0, 0)])
def test_time_to_slot_rejects_times_outside_grid(value: time) -> None:
    with pytest.raises(ValueError):
        time_to_slot(value)


def test_contiguous_slots_returns_block_for_duration() -> None:
    assert contiguous_slots(time(9, 0), 45) == [time(9, 0), time(9, 15), time(9, 30)]


def test_contiguous_slots_is_cut_short_at_end_of_grid() -> None:
    assert contiguous_slots(time(21, 30), 60) == [time(21, 30), time(21, 45), time(22, 0)]
    assert contiguous_slots(time(22, 0), 30) == [time(22, 0)]


def test_contiguous_slots_never_extends_past_last_slot() -> None:
    for slot in GRID_SLOTS:
        for minutes in (15, 30, 45, 60):
            assert all(candidate <= time(22, 0) for candidate in contiguous_slots(slot, minutes))


def test_contiguous_slots_is_empty_for_off_grid_start() -> None:
    assert contiguous_slots(time(9, 10), 30) == []


def test_slot_formatting_helpers() -> None:
    assert format_slot(time(6, 0)) == '06:00'
    assert format_slot_display(time(6, 0)) == '6:00 AM'
    assert format_slot_display(time(12, 15)) == '12:15 PM'
    assert format_slot_display(time(14, 30)) == '2:30 PM'
    assert slot_datetime(date(2026, 3, 2), time(10, 0)) == datetime(2026, 3, 2, 10, 0)
