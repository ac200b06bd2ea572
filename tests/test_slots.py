from types import SimpleNamespace

import pytest

from core.errors import ValidationError
from core.slots import (
    BusinessHours, available_slots, format_time, overlaps, parse_date, parse_time, reschedule_slots,
)
from tests.conftest import MONDAY, SUNDAY


def _booking(time, duration, status="confirmed", day=MONDAY):
    return SimpleNamespace(scheduled_date=day, scheduled_time=time, duration=duration, status=status)


def test_parse_and_format_time():
    assert parse_time("09:30") == 570
    assert parse_time("9:30") == 570
    assert parse_time("23:59") == 1439
    assert format_time(570) == "09:30"


@pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", None, "1230"])
def test_parse_time_rejects_malformed(value):
    with pytest.raises(ValidationError) as exc:
        parse_time(value)
    assert exc.value.message == "Invalid time format (HH:MM)"


def test_parse_date():
    assert parse_date("2026-10-19") == MONDAY
    assert parse_date("2026-10-19T10:00:00Z") == MONDAY
    with pytest.raises(ValidationError):
        parse_date("19/10/2026")


def test_overlap_is_half_open():
    assert overlaps(600, 720, 660, 780)
    assert not overlaps(600, 720, 720, 780)
    assert not overlaps(720, 780, 600, 720)


def test_existing_booking_blocks_overlapping_candidates():
    slots = available_slots(MONDAY, 60, [_booking("10:00", 120)])

    for blocked in ("09:30", "10:00", "10:30", "11:00", "11:30"):
        assert blocked not in slots
    for free in ("08:00", "08:30", "09:00", "12:00", "12:30"):
        assert free in slots


def test_no_returned_slot_overlaps_a_booking():
    bookings = [_booking("09:00", 90), _booking("13:15", 45), _booking("16:00", 30)]
    for label in available_slots(MONDAY, 60, bookings):
        start = parse_time(label)
        for b in bookings:
            b_start = parse_time(b.scheduled_time)
            assert not overlaps(start, start + 60, b_start, b_start + b.duration)


def test_cancelled_and_other_day_bookings_are_ignored():
    bookings = [
        _booking("10:00", 120, status="cancelled"),
        _booking("08:00", 600, day=SUNDAY),
    ]
    slots = available_slots(MONDAY, 60, bookings)
    assert slots[0] == "08:00"
    assert "10:00" in slots
    assert len(slots) == 20


def test_empty_day_lists_every_candidate_in_order():
    slots = available_slots(MONDAY, 120, [])
    assert slots[0] == "08:00"
    # candidates may run past closing
    assert slots[-1] == "17:30"
    assert slots == sorted(slots)


def test_closed_day_has_no_slots():
    assert available_slots(SUNDAY, 60, []) == []
    assert reschedule_slots(SUNDAY, 60, []) == []


def test_custom_business_hours():
    hours = BusinessHours(start_hour=9, end_hour=12, days=(6,))
    assert available_slots(SUNDAY, 60, [], interval=60, hours=hours) == ["09:00", "10:00", "11:00"]
    assert available_slots(MONDAY, 60, [], hours=hours) == []


def test_reschedule_variant_tags_booked_slots():
    slots = reschedule_slots(MONDAY, 60, [_booking("10:00", 120)])

    assert [s["time"] for s in slots][:3] == ["08:00", "09:00", "10:00"]
    by_time = {s["time"]: s for s in slots}
    assert by_time["09:00"] == {"time": "09:00", "available": True}
    assert by_time["10:00"] == {"time": "10:00", "available": False, "reason": "Booked"}
    assert by_time["11:00"]["available"] is False
    assert by_time["12:00"]["available"] is True


def test_rejects_non_positive_duration():
    with pytest.raises(ValidationError):
        available_slots(MONDAY, 0, [])
