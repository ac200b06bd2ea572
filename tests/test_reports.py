import pytest

from core import lifecycle
from core.availability import reschedule_slots_for_booking, slots_for_date
from core.errors import Forbidden, NotFound
from core.reports import booking_stats
from tests.conftest import MONDAY, SUNDAY, book, wash


def test_slots_for_date_reads_bookings(customer, services):
    book(customer, wash(services), time="10:00")

    slots = slots_for_date(MONDAY.isoformat(), 60)
    assert "09:00" in slots
    assert "09:30" not in slots
    assert "10:00" not in slots
    assert "10:30" not in slots
    assert "11:00" in slots

    assert slots_for_date(SUNDAY) == []


def test_slots_for_date_defaults_to_two_hours(customer, services):
    book(customer, wash(services), time="12:00")
    slots = slots_for_date(MONDAY)
    # a 120 minute default window starting 10:30 would run into 12:00
    assert "10:00" in slots
    assert "10:30" not in slots


def test_cancelled_bookings_free_their_slot(customer, services):
    booking = book(customer, wash(services), time="10:00")
    lifecycle.cancel_booking(customer, booking.id, "changed plans")
    assert "10:00" in slots_for_date(MONDAY, 60)


def test_reschedule_slots_exclude_the_booking_itself(customer, other_customer, admin, services):
    booking = book(customer, wash(services), time="10:00")
    book(other_customer, wash(services), time="12:00")

    slots = {s["time"]: s for s in reschedule_slots_for_booking(admin, booking.id)}
    assert slots["10:00"]["available"] is True
    assert slots["12:00"] == {"time": "12:00", "available": False, "reason": "Booked"}

    with pytest.raises(Forbidden):
        reschedule_slots_for_booking(customer, booking.id)
    with pytest.raises(NotFound):
        reschedule_slots_for_booking(admin, 9999)


def test_booking_stats(customer, admin, services):
    done = book(customer, ["Full Detail"], time="08:00")
    lifecycle.accept_booking(admin, done.id)
    lifecycle.complete_booking(admin, done.id)
    book(customer, wash(services, quantity=2), time="14:00")
    dropped = book(customer, ["Interior Only"], time="16:00")
    lifecycle.cancel_booking(customer, dropped.id, "busy")

    stats = booking_stats(admin)
    assert stats["total_bookings"] == 3
    assert stats["by_status"]["completed"] == 1
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["no-show"] == 0
    assert stats["total_revenue"] == 8000
    assert stats["by_service_category"] == {"full": 1, "exterior": 1}

    empty = booking_stats(admin, start_date="2026-10-20")
    assert empty["total_bookings"] == 0
    assert empty["total_revenue"] == 0

    with pytest.raises(Forbidden):
        booking_stats(customer)
