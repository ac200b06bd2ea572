from flask import current_app

from models.booking import Booking
from core.errors import NotFound
from core.slots import BusinessHours, available_slots, parse_date, reschedule_slots
from security.rbac import require_admin
from models import db


def _bookings_on(day, exclude_id=None):
    q = Booking.query.filter(Booking.scheduled_date == day, Booking.status != "cancelled")
    if exclude_id is not None:
        q = q.filter(Booking.id != exclude_id)
    return q.all()


def slots_for_date(day, duration=None):
    """Customer view: free start times on `day`."""
    config = current_app.config
    day = parse_date(day)
    return available_slots(
        day,
        duration or config.get("DEFAULT_SLOT_DURATION", 120),
        _bookings_on(day),
        interval=config.get("SLOT_INTERVAL_MINUTES", 30),
        hours=BusinessHours.from_config(config),
    )


def reschedule_slots_for_booking(actor, booking_id, day=None, duration=None):
    require_admin(actor)
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")

    config = current_app.config
    day = parse_date(day) if day else booking.scheduled_date
    return reschedule_slots(
        day,
        duration or booking.duration,
        _bookings_on(day, exclude_id=booking.id),
        interval=config.get("RESCHEDULE_SLOT_INTERVAL_MINUTES", 60),
        hours=BusinessHours.from_config(config),
    )
