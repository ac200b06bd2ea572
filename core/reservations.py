from flask import current_app

from models import db
from models.reservation import SlotReservation


def buckets(start: int, end: int, size: int):
    """Bucket start minutes covering the half-open window [start, end)."""
    first = (start // size) * size
    return list(range(first, end, size))


def reserve(booking):
    """
    Adds reservation rows for the booking's window. Nothing is flushed here:
    a collision surfaces as IntegrityError on the caller's commit.
    """
    size = current_app.config.get("RESERVATION_BUCKET_MINUTES", 15)
    resource = current_app.config.get("SLOT_RESOURCE", "default")
    rows = [
        SlotReservation(resource=resource, date=booking.scheduled_date, bucket_start=b, booking_id=booking.id)
        for b in buckets(booking.start_minute, booking.end_minute, size)
    ]
    db.session.add_all(rows)
    return rows


def release(booking):
    # bulk delete runs immediately, so a following reserve() in the same
    # transaction may reuse the freed buckets
    return SlotReservation.query.filter_by(booking_id=booking.id).delete()
