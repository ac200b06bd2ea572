from sqlalchemy import func

from models import db
from models.booking import Booking, BookingItem, BOOKING_STATUSES
from models.service import Service
from core.slots import parse_date
from security.rbac import require_admin


def _in_range(q, start_date, end_date):
    if start_date:
        q = q.filter(Booking.scheduled_date >= parse_date(start_date))
    if end_date:
        q = q.filter(Booking.scheduled_date <= parse_date(end_date))
    return q


def booking_stats(actor, start_date=None, end_date=None):
    """
    Booking counts per status, revenue from completed bookings and the number
    of booked items per service category, for bookings scheduled in the range.
    """
    require_admin(actor)

    by_status = dict.fromkeys(BOOKING_STATUSES, 0)
    rows = _in_range(
        db.session.query(Booking.status, func.count(Booking.id)), start_date, end_date
    ).group_by(Booking.status).all()
    for status, count in rows:
        by_status[status] = count

    revenue = _in_range(
        db.session.query(func.coalesce(func.sum(Booking.total_amount), 0))
        .filter(Booking.status == "completed"),
        start_date, end_date,
    ).scalar()

    rows = _in_range(
        db.session.query(Service.category, func.count(BookingItem.id))
        .join(BookingItem, BookingItem.service_id == Service.id)
        .join(Booking, BookingItem.booking_id == Booking.id)
        .filter(Booking.status != "cancelled"),
        start_date, end_date,
    ).group_by(Service.category).all()

    return {
        "total_bookings": sum(by_status.values()),
        "by_status": by_status,
        "total_revenue": int(revenue or 0),
        "by_service_category": {category: count for category, count in rows},
    }
