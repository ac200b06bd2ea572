"""
Booking lifecycle: creation, admin review, cancellation, reschedule,
completion and reviews.

Each operation is one database transaction. The status change is committed
first; refunds and emails run afterwards and only log when they fail.
"""
from datetime import date, datetime

from flask import current_app
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingItem, FREQUENCIES, VEHICLE_TYPES
from models.payment import Payment
from models.promo_code import PromoCode
from models.user import User
from core import reservations
from core.catalog import resolve_service
from core.errors import (
    Conflict, Forbidden, InvalidState, NotFound, ServiceError, UpstreamFailure, ValidationError,
)
from core.promo import apply_promo, calculate_discount, validate_promo
from core.slots import normalize_time, overlaps, parse_date, parse_time
from security.rbac import require_admin, require_owner, require_owner_or_admin
from utils import notifications, refunds
from utils.audit import log_event

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled", "completed", "pending"},
    "confirmed": {"in-progress", "completed", "cancelled", "no-show", "pending"},
    "in-progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
    "no-show": set(),
}

TERMINAL_STATUSES = ("completed", "cancelled", "no-show")
# statuses whose reservation rows stay in place
SLOT_HOLDING_STATUSES = ("pending", "confirmed", "in-progress", "completed")

SLOT_TAKEN = "Selected time slot is not available"


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def _transition(booking, target, message=None):
    if not can_transition(booking.status, target):
        raise InvalidState(message or f"Invalid booking transition: {booking.status} -> {target}")
    booking.status = target


def _get_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    return booking


def _require_reason(reason, label="Cancellation"):
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError(f"{label} reason is required")
    return reason


def _commit(conflict_message=SLOT_TAKEN):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(conflict_message)


# ---------- input validation ----------

def _clean_vehicle(vehicle):
    vehicle = dict(vehicle or {})
    missing = [k for k in ("make", "model", "year", "color", "type") if not vehicle.get(k)]
    if missing:
        raise ValidationError(f"Vehicle fields required: {', '.join(missing)}")
    try:
        year = int(vehicle["year"])
    except (TypeError, ValueError):
        raise ValidationError("Vehicle year must be a number")
    if not 1900 <= year <= date.today().year + 1:
        raise ValidationError("Vehicle year is out of range")
    if vehicle["type"] not in VEHICLE_TYPES:
        raise ValidationError(f"Vehicle type must be one of: {', '.join(VEHICLE_TYPES)}")
    vehicle["year"] = year
    return vehicle


def _clean_address(address):
    address = dict(address or {})
    missing = [k for k in ("street", "city", "state", "zip_code") if not str(address.get(k) or "").strip()]
    if missing:
        raise ValidationError(f"Address fields required: {', '.join(missing)}")
    address.setdefault("country", "US")
    return address


def _service_entry(entry):
    if isinstance(entry, dict):
        ref = entry.get("service")
        quantity = entry.get("quantity", 1)
    else:
        ref, quantity = entry, 1
    if ref is None or ref == "":
        raise ValidationError("Service is required")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    return ref, quantity


def _on_grid(time_label):
    start = parse_time(time_label)
    size = current_app.config.get("RESERVATION_BUCKET_MINUTES", 15)
    if start % size:
        raise ValidationError(f"Start time must fall on a {size}-minute boundary")
    return time_label


def _ensure_slot_free(booking, day, start):
    end = start + int(booking.duration)
    others = (
        Booking.query
        .filter(
            Booking.scheduled_date == day,
            Booking.status.in_(SLOT_HOLDING_STATUSES),
            Booking.id != booking.id,
        )
        .all()
    )
    for other in others:
        if overlaps(start, end, other.start_minute, other.end_minute):
            raise Conflict(SLOT_TAKEN)


# ---------- side effects ----------

def _refund(booking, actor, reason):
    payment = booking.payment
    if not payment or not payment.is_captured:
        return False
    try:
        refunds.refund_payment(payment, metadata={
            "booking_id": booking.id,
            "refunded_by": actor.id,
            "cancellation_reason": reason,
        })
    except UpstreamFailure as exc:
        current_app.logger.warning("booking %s: refund failed (%s)", booking.id, exc.message)
        log_event("BOOKING_REFUND_FAIL", user_id=actor.id, entity="booking", entity_id=booking.id,
                  metadata={"error": exc.message})
        return False

    payment.status = "refunded"
    payment.refunded_at = datetime.utcnow()
    db.session.commit()
    log_event("BOOKING_REFUND", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"payment_intent_id": payment.payment_intent_id})
    return True


def _cancel(booking, actor, reason, refund=True, offer_reschedule=False):
    _transition(booking, "cancelled", "Booking cannot be cancelled")
    booking.cancelled_by = actor.id
    booking.cancelled_at = datetime.utcnow()
    booking.cancellation_reason = reason
    if offer_reschedule:
        booking.reschedule_offered = True
        booking.reschedule_offered_at = datetime.utcnow()
    reservations.release(booking)
    db.session.commit()

    log_event("BOOKING_CANCEL", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason, "reschedule_offered": booking.reschedule_offered})
    if refund:
        _refund(booking, actor, reason)
    return booking


# ---------- customer operations ----------

def create_booking(actor, services, scheduled_date, scheduled_time, vehicle, address,
                   frequency="one-time", special_instructions=None, promo_code=None):
    if actor is None:
        raise Forbidden("Authentication required")
    if not services:
        raise ValidationError("At least one service is required")
    if frequency not in FREQUENCIES:
        raise ValidationError(f"Frequency must be one of: {', '.join(FREQUENCIES)}")

    booking = Booking(
        user_id=actor.id,
        scheduled_date=parse_date(scheduled_date),
        scheduled_time=_on_grid(normalize_time(scheduled_time)),
        vehicle=_clean_vehicle(vehicle),
        address=_clean_address(address),
        frequency=frequency,
        special_instructions=special_instructions,
        status="pending",
        discount_amount=0,
    )

    duration = 0
    for position, entry in enumerate(services):
        ref, quantity = _service_entry(entry)
        service = resolve_service(ref)
        price = service.seasonal_price(booking.vehicle["type"])
        booking.items.append(BookingItem(service=service, quantity=quantity, price=price, position=position))
        duration += service.duration * quantity
    booking.duration = duration
    subtotal = booking.items_total()
    service_ids = [i.service.id for i in booking.items]

    # an unknown or ineligible code leaves the booking at full price
    promo = None
    if promo_code:
        promo = PromoCode.query.filter_by(code=promo_code.strip().upper()).first()
        if promo and validate_promo(promo, actor.id, subtotal, service_ids).valid:
            booking.discount_amount = calculate_discount(promo, subtotal)
            booking.promo_code = promo
        else:
            promo = None

    booking.recalculate_total()
    booking.payment = Payment(amount=booking.total_amount, currency=current_app.config.get("CURRENCY", "usd"))

    db.session.add(booking)
    try:
        db.session.flush()
        reservations.reserve(booking)
        if promo and booking.discount_amount > 0:
            apply_promo(promo, actor.id, booking.id, subtotal, booking.discount_amount, service_ids)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(SLOT_TAKEN)
    except ServiceError:
        db.session.rollback()
        raise

    log_event("BOOKING_CREATE", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"total_amount": booking.total_amount, "promo_code_id": booking.promo_code_id})
    if promo and booking.discount_amount > 0:
        log_event("PROMO_APPLY", user_id=actor.id, entity="promo_code", entity_id=promo.id,
                  metadata={"booking_id": booking.id, "discount_amount": booking.discount_amount})
    notifications.booking_received(booking)
    return booking


def update_booking(actor, booking_id, scheduled_date=None, scheduled_time=None, vehicle=None,
                   address=None, special_instructions=None):
    booking = _get_booking(booking_id)
    require_owner_or_admin(actor, booking)
    if booking.status in TERMINAL_STATUSES:
        raise InvalidState("Cannot update completed or cancelled booking")

    new_vehicle = _clean_vehicle({**booking.vehicle, **vehicle}) if vehicle else None
    new_address = _clean_address({**booking.address, **address}) if address else None
    day = parse_date(scheduled_date) if scheduled_date else booking.scheduled_date
    time_label = _on_grid(normalize_time(scheduled_time)) if scheduled_time else booking.scheduled_time
    moved = (day, time_label) != (booking.scheduled_date, booking.scheduled_time)
    if moved:
        _ensure_slot_free(booking, day, parse_time(time_label))

    if new_vehicle:
        booking.vehicle = new_vehicle
    if new_address:
        booking.address = new_address
    if special_instructions:
        booking.special_instructions = special_instructions
    if moved:
        reservations.release(booking)
        booking.scheduled_date = day
        booking.scheduled_time = time_label
        reservations.reserve(booking)

    _commit()
    log_event("BOOKING_UPDATE", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"rescheduled": moved})
    return booking


def cancel_booking(actor, booking_id, reason):
    reason = _require_reason(reason)
    booking = _get_booking(booking_id)
    require_owner_or_admin(actor, booking)

    _cancel(booking, actor, reason)
    notifications.booking_cancelled(booking)
    return booking


def reschedule_booking(actor, booking_id, new_date, new_time):
    """
    The customer picks a new slot after an admin offered a reschedule (or
    after a cancellation). The booking goes back to pending for admin review.
    """
    if not new_date or not new_time:
        raise ValidationError("New date and time are required")
    day = parse_date(new_date)
    time_label = _on_grid(normalize_time(new_time))

    booking = _get_booking(booking_id)
    require_owner(actor, booking)
    revived = booking.status == "cancelled"
    if not revived and not (booking.reschedule_offered and can_transition(booking.status, "pending")):
        raise InvalidState("Booking cannot be rescheduled")

    _ensure_slot_free(booking, day, parse_time(time_label))

    if booking.original_scheduled_date is None:
        booking.original_scheduled_date = booking.scheduled_date
        booking.original_scheduled_time = booking.scheduled_time

    reservations.release(booking)
    booking.scheduled_date = day
    booking.scheduled_time = time_label
    booking.status = "pending"  # back to admin review
    booking.reschedule_accepted = True
    booking.reschedule_accepted_at = datetime.utcnow()
    booking.reschedule_offered = False
    booking.add_note(actor.id, "Booking rescheduled by user")
    reservations.reserve(booking)
    _commit()

    log_event("BOOKING_RESCHEDULE", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"date": day.isoformat(), "time": time_label})
    notifications.booking_rescheduled(booking)
    return booking


def add_review(actor, booking_id, rating, review=None):
    booking = _get_booking(booking_id)
    require_owner(actor, booking)
    if booking.status != "completed":
        raise InvalidState("Can only review completed bookings")
    if booking.rating:
        raise InvalidState("Booking already reviewed")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    booking.rating = rating
    booking.review = review
    booking.reviewed_at = datetime.utcnow()
    db.session.commit()

    log_event("BOOKING_REVIEW", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"rating": rating})
    return booking


def add_note(actor, booking_id, content):
    content = (content or "").strip()
    if not content:
        raise ValidationError("Note content is required")
    booking = _get_booking(booking_id)
    require_owner_or_admin(actor, booking)

    note = booking.add_note(actor.id, content)
    db.session.commit()
    return note


# ---------- admin operations ----------

def accept_booking(actor, booking_id, assigned_staff_id=None, notes=None):
    require_admin(actor)
    booking = _get_booking(booking_id)
    if booking.status != "pending":
        raise InvalidState("Only pending bookings can be accepted")

    if assigned_staff_id:
        if not db.session.get(User, assigned_staff_id):
            raise NotFound("Staff member not found")
        booking.assigned_staff_id = assigned_staff_id
    if notes:
        booking.add_note(actor.id, f"Booking accepted by admin: {notes}")

    _transition(booking, "confirmed")
    db.session.commit()

    log_event("BOOKING_ACCEPT", user_id=actor.id, entity="booking", entity_id=booking.id,
              metadata={"assigned_staff_id": booking.assigned_staff_id})
    notifications.booking_confirmed(booking)
    return booking


def reject_booking(actor, booking_id, reason, refund=True):
    require_admin(actor)
    reason = _require_reason(reason, "Rejection")
    booking = _get_booking(booking_id)
    if booking.status != "pending":
        raise InvalidState("Only pending bookings can be rejected")

    _cancel(booking, actor, f"Rejected by admin: {reason}", refund=refund)
    notifications.booking_cancelled(booking)
    return booking


def admin_cancel_booking(actor, booking_id, reason, offer_reschedule=False, refund=True):
    require_admin(actor)
    reason = _require_reason(reason)
    booking = _get_booking(booking_id)

    _cancel(booking, actor, f"Cancelled by admin: {reason}", refund=refund,
            offer_reschedule=offer_reschedule)
    notifications.booking_cancelled_with_reschedule(booking)
    return booking


def offer_reschedule(actor, booking_id):
    require_admin(actor)
    booking = _get_booking(booking_id)
    if booking.status in ("in-progress", "completed", "no-show"):
        raise InvalidState("Booking cannot be offered a reschedule")

    booking.reschedule_offered = True
    booking.reschedule_offered_at = datetime.utcnow()
    db.session.commit()

    log_event("BOOKING_RESCHEDULE_OFFER", user_id=actor.id, entity="booking", entity_id=booking.id)
    return booking


def start_booking(actor, booking_id):
    require_admin(actor)
    booking = _get_booking(booking_id)
    _transition(booking, "in-progress", "Only confirmed bookings can be started")
    db.session.commit()

    log_event("BOOKING_START", user_id=actor.id, entity="booking", entity_id=booking.id)
    return booking


def mark_no_show(actor, booking_id):
    require_admin(actor)
    booking = _get_booking(booking_id)
    _transition(booking, "no-show", "Only confirmed bookings can be marked as no-show")
    reservations.release(booking)
    db.session.commit()

    log_event("BOOKING_NO_SHOW", user_id=actor.id, entity="booking", entity_id=booking.id)
    return booking


def complete_booking(actor, booking_id, completion_notes=None):
    require_admin(actor)
    booking = _get_booking(booking_id)
    _transition(booking, "completed", "Booking cannot be completed")
    booking.completed_at = datetime.utcnow()
    booking.completion_notes = completion_notes
    db.session.commit()

    log_event("BOOKING_COMPLETE", user_id=actor.id, entity="booking", entity_id=booking.id)
    notifications.booking_completed(booking)
    return booking


# ---------- queries ----------

def get_booking(actor, booking_id):
    booking = _get_booking(booking_id)
    require_owner_or_admin(actor, booking)
    return booking


def _page(q, page, limit):
    page = max(int(page or 1), 1)
    limit = max(int(limit or 1), 1)
    total = q.count()
    rows = q.offset((page - 1) * limit).limit(limit).all()
    return {
        "bookings": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def list_user_bookings(actor, status=None, page=1, limit=10):
    q = Booking.query.filter_by(user_id=actor.id)
    if status:
        q = q.filter_by(status=status)
    return _page(q.order_by(Booking.created_at.desc(), Booking.id.desc()), page, limit)


def list_bookings(actor, status=None, search=None, page=1, limit=20):
    require_admin(actor)
    q = Booking.query
    if status and status != "all":
        q = q.filter(Booking.status == status)
    if search:
        like = f"%{search.strip()}%"
        q = q.join(User, Booking.user_id == User.id).filter(or_(
            User.full_name.ilike(like),
            User.email.ilike(like),
            cast(Booking.vehicle, String).ilike(like),
        ))
    return _page(q.order_by(Booking.created_at.desc(), Booking.id.desc()), page, limit)


def upcoming_bookings(user_id, limit=10, today=None):
    today = today or date.today()
    return (
        Booking.query
        .filter(
            Booking.user_id == user_id,
            Booking.status.in_(("pending", "confirmed")),
            Booking.scheduled_date >= today,
        )
        .order_by(Booking.scheduled_date.asc(), Booking.scheduled_time.asc())
        .limit(limit)
        .all()
    )
