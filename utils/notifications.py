"""
Customer emails for booking events.

Every helper is fire-and-forget: a failed send is written to the audit log
and the app logger, and never propagates to the lifecycle operation.
"""
from flask import current_app

from utils.audit import log_event
from utils.emailer import send_email

BRAND = "Car Detailing Pro"


def _money(cents):
    return f"${(cents or 0) / 100:.2f}"


def _summary(booking):
    services = ", ".join(i.service.name for i in booking.items if i.service) or "-"
    address = booking.address or {}
    return (
        f"Date: {booking.scheduled_date.isoformat()}\n"
        f"Time: {booking.scheduled_time}\n"
        f"Services: {services}\n"
        f"Total Amount: {_money(booking.total_amount)}\n"
        f"Address: {address.get('street', '')}, {address.get('city', '')}, "
        f"{address.get('state', '')} {address.get('zip_code', '')}"
    )


def _deliver(kind, booking, subject, intro):
    user = booking.user
    to_email = user.email if user else None
    body = (
        f"Hi {user.display_name if user else 'there'},\n\n"
        f"{intro}\n\n"
        f"{_summary(booking)}\n\n"
        f"Best regards,\nThe {BRAND} Team"
    )
    ok, error = send_email(to_email, subject, body)
    if not ok:
        current_app.logger.warning("booking %s: %s email not sent (%s)", booking.id, kind, error)
    log_event(
        "BOOKING_EMAIL",
        entity="booking",
        entity_id=booking.id,
        metadata={"type": kind, "sent": ok, "error": error},
    )
    return ok


def booking_received(booking):
    return _deliver("booking_received", booking, f"Booking Received - {BRAND}",
                    "We received your booking request. An admin will review it shortly.")


def booking_confirmed(booking):
    return _deliver("booking_confirmed", booking, f"Booking Confirmation - {BRAND}",
                    "Your car detailing appointment has been confirmed!")


def booking_cancelled(booking):
    return _deliver("booking_cancelled", booking, f"Booking Cancelled - {BRAND}",
                    f"Your booking was cancelled. Reason: {booking.cancellation_reason}")


def booking_cancelled_with_reschedule(booking):
    intro = f"We had to cancel your booking. Reason: {booking.cancellation_reason}"
    if booking.reschedule_offered:
        intro += "\nYou can pick a new date and time from your bookings page."
    return _deliver("booking_cancelled_reschedule", booking, f"Booking Cancelled - {BRAND}", intro)


def booking_rescheduled(booking):
    return _deliver("booking_rescheduled", booking, f"Booking Rescheduled - {BRAND}",
                    "Your booking was rescheduled and is awaiting confirmation.")


def booking_completed(booking):
    return _deliver("booking_completed", booking, f"Service Completed - {BRAND}",
                    "Your service is complete. We'd love to hear how it went!")
