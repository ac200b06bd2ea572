from datetime import datetime, timedelta

from sqlalchemy import event

from models.db import db
from core.slots import format_time, parse_time

BOOKING_STATUSES = ("pending", "confirmed", "in-progress", "completed", "cancelled", "no-show")
VEHICLE_TYPES = ("sedan", "suv", "truck", "luxury", "other")
FREQUENCIES = ("one-time", "weekly", "bi-weekly", "monthly")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)  # cents
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)

    scheduled_date = db.Column(db.Date, nullable=False, index=True)
    scheduled_time = db.Column(db.String(5), nullable=False)  # HH:MM, 24h
    duration = db.Column(db.Integer, nullable=False)  # minutes

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    vehicle = db.Column(db.JSON, nullable=False)  # make, model, year, color, type, license_plate, vin
    address = db.Column(db.JSON, nullable=False)  # street, city, state, zip_code, country, instructions
    frequency = db.Column(db.String(20), nullable=False, default="one-time")
    special_instructions = db.Column(db.Text, nullable=True)

    promo_code_id = db.Column(db.Integer, db.ForeignKey("promo_codes.id"), nullable=True)
    assigned_staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    reschedule_offered = db.Column(db.Boolean, default=False, nullable=False)
    reschedule_offered_at = db.Column(db.DateTime, nullable=True)
    reschedule_accepted = db.Column(db.Boolean, default=False, nullable=False)
    reschedule_accepted_at = db.Column(db.DateTime, nullable=True)
    original_scheduled_date = db.Column(db.Date, nullable=True)
    original_scheduled_time = db.Column(db.String(5), nullable=True)

    completed_at = db.Column(db.DateTime, nullable=True)
    completion_notes = db.Column(db.Text, nullable=True)

    rating = db.Column(db.Integer, nullable=True)
    review = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = db.relationship("BookingItem", back_populates="booking", cascade="all, delete-orphan",
                            order_by="BookingItem.position")
    notes = db.relationship("BookingNote", back_populates="booking", cascade="all, delete-orphan",
                            order_by="BookingNote.id")
    payment = db.relationship("Payment", back_populates="booking", uselist=False, cascade="all, delete-orphan")
    user = db.relationship("User", foreign_keys=[user_id])
    assigned_staff = db.relationship("User", foreign_keys=[assigned_staff_id])
    promo_code = db.relationship("PromoCode")

    @property
    def start_minute(self):
        return parse_time(self.scheduled_time)

    @property
    def end_minute(self):
        return self.start_minute + int(self.duration)

    @property
    def end_time(self):
        if not self.scheduled_time or not self.duration:
            return None
        return format_time(self.end_minute % (24 * 60))

    def is_overdue(self, now=None):
        if self.status not in ("confirmed", "in-progress"):
            return False
        now = now or datetime.utcnow()
        start = datetime.combine(self.scheduled_date, datetime.min.time()) + timedelta(minutes=self.start_minute)
        return now > start + timedelta(minutes=self.duration)

    def items_total(self):
        return sum(int(i.price) * int(i.quantity) for i in self.items)

    def recalculate_total(self):
        self.subtotal = self.items_total()
        self.total_amount = max(0, self.subtotal - int(self.discount_amount or 0))
        return self.total_amount

    def add_note(self, author_id, content):
        note = BookingNote(author_id=author_id, content=content)
        self.notes.append(note)
        return note


class BookingItem(db.Model):
    __tablename__ = "booking_items"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False)  # unit price, cents

    booking = db.relationship("Booking", back_populates="items")
    service = db.relationship("Service")

    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_booking_item_quantity"),
        db.CheckConstraint("price >= 0", name="ck_booking_item_price"),
    )


class BookingNote(db.Model):
    __tablename__ = "booking_notes"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="notes")


@event.listens_for(Booking, "before_insert")
@event.listens_for(Booking, "before_update")
def _enforce_total(mapper, connection, target):
    # total_amount always follows the line items and discount
    target.recalculate_total()
