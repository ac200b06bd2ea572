from datetime import datetime
from models.db import db

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    amount = db.Column(db.Integer, nullable=False, default=0)   # cents
    currency = db.Column(db.String(10), nullable=False, default="usd")

    status = db.Column(db.String(20), nullable=False, default="pending")  # pending, paid, failed, refunded
    payment_intent_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    customer_id = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="payment")

    @property
    def is_captured(self):
        return self.status == "paid" and bool(self.payment_intent_id)
