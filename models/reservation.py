from datetime import datetime
from models.db import db


class SlotReservation(db.Model):
    """
    One row per occupied time bucket. The unique key makes the database reject
    a second booking landing on the same bucket, so two concurrent requests
    cannot both take a slot that the availability query reported as free.
    """
    __tablename__ = "slot_reservations"

    id = db.Column(db.Integer, primary_key=True)
    resource = db.Column(db.String(50), nullable=False, default="default")
    date = db.Column(db.Date, nullable=False)
    bucket_start = db.Column(db.Integer, nullable=False)  # minute of day
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("resource", "date", "bucket_start", name="uq_slot_reservation_bucket"),
    )
