from datetime import datetime
from models.db import db

PROMO_TYPES = ("percentage", "fixed")


class PromoCode(db.Model):
    __tablename__ = "promo_codes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)  # uppercase alphanumeric
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)

    type = db.Column(db.String(20), nullable=False)  # percentage, fixed
    # percentage: 0-100; fixed: amount in cents
    value = db.Column(db.Float, nullable=False, default=0)

    minimum_order_amount = db.Column(db.Integer, nullable=False, default=0)
    maximum_discount_amount = db.Column(db.Integer, nullable=True)

    max_usage = db.Column(db.Integer, nullable=True)
    max_usage_per_user = db.Column(db.Integer, nullable=False, default=1)
    current_usage = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime, nullable=False)
    valid_until = db.Column(db.DateTime, nullable=False)

    # lists of ids; empty list means "no restriction"
    applicable_services = db.Column(db.JSON, nullable=False, default=list)
    applicable_users = db.Column(db.JSON, nullable=False, default=list)
    excluded_users = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    usage_history = db.relationship("PromoCodeUsage", back_populates="promo_code",
                                    cascade="all, delete-orphan", order_by="PromoCodeUsage.id")

    __table_args__ = (
        db.CheckConstraint("current_usage >= 0", name="ck_promo_current_usage"),
    )

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) > self.valid_until

    def is_valid(self, now=None):
        now = now or datetime.utcnow()
        return (
            self.is_active
            and self.valid_from <= now <= self.valid_until
            and (not self.max_usage or self.current_usage < self.max_usage)
        )

    def usage_count_for(self, user_id):
        return sum(1 for u in self.usage_history if str(u.user_id) == str(user_id))


class PromoCodeUsage(db.Model):
    __tablename__ = "promo_code_usages"

    id = db.Column(db.Integer, primary_key=True)
    promo_code_id = db.Column(db.Integer, db.ForeignKey("promo_codes.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False)

    discount_amount = db.Column(db.Integer, nullable=False)
    order_amount = db.Column(db.Integer, nullable=False)
    used_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    promo_code = db.relationship("PromoCode", back_populates="usage_history")

    __table_args__ = (
        # a promo code is applied to a booking at most once
        db.UniqueConstraint("promo_code_id", "booking_id", name="uq_promo_usage_booking"),
    )
