import re
from collections import namedtuple
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.promo_code import PromoCode, PromoCodeUsage, PROMO_TYPES
from core.errors import Conflict, InvalidState, NotFound, ValidationError
from security.rbac import require_admin
from utils.audit import log_event

PromoValidation = namedtuple("PromoValidation", ["valid", "reason"])

_CODE_RE = re.compile(r"^[A-Z0-9]{3,20}$")

_EDITABLE_FIELDS = (
    "code", "name", "description", "type", "value", "minimum_order_amount",
    "maximum_discount_amount", "max_usage", "max_usage_per_user", "valid_from",
    "valid_until", "applicable_services", "applicable_users", "excluded_users", "is_active",
)


def _ids(values):
    return {str(v) for v in values or []}


def validate_promo(promo, user_id, order_amount, service_ids=(), now=None) -> PromoValidation:
    """
    Checks whether `user_id` may use `promo` on an order. The checks run in a
    fixed order and the first failure is reported. `service_ids=None` skips
    the service restriction.
    """
    now = now or datetime.utcnow()

    if not promo.is_active or now < promo.valid_from or now > promo.valid_until:
        return PromoValidation(False, "Promo code is not active or has expired")

    if promo.max_usage and promo.current_usage >= promo.max_usage:
        return PromoValidation(False, "Promo code usage limit reached")

    if order_amount < promo.minimum_order_amount:
        return PromoValidation(
            False, f"Minimum order amount of ${promo.minimum_order_amount / 100:.2f} required"
        )

    applicable = _ids(promo.applicable_services)
    if applicable and service_ids is not None and not applicable.intersection(_ids(service_ids)):
        return PromoValidation(False, "Promo code not applicable to selected services")

    if str(user_id) in _ids(promo.excluded_users):
        return PromoValidation(False, "Promo code not available for this user")

    allowed_users = _ids(promo.applicable_users)
    if allowed_users and str(user_id) not in allowed_users:
        return PromoValidation(False, "Promo code not available for this user")

    if promo.usage_count_for(user_id) >= promo.max_usage_per_user:
        return PromoValidation(False, "You have already used this promo code maximum times")

    return PromoValidation(True, None)


def calculate_discount(promo, order_amount) -> int:
    order = Decimal(int(order_amount))
    if promo.type == "percentage":
        discount = order * Decimal(str(promo.value)) / Decimal(100)
    else:
        discount = Decimal(str(promo.value))

    if promo.maximum_discount_amount and discount > promo.maximum_discount_amount:
        discount = Decimal(promo.maximum_discount_amount)

    # never more than the order itself
    if discount > order:
        discount = order

    return int(discount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_promo(promo, user_id, booking_id, order_amount, discount_amount, service_ids=None, now=None):
    """
    Records one use of `promo` for a booking. Validation is re-run here so a
    caller cannot skip it; the service restriction is only re-checked when
    `service_ids` is given. Does not commit; the caller owns the transaction.
    """
    check = validate_promo(promo, user_id, order_amount, service_ids, now=now)
    if not check.valid:
        raise ValidationError(check.reason)
    if any(u.booking_id == booking_id for u in promo.usage_history):
        raise Conflict("Promo code already applied to this booking")

    usage = PromoCodeUsage(
        user_id=user_id,
        booking_id=booking_id,
        discount_amount=int(discount_amount),
        order_amount=int(order_amount),
        used_at=now or datetime.utcnow(),
    )
    promo.usage_history.append(usage)
    promo.current_usage = (promo.current_usage or 0) + 1
    return usage


def get_promo_code_by_code(code):
    promo = PromoCode.query.filter_by(code=(code or "").strip().upper()).first()
    if not promo:
        raise NotFound("Invalid promo code")
    return promo


def _get_promo(promo_id):
    promo = db.session.get(PromoCode, promo_id)
    if not promo:
        raise NotFound("Promo code not found")
    return promo


def _parse_dt(value, field):
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO datetime")


def _clean_fields(data, promo=None):
    fields = {k: data[k] for k in _EDITABLE_FIELDS if k in data}

    if "code" in fields:
        fields["code"] = (fields["code"] or "").strip().upper()
        if not _CODE_RE.match(fields["code"]):
            raise ValidationError("Promo code must be 3-20 letters and numbers")
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Promo code name is required")

    promo_type = fields.get("type", promo.type if promo else None)
    if promo_type not in PROMO_TYPES:
        raise ValidationError("type must be percentage or fixed")

    value = fields.get("value", promo.value if promo else None)
    if value is None:
        raise ValidationError("Discount value is required")
    if promo_type == "percentage" and not 0 <= value <= 100:
        raise ValidationError("Percentage discount must be between 0 and 100")
    if promo_type == "fixed" and value < 0:
        raise ValidationError("Fixed discount amount cannot be negative")

    for key in ("minimum_order_amount", "maximum_discount_amount"):
        if fields.get(key) is not None and fields[key] < 0:
            raise ValidationError(f"{key} cannot be negative")
    if fields.get("max_usage") is not None and fields["max_usage"] < 1:
        raise ValidationError("Maximum usage must be at least 1")
    if "max_usage_per_user" in fields and (fields["max_usage_per_user"] or 0) < 1:
        raise ValidationError("Maximum usage per user must be at least 1")

    for key in ("valid_from", "valid_until"):
        if key in fields:
            fields[key] = _parse_dt(fields[key], key)
    valid_from = fields.get("valid_from", promo.valid_from if promo else None)
    valid_until = fields.get("valid_until", promo.valid_until if promo else None)
    if not valid_from or not valid_until:
        raise ValidationError("valid_from and valid_until are required")
    if valid_from >= valid_until:
        raise ValidationError("Valid until date must be after valid from date")

    return fields


def create_promo_code(actor, data):
    require_admin(actor)
    fields = _clean_fields(data)
    if "code" not in fields or "name" not in fields:
        raise ValidationError("code and name are required")
    if PromoCode.query.filter_by(code=fields["code"]).first():
        raise Conflict("Promo code already exists")

    promo = PromoCode(created_by=actor.id, **fields)
    db.session.add(promo)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Promo code already exists")

    log_event("PROMO_CREATE", user_id=actor.id, entity="promo_code", entity_id=promo.id,
              metadata={"code": promo.code})
    return promo


def update_promo_code(actor, promo_id, data):
    require_admin(actor)
    promo = _get_promo(promo_id)
    fields = _clean_fields(data, promo)

    if "code" in fields and fields["code"] != promo.code:
        if PromoCode.query.filter_by(code=fields["code"]).first():
            raise Conflict("Promo code already exists")

    for key, value in fields.items():
        setattr(promo, key, value)
    db.session.commit()

    log_event("PROMO_UPDATE", user_id=actor.id, entity="promo_code", entity_id=promo.id,
              metadata={"fields": sorted(fields)})
    return promo


def delete_promo_code(actor, promo_id):
    require_admin(actor)
    promo = _get_promo(promo_id)
    if promo.current_usage > 0:
        raise InvalidState("Cannot delete promo code that has been used")

    db.session.delete(promo)
    db.session.commit()
    log_event("PROMO_DELETE", user_id=actor.id, entity="promo_code", entity_id=promo_id)


def preview_promo_code(actor, code, order_amount, service_ids=()):
    """What the customer would save with `code` on an order, without using it."""
    if not (code or "").strip():
        raise ValidationError("Promo code is required")
    promo = get_promo_code_by_code(code)

    check = validate_promo(promo, actor.id, order_amount, service_ids)
    if not check.valid:
        raise ValidationError(check.reason)

    discount = calculate_discount(promo, order_amount)
    return {
        "promo_code": {
            "id": promo.id,
            "code": promo.code,
            "name": promo.name,
            "type": promo.type,
            "value": promo.value,
        },
        "discount_amount": discount,
        "final_amount": order_amount - discount,
    }


def promo_code_stats(now=None):
    now = now or datetime.utcnow()
    total = PromoCode.query.count()
    active = PromoCode.query.filter(
        PromoCode.is_active.is_(True),
        PromoCode.valid_from <= now,
        PromoCode.valid_until >= now,
    ).count()
    expired = PromoCode.query.filter(PromoCode.valid_until < now).count()
    top = (
        PromoCode.query
        .order_by(PromoCode.current_usage.desc(), PromoCode.id.asc())
        .limit(5)
        .all()
    )
    total_discount = db.session.query(func.coalesce(func.sum(PromoCodeUsage.discount_amount), 0)).scalar()

    return {
        "total_promo_codes": total,
        "active_promo_codes": active,
        "expired_promo_codes": expired,
        "top_used_promo_codes": [
            {"code": p.code, "name": p.name, "current_usage": p.current_usage} for p in top
        ],
        "total_discount": int(total_discount or 0),
    }
