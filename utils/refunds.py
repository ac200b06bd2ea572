import stripe
from flask import current_app

from core.errors import UpstreamFailure


def refund_payment(payment, reason="requested_by_customer", metadata=None):
    """
    Refunds the charge behind a captured payment intent.
    Raises UpstreamFailure when Stripe is unreachable or refuses.
    """
    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe.api_key:
        raise UpstreamFailure("Stripe secret key missing (STRIPE_SECRET_KEY)")
    if not payment or not payment.payment_intent_id:
        raise UpstreamFailure("Payment has no payment intent to refund")

    try:
        intent = stripe.PaymentIntent.retrieve(payment.payment_intent_id)
        charge = intent.get("latest_charge")
        if not charge:
            raise UpstreamFailure("Payment intent has no charge to refund")
        refund = stripe.Refund.create(
            charge=charge,
            reason=reason,
            metadata={k: str(v) for k, v in (metadata or {}).items()},
        )
    except stripe.StripeError as exc:
        raise UpstreamFailure(f"Refund failed: {exc}") from exc

    return refund
