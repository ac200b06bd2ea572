from datetime import date, datetime, timedelta

import pytest
import stripe

from app import create_app
from config import TestingConfig
from core import lifecycle
from models import db
from models.promo_code import PromoCode
from models.service import Service
from models.user import Role, User
from utils.seed import seed_services

MONDAY = date(2026, 10, 19)
SUNDAY = date(2026, 10, 25)

VEHICLE = {"make": "Toyota", "model": "Camry", "year": 2020, "color": "Blue", "type": "sedan"}
ADDRESS = {"street": "12 Main St", "city": "Springfield", "state": "IL", "zip_code": "62701"}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


def make_user(email, *roles):
    user = User(email=email, full_name=email.split("@")[0].title())
    for name in roles:
        user.roles.append(Role.query.filter_by(name=name).one())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def customer(app):
    return make_user("alice@example.com", "CUSTOMER")


@pytest.fixture
def other_customer(app):
    return make_user("bob@example.com", "CUSTOMER")


@pytest.fixture
def admin(app):
    return make_user("admin@example.com", "ADMIN")


@pytest.fixture
def services(app):
    seed_services()
    db.session.add(Service(name="Quick Wash", description="Rinse and dry", category="exterior",
                           base_price=100, duration=60))
    db.session.commit()
    return {s.name: s for s in Service.query.all()}


@pytest.fixture
def make_promo(app, admin):
    def _make(code="SAVE20", **fields):
        now = datetime.utcnow()
        data = dict(
            code=code,
            name=f"{code} promo",
            type="percentage",
            value=20,
            minimum_order_amount=0,
            max_usage_per_user=1,
            current_usage=0,
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
            applicable_services=[],
            applicable_users=[],
            excluded_users=[],
            is_active=True,
            created_by=admin.id,
        )
        data.update(fields)
        promo = PromoCode(**data)
        db.session.add(promo)
        db.session.commit()
        return promo
    return _make


@pytest.fixture
def stripe_refunds(monkeypatch):
    """Stubs the Stripe calls made by a refund; records Refund.create kwargs."""
    calls = []

    def fake_retrieve(intent_id, **kwargs):
        return {"id": intent_id, "latest_charge": "ch_123"}

    def fake_refund(**kwargs):
        calls.append(kwargs)
        return {"id": "re_123", "status": "succeeded"}

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)
    monkeypatch.setattr(stripe.Refund, "create", fake_refund)
    return calls


def book(actor, services, time="10:00", day=MONDAY, vehicle=None, **kwargs):
    return lifecycle.create_booking(
        actor, services, day.isoformat(), time, vehicle or VEHICLE, ADDRESS, **kwargs
    )


def wash(services, quantity=1):
    return [{"service": services["Quick Wash"].id, "quantity": quantity}]
