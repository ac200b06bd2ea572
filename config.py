import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as detailing.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "detailing.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Business hours: 8 AM to 6 PM, Monday (0) to Saturday (5)
    BUSINESS_START_HOUR = _env_int("BUSINESS_START_HOUR", 8)
    BUSINESS_END_HOUR = _env_int("BUSINESS_END_HOUR", 18)
    BUSINESS_DAYS = (0, 1, 2, 3, 4, 5)

    # Slot granularity (minutes)
    SLOT_INTERVAL_MINUTES = 30              # customer availability
    RESCHEDULE_SLOT_INTERVAL_MINUTES = 60   # admin reschedule picker
    DEFAULT_SLOT_DURATION = 120

    # Reservation rows are keyed per (resource, date, bucket)
    RESERVATION_BUCKET_MINUTES = 15
    SLOT_RESOURCE = os.getenv("SLOT_RESOURCE", "default")

    # Payments (amounts are stored in cents)
    CURRENCY = os.getenv("CURRENCY", "usd")
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")

    # Email (SMTP)
    NOTIFICATIONS_ENABLED = os.getenv("NOTIFICATIONS_ENABLED", "true").lower() == "true"
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = _env_int("SMTP_PORT", 587)
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    SMTP_HOST = None
