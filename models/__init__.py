from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .service import Service
from .booking import Booking, BookingItem, BookingNote
from .payment import Payment
from .promo_code import PromoCode, PromoCodeUsage
from .reservation import SlotReservation
