from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from models.db import db

SERVICE_CATEGORIES = ("interior", "exterior", "full", "addon")


class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(20), nullable=False)

    base_price = db.Column(db.Integer, nullable=False, default=0)  # cents
    duration = db.Column(db.Integer, nullable=False)  # minutes, >= 15
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # {"suv": 2500, "truck": 3500, ...} surcharge in cents per vehicle type
    vehicle_type_pricing = db.Column(db.JSON, nullable=False, default=dict)
    # [{"season": "summer", "multiplier": 1.1, "start_date": "2026-06-21", "end_date": "2026-09-22"}]
    seasonal_pricing = db.Column(db.JSON, nullable=False, default=list)

    popularity = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def calculate_price(self, vehicle_type="sedan"):
        surcharge = (self.vehicle_type_pricing or {}).get(vehicle_type or "sedan", 0)
        return int(self.base_price) + int(surcharge or 0)

    def current_season(self, on=None):
        on = on or date.today()
        for season in self.seasonal_pricing or []:
            start = date.fromisoformat(season["start_date"])
            end = date.fromisoformat(season["end_date"])
            if start <= on <= end:
                return season
        return None

    def seasonal_price(self, vehicle_type="sedan", on=None):
        """
        Unit price for a vehicle type, adjusted by the season window that
        contains `on` (today by default). Rounded half-up to whole cents.
        """
        price = self.calculate_price(vehicle_type)
        season = self.current_season(on)
        if not season:
            return price
        adjusted = Decimal(price) * Decimal(str(season.get("multiplier", 1)))
        return int(adjusted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
