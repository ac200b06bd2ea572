from models import db
from models.user import Role
from models.service import Service

DEFAULT_ROLES = ["CUSTOMER", "STAFF", "ADMIN"]

# prices in cents, durations in minutes
DEFAULT_SERVICES = [
    {
        "name": "Interior Only",
        "description": "Deep Clean Seats, Carpets, Panels, And More.",
        "category": "interior",
        "base_price": 3000,
        "duration": 120,
        "vehicle_type_pricing": {"sedan": 0, "suv": 2500, "truck": 3500, "luxury": 5000, "other": 1500},
    },
    {
        "name": "Exterior Only",
        "description": "Wash, Polish, And Protect Your Car's Exterior.",
        "category": "exterior",
        "base_price": 2000,
        "duration": 90,
        "vehicle_type_pricing": {"sedan": 0, "suv": 3000, "truck": 4000, "luxury": 6000, "other": 2000},
    },
    {
        "name": "Full Detail",
        "description": "Complete Interior And Exterior Service.",
        "category": "full",
        "base_price": 8000,
        "duration": 240,
        "vehicle_type_pricing": {"sedan": 0, "suv": 5000, "truck": 7000, "luxury": 10000, "other": 3000},
    },
    {"name": "Wax & Polish", "description": "Premium wax application for long-lasting protection",
     "category": "addon", "base_price": 2500, "duration": 45},
    {"name": "Engine Bay Cleaning", "description": "Clean and degrease engine compartment",
     "category": "addon", "base_price": 3500, "duration": 30},
    {"name": "Pet Hair Removal", "description": "Specialized pet hair removal from upholstery",
     "category": "addon", "base_price": 2000, "duration": 20},
    {"name": "Odor Elimination", "description": "Professional odor removal treatment",
     "category": "addon", "base_price": 3000, "duration": 15},
    {"name": "Headlight Restoration", "description": "Restore cloudy headlights to like-new condition",
     "category": "addon", "base_price": 4000, "duration": 60},
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_services(services=None):
    """Inserts catalog entries that are missing by name. Returns the number added."""
    existing = {s.name for s in Service.query.all()}
    added = 0
    for data in services or DEFAULT_SERVICES:
        if data["name"] in existing:
            continue
        db.session.add(Service(**data))
        added += 1
    db.session.commit()
    return added
