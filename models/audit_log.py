import json
from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, nullable=True)  # nullable for system events (emails)
    action = db.Column(db.String(80), nullable=False, index=True)  # e.g. BOOKING_CANCEL, PROMO_APPLY
    entity = db.Column(db.String(80), nullable=True)   # booking, promo_code
    entity_id = db.Column(db.String(80), nullable=True, index=True)

    # only set when the operation ran inside a request
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def metadata_dict(self):
        return json.loads(self.metadata_json) if self.metadata_json else {}
