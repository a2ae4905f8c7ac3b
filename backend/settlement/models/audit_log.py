import json
from datetime import datetime

from settlement.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    actor_user_id = db.Column(db.Integer, nullable=True)  # NULL for system actions
    action = db.Column(db.String(64), nullable=False, index=True)
    target_type = db.Column(db.String(64), nullable=True)
    target_id = db.Column(db.String(64), nullable=True, index=True)
    severity = db.Column(db.String(16), nullable=False, default="info")  # info | warning
    meta = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def meta_dict(self):
        raw = (self.meta or "").strip()
        if not raw:
            return {}
        try:
            d = json.loads(raw)
        except ValueError:
            return {}
        return d if isinstance(d, dict) else {}

    def to_dict(self):
        return {
            "id": int(self.id),
            "actor_user_id": int(self.actor_user_id) if self.actor_user_id else None,
            "actor": str(self.actor_user_id) if self.actor_user_id else "system",
            "action": self.action,
            "target_type": self.target_type or "",
            "target_id": self.target_id or "",
            "severity": self.severity,
            "meta": self.meta_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
