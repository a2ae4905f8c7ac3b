import json
from datetime import datetime

from settlement.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(48), nullable=False)
    title = db.Column(db.String(160), nullable=True)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(240), nullable=True)
    data = db.Column(db.Text, nullable=True)  # JSON string

    channel = db.Column(db.String(32), nullable=False, default="in_app")
    status = db.Column(db.String(24), nullable=False, default="queued")  # queued | sent | failed
    read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def data_dict(self):
        raw = (self.data or "").strip()
        if not raw:
            return {}
        try:
            d = json.loads(raw)
        except ValueError:
            return {}
        return d if isinstance(d, dict) else {}

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title or "",
            "message": self.message or "",
            "link": self.link,
            "data": self.data_dict(),
            "channel": self.channel,
            "status": self.status,
            "read": bool(self.read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
