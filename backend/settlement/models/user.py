from datetime import datetime

from flask_login import UserMixin

from settlement.extensions import db


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)

    role = db.Column(db.String(32), nullable=False, default="buyer")  # buyer | seller | admin

    is_banned = db.Column(db.Boolean, nullable=False, default=False)
    ban_reason = db.Column(db.String(240), nullable=True)
    banned_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role or "buyer",
            "is_banned": bool(self.is_banned),
            "ban_reason": self.ban_reason,
            "banned_at": self.banned_at.isoformat() if self.banned_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
