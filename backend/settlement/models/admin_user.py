from datetime import datetime

from settlement.extensions import db


class AdminUser(db.Model):
    """Admin registry. Membership grants admin rights independent of ``User.role``."""

    __tablename__ = "admins"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
