import json
from datetime import datetime

from settlement.extensions import db


class Seller(db.Model):
    __tablename__ = "sellers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    shop_name = db.Column(db.String(160), nullable=False, default="")
    status = db.Column(db.String(24), nullable=False, default="approved")  # approved | suspended

    # Mirrored from the payment processor's connected account
    processor_account_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    charges_enabled = db.Column(db.Boolean, nullable=False, default=False)
    payouts_enabled = db.Column(db.Boolean, nullable=False, default=False)
    onboarding_complete = db.Column(db.Boolean, nullable=False, default=False)
    verification_status = db.Column(db.String(64), nullable=True)
    requirements_due = db.Column(db.Text, nullable=True)  # JSON list

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def requirements_list(self) -> list:
        raw = (self.requirements_due or "").strip()
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            return []
        return value if isinstance(value, list) else []

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "shop_name": self.shop_name or "",
            "status": self.status,
            "processor_account_id": self.processor_account_id or "",
            "charges_enabled": bool(self.charges_enabled),
            "payouts_enabled": bool(self.payouts_enabled),
            "onboarding_complete": bool(self.onboarding_complete),
            "verification_status": self.verification_status or "",
            "requirements_due": self.requirements_list(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SellerApplication(db.Model):
    __tablename__ = "seller_applications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    shop_name = db.Column(db.String(160), nullable=False)
    shop_description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")  # pending | approved | rejected
    rejection_reason = db.Column(db.String(240), nullable=True)
    reviewed_by = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "shop_name": self.shop_name,
            "shop_description": self.shop_description or "",
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
