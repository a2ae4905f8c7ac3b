from datetime import datetime
from decimal import Decimal

from settlement.extensions import db


class WithdrawalRequest(db.Model):
    __tablename__ = "withdrawal_requests"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    method = db.Column(db.String(32), nullable=False, default="bank_transfer")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)  # pending | completed | rejected

    processed_by = db.Column(db.Integer, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "amount": float(self.amount or 0),
            "method": self.method,
            "status": self.status,
            "processed_by": self.processed_by,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
