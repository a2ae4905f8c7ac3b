from datetime import datetime
from decimal import Decimal

from settlement.extensions import db


class SellerPayout(db.Model):
    __tablename__ = "seller_payouts"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending | processing | reversed | paid
    transfer_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    error_message = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint("seller_id", "order_id", name="uq_seller_payouts_seller_order"),)

    def to_dict(self):
        return {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "order_id": int(self.order_id),
            "amount": float(self.amount or 0),
            "status": self.status,
            "transfer_id": self.transfer_id or "",
            "error_message": self.error_message or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
