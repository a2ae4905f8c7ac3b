from datetime import datetime
from decimal import Decimal

from settlement.extensions import db


class SellerTransaction(db.Model):
    """Append-only ledger entry; one row per balance mutation.

    ``net_amount`` is the change of available + pending caused by the row.
    ``field`` / ``counter_field`` name the balance fields that were debited
    and credited so each mutation can be replayed.
    """

    __tablename__ = "seller_transactions"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)  # payout | fee | refund | adjustment | withdrawal
    operation = db.Column(db.String(8), nullable=False)  # credit | debit | transfer
    field = db.Column(db.String(24), nullable=False)
    counter_field = db.Column(db.String(24), nullable=True)

    gross_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    commission_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    net_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    applied_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.String(16), nullable=False, default="completed")  # completed | floored
    description = db.Column(db.String(240), nullable=True)
    reference = db.Column(db.String(80), nullable=True, index=True)
    idempotency_key = db.Column(db.String(160), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "type": self.type,
            "operation": self.operation,
            "field": self.field,
            "counter_field": self.counter_field,
            "gross_amount": float(self.gross_amount or 0),
            "commission_amount": float(self.commission_amount or 0),
            "net_amount": float(self.net_amount or 0),
            "status": self.status,
            "description": self.description or "",
            "reference": self.reference or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
