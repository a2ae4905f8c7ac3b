from datetime import datetime
from decimal import Decimal

from settlement.extensions import db


class SellerBalance(db.Model):
    """Cached running balances of one seller.

    The cache must always equal the sum of the seller's transactions
    (available + pending == sum(net_amount)); see jobs.balance_reconciler.
    """

    __tablename__ = "seller_balances"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, unique=True, index=True)

    available_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    pending_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_withdrawn = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self):
        return {
            "seller_id": int(self.seller_id),
            "available_balance": float(self.available_balance or 0),
            "pending_balance": float(self.pending_balance or 0),
            "total_withdrawn": float(self.total_withdrawn or 0),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
