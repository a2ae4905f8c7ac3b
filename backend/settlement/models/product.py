from datetime import datetime
from decimal import Decimal

from settlement.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, index=True)

    title = db.Column(db.String(160), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    moderation_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # pending | approved | rejected | flagged
    moderated_by = db.Column(db.Integer, nullable=True)
    moderated_at = db.Column(db.DateTime, nullable=True)
    moderation_notes = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "title": self.title,
            "price": float(self.price or 0),
            "stock_quantity": int(self.stock_quantity or 0),
            "moderation_status": self.moderation_status,
            "moderation_notes": self.moderation_notes or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
