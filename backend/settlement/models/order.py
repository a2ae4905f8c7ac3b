from datetime import datetime
from decimal import Decimal

from settlement.extensions import db
from settlement.services.order_machine import OrderStatus, payment_status_for


def _iso(value):
    return value.isoformat() if value else None


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    seller_earnings = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency = db.Column(db.String(8), nullable=False, default="EUR")

    # Lifecycle state. payment_status is derived from it, never stored.
    status = db.Column(db.String(24), nullable=False, default=OrderStatus.PENDING.value, index=True)

    # Payment
    processor_payment_intent_id = db.Column(db.String(64), nullable=True, index=True)
    processor_charge_id = db.Column(db.String(64), nullable=True, index=True)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    payment_failure_message = db.Column(db.String(240), nullable=True)
    payment_failed_at = db.Column(db.DateTime, nullable=True)

    # Refund
    refund_amount = db.Column(db.Numeric(12, 2), nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    stock_restored_at = db.Column(db.DateTime, nullable=True)

    # Dispute (none -> opened -> won | lost)
    dispute_id = db.Column(db.String(64), nullable=True, index=True)
    dispute_status = db.Column(db.String(16), nullable=False, default="none")
    dispute_reason = db.Column(db.String(120), nullable=True)
    dispute_amount = db.Column(db.Numeric(12, 2), nullable=True)
    # what was actually moved to pending when the dispute opened
    dispute_frozen_amount = db.Column(db.Numeric(12, 2), nullable=True)
    dispute_opened_at = db.Column(db.DateTime, nullable=True)
    dispute_resolved_at = db.Column(db.DateTime, nullable=True)
    dispute_result = db.Column(db.String(16), nullable=True)

    # Shipment
    tracking_number = db.Column(db.String(64), nullable=True, index=True)
    shipping_carrier = db.Column(db.String(32), nullable=True)
    shipped_at = db.Column(db.DateTime, nullable=True)
    estimated_delivery = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    items = db.relationship("OrderItem", backref="order", lazy="selectin", order_by="OrderItem.id")

    @property
    def state(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def payment_status(self) -> str:
        return payment_status_for(self.state, payment_failed=bool(self.payment_failed_at))

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_number": self.order_number,
            "buyer_id": int(self.buyer_id),
            "seller_id": int(self.seller_id),
            "total_amount": float(self.total_amount or 0),
            "platform_fee": float(self.platform_fee or 0),
            "seller_earnings": float(self.seller_earnings or 0),
            "currency": self.currency,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_failure_message": self.payment_failure_message,
            "paid_at": _iso(self.paid_at),
            "refund_amount": float(self.refund_amount) if self.refund_amount is not None else None,
            "dispute": {
                "id": self.dispute_id,
                "status": self.dispute_status,
                "reason": self.dispute_reason,
                "amount": float(self.dispute_amount) if self.dispute_amount is not None else None,
                "frozen_amount": float(self.dispute_frozen_amount) if self.dispute_frozen_amount is not None else None,
                "opened_at": _iso(self.dispute_opened_at),
                "resolved_at": _iso(self.dispute_resolved_at),
                "result": self.dispute_result,
            },
            "shipment": {
                "tracking_number": self.tracking_number,
                "carrier": self.shipping_carrier,
                "shipped_at": _iso(self.shipped_at),
                "estimated_delivery": _iso(self.estimated_delivery),
                "delivered_at": _iso(self.delivered_at),
            },
            "items": [i.to_dict() for i in self.items],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    product = db.relationship("Product", lazy="joined")

    def to_dict(self):
        return {
            "id": int(self.id),
            "product_id": int(self.product_id),
            "quantity": int(self.quantity),
            "unit_price": float(self.unit_price or 0),
        }
