from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from settlement.extensions import db
from settlement.models import Order, Product, StockRestoration

RESTORE_REASONS = ("return", "cancel")


def increment(product_id: int, quantity: int) -> None:
    """Atomic in-database increment of a product's stock."""
    db.session.execute(
        update(Product)
        .where(Product.id == int(product_id))
        .values(stock_quantity=Product.stock_quantity + int(quantity))
    )


def restore_stock(order: Order, reason: str) -> bool:
    """Put every line item of ``order`` back on the shelf, once per (order, reason).

    Returns True when stock was incremented by this call. An order whose stock
    was already restored for any reason is never restored again.
    """
    if reason not in RESTORE_REASONS:
        raise ValueError(f"unknown restore reason: {reason}")

    if order.stock_restored_at is not None:
        current_app.logger.info("stock already restored order=%s", order.id)
        return False
    if StockRestoration.query.filter_by(order_id=int(order.id), reason=reason).first():
        current_app.logger.info("stock restoration exists order=%s reason=%s", order.id, reason)
        return False

    units = 0
    for item in order.items:
        qty = int(item.quantity or 0)
        if qty <= 0:
            continue
        increment(int(item.product_id), qty)
        units += qty

    now = datetime.utcnow()
    db.session.add(StockRestoration(order_id=int(order.id), reason=reason, units=units, created_at=now))
    order.stock_restored_at = now
    db.session.add(order)
    db.session.flush()
    # The bulk UPDATE bypassed the identity map.
    for item in order.items:
        if item.product is not None:
            db.session.expire(item.product, ["stock_quantity"])
    current_app.logger.info("stock restored order=%s reason=%s units=%s", order.id, reason, units)
    return True
