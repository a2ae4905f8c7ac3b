from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from settlement.extensions import db
from settlement.models import Order
from settlement.services.order_machine import OrderEvent, OrderStatus
from settlement.services.orders import apply_event


def complete_delivered_orders(*, hold_days: int | None = None, limit: int = 200) -> dict:
    """Close DELIVERED orders once the buyer's hold period has passed.

    Completion has no balance effect: sellers were credited when payment settled.
    """
    if hold_days is None:
        hold_days = int(current_app.config.get("ESCROW_HOLD_DAYS", 7))
    cutoff = datetime.utcnow() - timedelta(days=int(hold_days))

    candidates = (
        Order.query.filter(
            Order.status == OrderStatus.DELIVERED.value,
            Order.delivered_at.isnot(None),
            Order.delivered_at <= cutoff,
        )
        .order_by(Order.delivered_at.asc())
        .limit(int(limit))
        .all()
    )

    completed = 0
    for order in candidates:
        try:
            t = apply_event(order, OrderEvent.COMPLETE, source="completion_runner")
            if t is None:
                db.session.rollback()
                continue
            order.completed_at = datetime.utcnow()
            db.session.commit()
            completed += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception("auto-completion failed for order %s", order.id)
    return {"checked": len(candidates), "completed": completed}
