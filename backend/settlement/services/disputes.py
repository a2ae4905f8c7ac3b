"""Chargeback lifecycle: none -> opened -> won | lost.

Opening freezes the disputed amount (available -> pending). Winning releases
it back, losing forfeits it and returns the goods to stock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app

from settlement.errors import InvalidState, NotFound, ValidationFailed
from settlement.extensions import db
from settlement.models import Order
from settlement.services import balances, stock
from settlement.services.admin import verify_admin
from settlement.services.balances import ZERO, BalanceField, TransactionType, to_money
from settlement.services.order_machine import Effect, OrderEvent, OrderStatus
from settlement.services.orders import apply_event
from settlement.utils import audit

DISPUTE_RESULTS = ("won", "lost")


def open_dispute(
    order: Order,
    *,
    dispute_id: str,
    amount,
    reason: str = "",
    actor_id: Optional[int] = None,
) -> bool:
    """Open a dispute on ``order``. Returns True if funds were frozen."""
    if order.dispute_id and dispute_id and order.dispute_id == dispute_id and order.dispute_status != "none":
        current_app.logger.info("dispute %s already recorded on order %s", dispute_id, order.id)
        return False
    if order.state == OrderStatus.DISPUTE_OPENED:
        current_app.logger.info("order %s already has an open dispute", order.id)
        return False
    if order.state in (OrderStatus.COMPLETED, OrderStatus.REFUNDED, OrderStatus.PARTIAL_REFUND):
        current_app.logger.warning("late dispute %s rejected for order %s in %s", dispute_id, order.id, order.status)
        audit.record(
            "late_dispute_rejected",
            actor_id=actor_id,
            target_type="order",
            target_id=order.id,
            severity="warning",
            detail={"dispute_id": dispute_id, "status": order.status, "amount": str(to_money(amount))},
        )
        return False

    t = apply_event(order, OrderEvent.OPEN_DISPUTE, actor_id=actor_id, source=dispute_id)
    if t is None:
        return False

    disputed = to_money(amount)
    now = datetime.utcnow()
    order.dispute_id = dispute_id
    order.dispute_status = "opened"
    order.dispute_reason = (reason or "")[:120] or None
    order.dispute_amount = disputed
    order.dispute_opened_at = now
    order.dispute_resolved_at = None
    order.dispute_result = None

    frozen = ZERO
    if Effect.FREEZE_FUNDS in t.effects:
        txn = balances.transfer(
            order.seller_id,
            BalanceField.AVAILABLE,
            BalanceField.PENDING,
            disputed,
            txn_type=TransactionType.ADJUSTMENT,
            description=f"Funds frozen for dispute on order {order.order_number}",
            reference=order.order_number,
            idempotency_key=f"order:{order.id}:dispute:freeze",
        )
        if txn is not None:
            frozen = to_money(txn.applied_amount)
    order.dispute_frozen_amount = frozen
    audit.record(
        "dispute_opened",
        actor_id=actor_id,
        target_type="order",
        target_id=order.id,
        detail={"dispute_id": dispute_id, "amount": str(disputed), "frozen": str(frozen), "reason": reason},
    )
    return True


def resolve_dispute(
    order: Order,
    result: str,
    *,
    dispute_id: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> bool:
    """Close the open dispute on ``order`` as ``won`` or ``lost``.

    No-op (False) unless a dispute is currently open, which also covers a
    close event overtaking its open event.
    """
    if result not in DISPUTE_RESULTS:
        raise ValueError(f"unknown dispute result: {result}")
    if order.dispute_status != "opened" or order.state != OrderStatus.DISPUTE_OPENED:
        current_app.logger.info("order %s has no open dispute; %s ignored", order.id, result)
        return False
    if dispute_id and order.dispute_id and dispute_id != order.dispute_id:
        current_app.logger.warning("dispute %s does not match open dispute %s on order %s", dispute_id, order.dispute_id, order.id)
        return False

    event = OrderEvent.WIN_DISPUTE if result == "won" else OrderEvent.LOSE_DISPUTE
    t = apply_event(order, event, actor_id=actor_id, source=order.dispute_id or "")
    if t is None:
        return False

    disputed = to_money(order.dispute_amount)
    frozen = to_money(order.dispute_frozen_amount) if order.dispute_frozen_amount is not None else disputed
    now = datetime.utcnow()
    order.dispute_status = result
    order.dispute_result = result
    order.dispute_resolved_at = now

    if Effect.RELEASE_FUNDS in t.effects:
        balances.transfer(
            order.seller_id,
            BalanceField.PENDING,
            BalanceField.AVAILABLE,
            frozen,
            txn_type=TransactionType.ADJUSTMENT,
            description=f"Dispute won on order {order.order_number}",
            reference=order.order_number,
            idempotency_key=f"order:{order.id}:dispute:release",
        )
        order.completed_at = now
    if Effect.FORFEIT_FUNDS in t.effects:
        balances.debit(
            order.seller_id,
            BalanceField.PENDING,
            frozen,
            txn_type=TransactionType.REFUND,
            description=f"Dispute lost on order {order.order_number}",
            reference=order.order_number,
            idempotency_key=f"order:{order.id}:dispute:loss",
        )
        order.refund_amount = disputed
        order.refunded_at = now
    if Effect.RESTORE_STOCK in t.effects:
        stock.restore_stock(order, "return")

    audit.record(
        f"dispute_{result}",
        actor_id=actor_id,
        target_type="order",
        target_id=order.id,
        detail={"dispute_id": order.dispute_id, "amount": str(disputed), "frozen": str(frozen)},
    )
    return True


def resolve_dispute_manually(order_id: int, admin_id: int, outcome: str) -> dict:
    """Admin override of an open dispute."""
    verify_admin(admin_id)
    if outcome not in DISPUTE_RESULTS:
        raise ValidationFailed("outcome must be won or lost", outcome=outcome)

    order = Order.query.filter_by(id=int(order_id)).with_for_update().first()
    if order is None:
        raise NotFound("order not found", order_id=order_id)
    if not resolve_dispute(order, outcome, actor_id=admin_id):
        db.session.rollback()
        raise InvalidState("order has no open dispute", status=order.status, dispute_status=order.dispute_status)

    audit.record(
        "dispute_manual_resolution",
        actor_id=admin_id,
        target_type="order",
        target_id=order.id,
        detail={"outcome": outcome},
    )
    db.session.commit()
    return order.to_dict()
