from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app

from settlement.models import Order
from settlement.services.order_machine import OrderEvent, Transition, transition
from settlement.utils import audit


def apply_event(order: Order, event: OrderEvent, *, actor_id: Optional[int] = None, source: str = "") -> Optional[Transition]:
    """Move ``order`` through the state machine.

    Disallowed (state, event) pairs leave the order untouched and return None.
    """
    t = transition(order.state, event)
    if t is None:
        current_app.logger.info(
            "order %s: %s ignored in state %s (source=%s)", order.id, OrderEvent(event).value, order.status, source
        )
        return None

    order.status = t.target.value
    order.updated_at = datetime.utcnow()
    audit.record(
        "order_transition",
        actor_id=actor_id,
        target_type="order",
        target_id=order.id,
        detail={"from": t.source.value, "to": t.target.value, "event": t.event.value, "source": source},
    )
    current_app.logger.info("order %s: %s -> %s (%s)", order.id, t.source.value, t.target.value, t.event.value)
    return t
