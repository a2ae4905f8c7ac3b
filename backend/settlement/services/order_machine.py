"""Order lifecycle state machine.

Pure functions of (current state, event) -> (next state, effects). Nothing in
here touches the database; callers apply the returned effects inside their own
unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    DISPUTE_OPENED = "DISPUTE_OPENED"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    PARTIAL_REFUND = "PARTIAL_REFUND"


class OrderEvent(str, Enum):
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    SHIP = "SHIP"
    DELIVER = "DELIVER"
    COMPLETE = "COMPLETE"
    REFUND_FULL = "REFUND_FULL"
    REFUND_PARTIAL = "REFUND_PARTIAL"
    OPEN_DISPUTE = "OPEN_DISPUTE"
    WIN_DISPUTE = "WIN_DISPUTE"
    LOSE_DISPUTE = "LOSE_DISPUTE"


class Effect(str, Enum):
    SETTLE_SELLER = "SETTLE_SELLER"
    RESTORE_STOCK = "RESTORE_STOCK"
    DEBIT_REFUND = "DEBIT_REFUND"
    FREEZE_FUNDS = "FREEZE_FUNDS"
    RELEASE_FUNDS = "RELEASE_FUNDS"
    FORFEIT_FUNDS = "FORFEIT_FUNDS"
    NOTIFY_SHIPPED = "NOTIFY_SHIPPED"


TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.REFUNDED, OrderStatus.PARTIAL_REFUND}
)

# States in which the buyer's money is considered captured.
PAID_STATES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.PAID,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.DISPUTE_OPENED,
        OrderStatus.COMPLETED,
    }
)

DISPUTABLE_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED}
)


_TRANSITIONS: Dict[Tuple[OrderStatus, OrderEvent], Tuple[OrderStatus, FrozenSet[Effect]]] = {
    (OrderStatus.PENDING, OrderEvent.PAYMENT_SUCCEEDED): (OrderStatus.PAID, frozenset({Effect.SETTLE_SELLER})),
    (OrderStatus.PAID, OrderEvent.SHIP): (OrderStatus.SHIPPED, frozenset({Effect.NOTIFY_SHIPPED})),
    (OrderStatus.SHIPPED, OrderEvent.DELIVER): (OrderStatus.DELIVERED, frozenset()),
    (OrderStatus.DELIVERED, OrderEvent.COMPLETE): (OrderStatus.COMPLETED, frozenset()),
    (OrderStatus.PAID, OrderEvent.REFUND_FULL): (
        OrderStatus.REFUNDED,
        frozenset({Effect.RESTORE_STOCK, Effect.DEBIT_REFUND}),
    ),
    (OrderStatus.PAID, OrderEvent.REFUND_PARTIAL): (OrderStatus.PARTIAL_REFUND, frozenset({Effect.DEBIT_REFUND})),
    # returns after shipment: same effects, stock comes back as "return"
    (OrderStatus.SHIPPED, OrderEvent.REFUND_FULL): (
        OrderStatus.REFUNDED,
        frozenset({Effect.RESTORE_STOCK, Effect.DEBIT_REFUND}),
    ),
    (OrderStatus.SHIPPED, OrderEvent.REFUND_PARTIAL): (OrderStatus.PARTIAL_REFUND, frozenset({Effect.DEBIT_REFUND})),
    (OrderStatus.DELIVERED, OrderEvent.REFUND_FULL): (
        OrderStatus.REFUNDED,
        frozenset({Effect.RESTORE_STOCK, Effect.DEBIT_REFUND}),
    ),
    (OrderStatus.DELIVERED, OrderEvent.REFUND_PARTIAL): (OrderStatus.PARTIAL_REFUND, frozenset({Effect.DEBIT_REFUND})),
    (OrderStatus.DISPUTE_OPENED, OrderEvent.WIN_DISPUTE): (OrderStatus.COMPLETED, frozenset({Effect.RELEASE_FUNDS})),
    (OrderStatus.DISPUTE_OPENED, OrderEvent.LOSE_DISPUTE): (
        OrderStatus.REFUNDED,
        frozenset({Effect.FORFEIT_FUNDS, Effect.RESTORE_STOCK}),
    ),
}
for _state in DISPUTABLE_STATES:
    _TRANSITIONS[(_state, OrderEvent.OPEN_DISPUTE)] = (OrderStatus.DISPUTE_OPENED, frozenset({Effect.FREEZE_FUNDS}))


@dataclass(frozen=True)
class Transition:
    source: OrderStatus
    event: OrderEvent
    target: OrderStatus
    effects: FrozenSet[Effect]


def transition(current: OrderStatus, event: OrderEvent) -> Optional[Transition]:
    """Return the transition for (current, event), or None when it is not allowed.

    None means "leave the order untouched": replays and out-of-order events
    land here and are treated as no-ops by callers.
    """
    found = _TRANSITIONS.get((OrderStatus(current), OrderEvent(event)))
    if found is None:
        return None
    target, effects = found
    return Transition(source=OrderStatus(current), event=OrderEvent(event), target=target, effects=effects)


def can_transition(current: OrderStatus, event: OrderEvent) -> bool:
    return transition(current, event) is not None


def payment_status_for(status: OrderStatus, payment_failed: bool = False) -> str:
    """Legacy payment_status projection of an order's status."""
    status = OrderStatus(status)
    if status == OrderStatus.PENDING:
        return "failed" if payment_failed else "unpaid"
    if status == OrderStatus.REFUNDED:
        return "refunded"
    if status == OrderStatus.PARTIAL_REFUND:
        return "partially_refunded"
    return "paid"


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATES
