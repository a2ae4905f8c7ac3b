"""Settlement reconciler: turns verified processor events into ledger changes.

One event is one unit of work. Order, balance, stock and payout changes made
by a handler are committed together; notifications run only after that commit.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from settlement.errors import MalformedEventError, RetryableEventError
from settlement.extensions import db
from settlement.models import Order, Seller, SellerPayout, User
from settlement.services import balances, disputes, stock
from settlement.services.balances import ZERO, BalanceField, TransactionType, cents_to_money, to_money
from settlement.services.dedup import EventDeduplicator
from settlement.services.order_machine import Effect, OrderEvent, OrderStatus
from settlement.services.orders import apply_event
from settlement.utils import audit, mailer
from settlement.utils.notify import notify
from settlement.utils.signatures import verify_processor_signature

# Conflicts worth replaying the whole event for.
_RETRYABLE = (StaleDataError, IntegrityError, OperationalError)


@dataclass
class ProcessorEvent:
    id: str
    type: str
    data: Dict[str, Any]
    account: Optional[str] = None
    created: Optional[int] = None


@dataclass
class EventResult:
    event_id: str
    event_type: str
    outcome: str  # processed | noop | ignored | duplicate
    order_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "received": True,
            "event_id": self.event_id,
            "type": self.event_type,
            "outcome": self.outcome,
            "order_id": self.order_id,
        }


@dataclass
class _Outcome:
    outcome: str
    order_id: Optional[int] = None
    after_commit: List[Callable[[], None]] = field(default_factory=list)


def parse_event(raw_body: bytes) -> ProcessorEvent:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEventError("event body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise MalformedEventError("event body must be an object")

    event_id = payload.get("id")
    event_type = payload.get("type")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    obj = data.get("object")
    if not event_id or not event_type or not isinstance(obj, dict):
        raise MalformedEventError("event requires id, type and data.object")
    return ProcessorEvent(
        id=str(event_id),
        type=str(event_type),
        data=obj,
        account=payload.get("account"),
        created=payload.get("created"),
    )


# -----------------------------
# Order lookup strategies
# -----------------------------
def _by_metadata(obj: dict):
    meta = obj.get("metadata") or {}
    ref = str(meta.get("order_id") or meta.get("orderId") or "").strip()
    if not ref:
        return None
    if ref.isdigit():
        return Order.query.filter(Order.id == int(ref))
    return Order.query.filter(Order.order_number == ref)


def _by_payment_intent(obj: dict):
    pi = obj.get("id") if obj.get("object") == "payment_intent" else obj.get("payment_intent")
    if not pi:
        return None
    return Order.query.filter(Order.processor_payment_intent_id == str(pi))


def _by_charge(obj: dict):
    charge = obj.get("id") if obj.get("object") == "charge" else obj.get("charge")
    if not charge:
        return None
    return Order.query.filter(Order.processor_charge_id == str(charge))


def _by_dispute(obj: dict):
    if obj.get("object") != "dispute" or not obj.get("id"):
        return None
    return Order.query.filter(Order.dispute_id == str(obj["id"]))


ORDER_LOOKUPS = (_by_metadata, _by_payment_intent, _by_charge, _by_dispute)


def find_order(obj: dict) -> Optional[Order]:
    """First order matched by the lookup strategies, locked for update."""
    for strategy in ORDER_LOOKUPS:
        q = strategy(obj)
        if q is None:
            continue
        order = q.with_for_update().first()
        if order is not None:
            return order
    return None


def _cents_field(obj: dict, *names) -> Optional[Any]:
    for name in names:
        if obj.get(name) is not None:
            return obj.get(name)
    return None


class SettlementReconciler:
    """Verifies, de-duplicates and dispatches processor events."""

    HANDLERS = {
        "payment_intent.succeeded": "_on_payment_succeeded",
        "checkout.session.completed": "_on_payment_succeeded",
        "payment_intent.payment_failed": "_on_payment_failed",
        "transfer.created": "_on_transfer_created",
        "transfer.reversed": "_on_transfer_reversed",
        "payout.failed": "_on_payout_failed",
        "charge.refunded": "_on_charge_refunded",
        "charge.dispute.created": "_on_dispute_created",
        "charge.dispute.closed": "_on_dispute_closed",
        "account.updated": "_on_account_updated",
        "account.application.deauthorized": "_on_account_deauthorized",
        "capability.updated": "_on_capability_updated",
    }

    def __init__(
        self,
        secret: str,
        *,
        deduplicator: Optional[EventDeduplicator] = None,
        tolerance_seconds: int = 300,
        max_attempts: int = 3,
    ):
        self.secret = secret or ""
        self.deduplicator = deduplicator or EventDeduplicator()
        self.tolerance_seconds = int(tolerance_seconds)
        self.max_attempts = max(1, int(max_attempts))

    @classmethod
    def from_config(cls, config) -> "SettlementReconciler":
        return cls(
            config.get("PROCESSOR_WEBHOOK_SECRET", ""),
            deduplicator=EventDeduplicator(
                window_seconds=config.get("EVENT_DEDUP_WINDOW_SECONDS", 300),
                high_water=config.get("EVENT_DEDUP_HIGH_WATER", 1000),
            ),
            tolerance_seconds=config.get("WEBHOOK_TOLERANCE_SECONDS", 300),
            max_attempts=config.get("EVENT_MAX_ATTEMPTS", 3),
        )

    # -----------------------------
    # Entry points
    # -----------------------------
    def handle(self, raw_body: bytes, signature_header: Optional[str]) -> EventResult:
        verify_processor_signature(raw_body, signature_header, self.secret, self.tolerance_seconds)
        event = parse_event(raw_body)

        if self.deduplicator.is_duplicate(event.id):
            current_app.logger.info("duplicate event %s (%s) dropped", event.id, event.type)
            return EventResult(event.id, event.type, "duplicate")

        try:
            return self.dispatch(event)
        except Exception:
            self.deduplicator.forget(event.id)
            raise

    def dispatch(self, event: ProcessorEvent) -> EventResult:
        name = self.HANDLERS.get(event.type)
        if name is None:
            current_app.logger.info("event %s of unhandled type %s acknowledged", event.id, event.type)
            return EventResult(event.id, event.type, "ignored")
        handler = getattr(self, name)

        attempt = 0
        while True:
            attempt += 1
            try:
                result = handler(event)
                db.session.commit()
                break
            except _RETRYABLE as e:
                db.session.rollback()
                if attempt >= self.max_attempts:
                    current_app.logger.exception("event %s failed after %s attempts", event.id, attempt)
                    raise RetryableEventError("event could not be applied", event_id=event.id) from e
                current_app.logger.warning("event %s conflict on attempt %s: %s", event.id, attempt, e)
            except Exception:
                db.session.rollback()
                current_app.logger.exception("event %s (%s) failed", event.id, event.type)
                raise

        for callback in result.after_commit:
            self._run_side_effect(event, callback)
        return EventResult(event.id, event.type, result.outcome, result.order_id)

    def _run_side_effect(self, event: ProcessorEvent, callback: Callable[[], None]) -> None:
        try:
            callback()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning("side effect for event %s failed: %s", event.id, e)

    # -----------------------------
    # Payments
    # -----------------------------
    def _on_payment_succeeded(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        order = find_order(obj)
        if order is None:
            current_app.logger.info("event %s: no order found", event.id)
            return _Outcome("noop")

        t = apply_event(order, OrderEvent.PAYMENT_SUCCEEDED, source=event.id)
        if t is None:
            return _Outcome("noop", order.id)

        amount_cents = _cents_field(obj, "amount_received", "amount", "amount_total")
        amount = cents_to_money(amount_cents) if amount_cents is not None else to_money(order.total_amount)
        fee_cents = obj.get("application_fee_amount")
        fee = cents_to_money(fee_cents) if fee_cents is not None else to_money(order.platform_fee)
        earnings = max(amount - fee, ZERO)

        now = datetime.utcnow()
        order.amount_paid = amount
        order.platform_fee = fee
        order.seller_earnings = earnings
        order.paid_at = now
        if obj.get("object") == "payment_intent":
            order.processor_payment_intent_id = obj.get("id")
        elif obj.get("payment_intent"):
            order.processor_payment_intent_id = obj.get("payment_intent")
        charge = obj.get("latest_charge") or obj.get("charge")
        if charge:
            order.processor_charge_id = charge

        if Effect.SETTLE_SELLER in t.effects:
            balances.credit(
                order.seller_id,
                BalanceField.AVAILABLE,
                earnings,
                txn_type=TransactionType.PAYOUT,
                description=f"Sale {order.order_number}",
                reference=order.order_number,
                idempotency_key=f"order:{order.id}:settle",
                gross_amount=amount,
                commission_amount=fee,
            )
            self._ensure_payout(order, earnings)

        audit.record(
            "order_paid",
            target_type="order",
            target_id=order.id,
            detail={"event_id": event.id, "amount": str(amount), "platform_fee": str(fee), "earnings": str(earnings)},
        )
        order_id = int(order.id)
        return _Outcome("processed", order_id, [lambda: self._notify_paid(order_id)])

    def _ensure_payout(self, order: Order, amount) -> SellerPayout:
        payout = SellerPayout.query.filter_by(seller_id=int(order.seller_id), order_id=int(order.id)).first()
        if payout is None:
            payout = SellerPayout(seller_id=int(order.seller_id), order_id=int(order.id), amount=amount, status="pending")
            db.session.add(payout)
        return payout

    def _notify_paid(self, order_id: int) -> None:
        order = db.session.get(Order, order_id)
        if order is None:
            return
        buyer = db.session.get(User, int(order.buyer_id))
        if buyer is not None:
            ok, detail = mailer.send_email(
                to=buyer.email,
                subject=f"Order confirmation {order.order_number}",
                html=mailer.order_confirmation_html(order),
            )
            if not ok:
                current_app.logger.warning("order %s confirmation email not sent: %s", order.id, detail)
        seller = db.session.get(Seller, int(order.seller_id))
        if seller is not None:
            notify(
                seller.user_id,
                "new_order",
                "New order",
                f"Order {order.order_number} has been paid.",
                link=f"/seller/orders/{order.id}",
                data={"order_id": order.id, "order_number": order.order_number},
            )

    def _on_payment_failed(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        order = find_order(obj)
        if order is None:
            return _Outcome("noop")
        if order.state != OrderStatus.PENDING:
            current_app.logger.info("event %s: payment failure ignored for order %s in %s", event.id, order.id, order.status)
            return _Outcome("noop", order.id)

        error = obj.get("last_payment_error") or {}
        message = (error.get("message") if isinstance(error, dict) else None) or "Payment failed"
        order.payment_failure_message = message[:240]
        order.payment_failed_at = datetime.utcnow()
        order.updated_at = order.payment_failed_at
        audit.record("payment_failed", target_type="order", target_id=order.id, detail={"event_id": event.id, "message": message})
        return _Outcome("processed", order.id)

    # -----------------------------
    # Transfers and payouts
    # -----------------------------
    def _find_payout(self, obj: dict) -> Optional[SellerPayout]:
        if obj.get("id"):
            payout = SellerPayout.query.filter_by(transfer_id=str(obj["id"])).first()
            if payout is not None:
                return payout
        q = _by_metadata(obj)
        order = q.first() if q is not None else None
        if order is None:
            return None
        meta = obj.get("metadata") or {}
        seller_id = meta.get("seller_id") or order.seller_id
        return SellerPayout.query.filter_by(order_id=int(order.id), seller_id=int(seller_id)).first()

    def _on_transfer_created(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        payout = self._find_payout(obj)
        if payout is None:
            current_app.logger.info("event %s: no payout for transfer %s", event.id, obj.get("id"))
            return _Outcome("noop")
        if payout.status in ("reversed", "paid") or (payout.transfer_id == obj.get("id") and payout.status == "processing"):
            return _Outcome("noop", payout.order_id)

        payout.status = "processing"
        payout.transfer_id = obj.get("id")
        payout.updated_at = datetime.utcnow()
        audit.record(
            "payout_processing",
            target_type="seller_payout",
            target_id=payout.id,
            detail={"transfer_id": payout.transfer_id, "order_id": payout.order_id},
        )
        return _Outcome("processed", payout.order_id)

    def _on_transfer_reversed(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        payout = self._find_payout(obj)
        if payout is None:
            return _Outcome("noop")
        if payout.status == "reversed":
            current_app.logger.info("event %s: payout %s already reversed", event.id, payout.id)
            return _Outcome("noop", payout.order_id)

        reversed_cents = _cents_field(obj, "amount_reversed", "amount")
        amount = cents_to_money(reversed_cents) if reversed_cents else to_money(payout.amount)
        transfer_id = obj.get("id") or payout.transfer_id

        payout.status = "reversed"
        payout.transfer_id = payout.transfer_id or transfer_id
        payout.updated_at = datetime.utcnow()
        balances.transfer(
            payout.seller_id,
            BalanceField.WITHDRAWN,
            BalanceField.PENDING,
            amount,
            txn_type=TransactionType.ADJUSTMENT,
            description=f"Transfer {transfer_id} reversed",
            reference=str(transfer_id),
            idempotency_key=f"transfer:{transfer_id}:reversed",
        )
        audit.record(
            "payout_reversed",
            target_type="seller_payout",
            target_id=payout.id,
            severity="warning",
            detail={"transfer_id": transfer_id, "amount": str(amount), "order_id": payout.order_id},
        )
        return _Outcome("processed", payout.order_id)

    def _on_payout_failed(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        seller = None
        account = event.account or obj.get("destination_account")
        if account:
            seller = Seller.query.filter_by(processor_account_id=str(account)).first()
        if seller is None:
            seller_id = (obj.get("metadata") or {}).get("seller_id")
            if seller_id:
                seller = db.session.get(Seller, int(seller_id))
        if seller is None:
            current_app.logger.info("event %s: payout failure for unknown seller", event.id)
            return _Outcome("noop")

        reason = obj.get("failure_message") or obj.get("failure_code") or "unknown"
        amount = cents_to_money(obj.get("amount"))
        current_app.logger.warning("payout %s failed for seller %s: %s", obj.get("id"), seller.id, reason)
        audit.record(
            "payout_failed",
            target_type="seller",
            target_id=seller.id,
            severity="warning",
            detail={"payout_id": obj.get("id"), "amount": str(amount), "reason": reason},
        )
        user_id = int(seller.user_id)
        return _Outcome(
            "processed",
            None,
            [
                lambda: notify(
                    user_id,
                    "payout_failed",
                    "Payout failed",
                    f"Your payout of {amount} could not be completed: {reason}",
                    link="/seller/payouts",
                    data={"payout_id": obj.get("id"), "reason": reason},
                )
            ],
        )

    # -----------------------------
    # Refunds and disputes
    # -----------------------------
    def _on_charge_refunded(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        order = find_order(obj)
        if order is None:
            return _Outcome("noop")

        refunded = cents_to_money(obj.get("amount_refunded"))
        charged = cents_to_money(obj["amount"]) if obj.get("amount") is not None else to_money(order.amount_paid or order.total_amount)
        full = bool(obj.get("refunded")) or refunded >= charged
        if full and refunded <= ZERO:
            refunded = charged

        t = apply_event(order, OrderEvent.REFUND_FULL if full else OrderEvent.REFUND_PARTIAL, source=event.id)
        if t is None:
            if not self._is_refund_replay(order, refunded, full):
                self._refund_unreconciled(event, order, refunded, full)
            return _Outcome("noop", order.id)

        order.refund_amount = refunded
        order.refunded_at = datetime.utcnow()
        if Effect.RESTORE_STOCK in t.effects:
            stock.restore_stock(order, "cancel" if t.source == OrderStatus.PAID else "return")
        if Effect.DEBIT_REFUND in t.effects:
            balances.debit(
                order.seller_id,
                BalanceField.AVAILABLE,
                max(refunded - to_money(order.platform_fee), ZERO),
                txn_type=TransactionType.REFUND,
                description=f"Refund on order {order.order_number}",
                reference=order.order_number,
                idempotency_key=f"order:{order.id}:refund",
                gross_amount=refunded,
                commission_amount=order.platform_fee,
            )
        audit.record(
            "order_refunded" if full else "order_partially_refunded",
            target_type="order",
            target_id=order.id,
            detail={"event_id": event.id, "amount": str(refunded), "full": full},
        )
        return _Outcome("processed", order.id)

    @staticmethod
    def _is_refund_replay(order: Order, refunded, full: bool) -> bool:
        if order.state == OrderStatus.REFUNDED:
            return full
        if order.state == OrderStatus.PARTIAL_REFUND:
            return not full and to_money(order.refund_amount) == refunded
        return False

    def _refund_unreconciled(self, event: ProcessorEvent, order: Order, refunded, full: bool) -> None:
        """A refund the order can no longer absorb; left for manual reconciliation."""
        current_app.logger.warning(
            "event %s: refund of %s on order %s in %s not applied", event.id, refunded, order.id, order.status
        )
        audit.record(
            "refund_unreconciled",
            target_type="order",
            target_id=order.id,
            severity="warning",
            detail={"event_id": event.id, "amount": str(refunded), "full": full, "status": order.status},
        )

    def _on_dispute_created(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        order = find_order(obj)
        if order is None:
            return _Outcome("noop")
        amount = cents_to_money(obj["amount"]) if obj.get("amount") is not None else to_money(order.total_amount)
        opened = disputes.open_dispute(order, dispute_id=str(obj.get("id") or ""), amount=amount, reason=obj.get("reason") or "")
        return _Outcome("processed" if opened else "noop", order.id)

    def _on_dispute_closed(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        status = (obj.get("status") or "").lower()
        if status in ("won", "warning_closed"):
            result = "won"
        elif status == "lost":
            result = "lost"
        else:
            current_app.logger.info("event %s: dispute closed with status %s ignored", event.id, status)
            return _Outcome("ignored")

        order = find_order(obj)
        if order is None:
            return _Outcome("noop")
        resolved = disputes.resolve_dispute(order, result, dispute_id=obj.get("id"))
        return _Outcome("processed" if resolved else "noop", order.id)

    # -----------------------------
    # Connected accounts
    # -----------------------------
    def _on_account_updated(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        account_id = obj.get("id") or event.account
        seller = Seller.query.filter_by(processor_account_id=str(account_id)).first() if account_id else None
        if seller is None:
            return _Outcome("noop")

        requirements = obj.get("requirements") or {}
        seller.charges_enabled = bool(obj.get("charges_enabled"))
        seller.payouts_enabled = bool(obj.get("payouts_enabled"))
        seller.onboarding_complete = bool(obj.get("details_submitted"))
        seller.verification_status = requirements.get("disabled_reason") or "verified"
        seller.requirements_due = json.dumps(list(requirements.get("currently_due") or []))
        seller.updated_at = datetime.utcnow()
        audit.record(
            "seller_account_updated",
            target_type="seller",
            target_id=seller.id,
            detail={
                "charges_enabled": seller.charges_enabled,
                "payouts_enabled": seller.payouts_enabled,
                "onboarding_complete": seller.onboarding_complete,
                "verification_status": seller.verification_status,
            },
        )
        return _Outcome("processed")

    def _on_account_deauthorized(self, event: ProcessorEvent) -> _Outcome:
        """The seller disconnected their processor account from the platform."""
        account_id = event.account or event.data.get("account")
        seller = Seller.query.filter_by(processor_account_id=str(account_id)).first() if account_id else None
        if seller is None:
            return _Outcome("noop")

        seller.processor_account_id = None
        seller.charges_enabled = False
        seller.payouts_enabled = False
        seller.onboarding_complete = False
        seller.verification_status = "deauthorized"
        seller.updated_at = datetime.utcnow()
        current_app.logger.warning("seller %s deauthorized processor account %s", seller.id, account_id)
        audit.record(
            "seller_account_deauthorized",
            target_type="seller",
            target_id=seller.id,
            severity="warning",
            detail={"account_id": account_id},
        )
        return _Outcome("processed")

    # capability id -> Seller flag it drives
    CAPABILITY_FLAGS = {
        "card_payments": "charges_enabled",
        "transfers": "payouts_enabled",
    }

    def _on_capability_updated(self, event: ProcessorEvent) -> _Outcome:
        obj = event.data
        account_id = obj.get("account") or event.account
        seller = Seller.query.filter_by(processor_account_id=str(account_id)).first() if account_id else None
        if seller is None:
            return _Outcome("noop")

        capability = obj.get("id") or ""
        status = (obj.get("status") or "").lower()
        flag = self.CAPABILITY_FLAGS.get(capability)
        if flag is not None:
            setattr(seller, flag, status == "active")

        requirements = obj.get("requirements") or {}
        if requirements.get("disabled_reason"):
            seller.verification_status = requirements["disabled_reason"]
        elif seller.charges_enabled and seller.payouts_enabled:
            seller.verification_status = "verified"
        if "currently_due" in requirements:
            seller.requirements_due = json.dumps(list(requirements.get("currently_due") or []))
        seller.updated_at = datetime.utcnow()
        audit.record(
            "seller_capability_updated",
            target_type="seller",
            target_id=seller.id,
            detail={
                "capability": capability,
                "status": status,
                "charges_enabled": seller.charges_enabled,
                "payouts_enabled": seller.payouts_enabled,
            },
        )
        return _Outcome("processed")
