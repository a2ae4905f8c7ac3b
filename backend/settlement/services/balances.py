"""Seller balance ledger.

Balances only move through credit / debit / transfer. Each call appends exactly
one SellerTransaction whose ``net_amount`` is the change it caused to
available + pending, so the cached balance row always equals the sum of the
ledger. Functions flush but never commit; the caller owns the unit of work.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from flask import current_app

from settlement.errors import InsufficientFunds
from settlement.extensions import db
from settlement.models import SellerBalance, SellerTransaction
from settlement.utils import audit

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class BalanceField(str, Enum):
    AVAILABLE = "available_balance"
    PENDING = "pending_balance"
    WITHDRAWN = "total_withdrawn"


# Fields that make up the seller's holdings; total_withdrawn is history only.
_HOLDINGS = (BalanceField.AVAILABLE, BalanceField.PENDING)


class TransactionType(str, Enum):
    PAYOUT = "payout"
    FEE = "fee"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    WITHDRAWAL = "withdrawal"


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def cents_to_money(cents) -> Decimal:
    return to_money(Decimal(int(cents or 0)) / Decimal(100))


def get_balance(seller_id: int, *, lock: bool = True) -> SellerBalance:
    """Load (or lazily create) the seller's balance row, locked for update."""
    q = SellerBalance.query.filter_by(seller_id=int(seller_id))
    if lock:
        q = q.with_for_update()
    bal = q.first()
    if bal:
        return bal
    bal = SellerBalance(
        seller_id=int(seller_id),
        available_balance=ZERO,
        pending_balance=ZERO,
        total_withdrawn=ZERO,
    )
    db.session.add(bal)
    db.session.flush()
    return bal


def _read(bal: SellerBalance, field: BalanceField) -> Decimal:
    return to_money(getattr(bal, BalanceField(field).value))


def _write(bal: SellerBalance, field: BalanceField, value: Decimal) -> None:
    setattr(bal, BalanceField(field).value, to_money(value))


def _existing(idempotency_key: Optional[str]) -> Optional[SellerTransaction]:
    if not idempotency_key:
        return None
    return SellerTransaction.query.filter_by(idempotency_key=idempotency_key[:160]).first()


def _holdings_delta(field: BalanceField, delta: Decimal) -> Decimal:
    return delta if BalanceField(field) in _HOLDINGS else ZERO


def _take(bal: SellerBalance, field: BalanceField, amount: Decimal, floor_at_zero: bool, reference: str) -> Decimal:
    """Subtract ``amount`` from ``field`` and return what was actually taken."""
    current = _read(bal, field)
    if amount <= current:
        _write(bal, field, current - amount)
        return amount
    if not floor_at_zero:
        raise InsufficientFunds(
            f"{BalanceField(field).value} is {current}, requested {amount}",
            seller_id=int(bal.seller_id),
            field=BalanceField(field).value,
            available=str(current),
            requested=str(amount),
        )
    _write(bal, field, ZERO)
    current_app.logger.warning(
        "balance floor applied seller=%s field=%s requested=%s balance=%s ref=%s",
        bal.seller_id,
        BalanceField(field).value,
        amount,
        current,
        reference,
    )
    audit.record(
        "balance_floor_applied",
        target_type="seller_balance",
        target_id=bal.seller_id,
        severity="warning",
        detail={
            "field": BalanceField(field).value,
            "requested": str(amount),
            "balance": str(current),
            "shortfall": str(amount - current),
            "reference": reference,
        },
    )
    return current


def _append(
    bal: SellerBalance,
    *,
    operation: str,
    field: BalanceField,
    counter_field: Optional[BalanceField],
    requested: Decimal,
    applied: Decimal,
    net: Decimal,
    txn_type: TransactionType,
    description: str,
    reference: str,
    idempotency_key: Optional[str],
    gross_amount,
    commission_amount,
) -> SellerTransaction:
    now = datetime.utcnow()
    bal.updated_at = now
    txn = SellerTransaction(
        seller_id=int(bal.seller_id),
        type=TransactionType(txn_type).value,
        operation=operation,
        field=BalanceField(field).value,
        counter_field=BalanceField(counter_field).value if counter_field else None,
        gross_amount=to_money(gross_amount if gross_amount is not None else requested),
        commission_amount=to_money(commission_amount),
        net_amount=to_money(net),
        applied_amount=to_money(applied),
        status="floored" if applied < requested else "completed",
        description=(description or "")[:240],
        reference=(reference or "")[:80] or None,
        idempotency_key=idempotency_key[:160] if idempotency_key else None,
        created_at=now,
    )
    db.session.add(bal)
    db.session.add(txn)
    db.session.flush()
    return txn


def credit(
    seller_id: int,
    field: BalanceField,
    amount,
    *,
    txn_type: TransactionType = TransactionType.ADJUSTMENT,
    description: str = "",
    reference: str = "",
    idempotency_key: Optional[str] = None,
    gross_amount=None,
    commission_amount=None,
) -> Optional[SellerTransaction]:
    existing = _existing(idempotency_key)
    if existing:
        return existing
    amt = to_money(amount)
    if amt <= ZERO:
        return None

    bal = get_balance(seller_id)
    _write(bal, field, _read(bal, field) + amt)
    return _append(
        bal,
        operation="credit",
        field=field,
        counter_field=None,
        requested=amt,
        applied=amt,
        net=_holdings_delta(field, amt),
        txn_type=txn_type,
        description=description,
        reference=reference,
        idempotency_key=idempotency_key,
        gross_amount=gross_amount,
        commission_amount=commission_amount,
    )


def debit(
    seller_id: int,
    field: BalanceField,
    amount,
    *,
    floor_at_zero: bool = True,
    txn_type: TransactionType = TransactionType.ADJUSTMENT,
    description: str = "",
    reference: str = "",
    idempotency_key: Optional[str] = None,
    gross_amount=None,
    commission_amount=None,
) -> Optional[SellerTransaction]:
    existing = _existing(idempotency_key)
    if existing:
        return existing
    amt = to_money(amount)
    if amt <= ZERO:
        return None

    bal = get_balance(seller_id)
    taken = _take(bal, field, amt, floor_at_zero, reference or idempotency_key or "")
    return _append(
        bal,
        operation="debit",
        field=field,
        counter_field=None,
        requested=amt,
        applied=taken,
        net=-_holdings_delta(field, taken),
        txn_type=txn_type,
        description=description,
        reference=reference,
        idempotency_key=idempotency_key,
        gross_amount=gross_amount,
        commission_amount=commission_amount,
    )


def transfer(
    seller_id: int,
    from_field: BalanceField,
    to_field: BalanceField,
    amount,
    *,
    floor_at_zero: bool = True,
    txn_type: TransactionType = TransactionType.ADJUSTMENT,
    description: str = "",
    reference: str = "",
    idempotency_key: Optional[str] = None,
    gross_amount=None,
    commission_amount=None,
) -> Optional[SellerTransaction]:
    """Move ``amount`` between two fields of one seller's balance.

    The source is debited (floored unless ``floor_at_zero`` is False, in which
    case a shortfall raises InsufficientFunds) and the destination is credited
    with what was actually taken, so a floored transfer never creates money.
    """
    existing = _existing(idempotency_key)
    if existing:
        return existing
    amt = to_money(amount)
    if amt <= ZERO:
        return None

    bal = get_balance(seller_id)
    taken = _take(bal, from_field, amt, floor_at_zero, reference or idempotency_key or "")
    _write(bal, to_field, _read(bal, to_field) + taken)
    net = _holdings_delta(to_field, taken) - _holdings_delta(from_field, taken)
    return _append(
        bal,
        operation="transfer",
        field=from_field,
        counter_field=to_field,
        requested=amt,
        applied=taken,
        net=net,
        txn_type=txn_type,
        description=description,
        reference=reference,
        idempotency_key=idempotency_key,
        gross_amount=gross_amount,
        commission_amount=commission_amount,
    )


def ledger_sum(seller_id: int) -> Decimal:
    total = (
        db.session.query(db.func.coalesce(db.func.sum(SellerTransaction.net_amount), 0))
        .filter(SellerTransaction.seller_id == int(seller_id))
        .scalar()
    )
    return to_money(total)
