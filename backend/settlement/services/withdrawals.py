from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from settlement.errors import InsufficientFunds, InvalidState, NotFound, RetryableEventError, ValidationFailed
from settlement.extensions import db
from settlement.models import WithdrawalRequest
from settlement.services import balances
from settlement.services.admin import verify_admin
from settlement.services.balances import ZERO, BalanceField, TransactionType, to_money
from settlement.utils import audit

WITHDRAWAL_ACTIONS = ("approve", "reject")


def list_pending_withdrawals(admin_id: int) -> list[WithdrawalRequest]:
    verify_admin(admin_id)
    return (
        WithdrawalRequest.query.filter_by(status="pending")
        .order_by(WithdrawalRequest.created_at.asc(), WithdrawalRequest.id.asc())
        .all()
    )


def _reject_attempt(action: str, admin_id: int, request_id: int, detail: dict) -> None:
    audit.record(
        action,
        actor_id=admin_id,
        target_type="withdrawal_request",
        target_id=request_id,
        severity="warning",
        detail=detail,
    )
    db.session.commit()


# Lost a race with another writer on the same balance or request row.
_CONFLICTS = (StaleDataError, IntegrityError)


def _conflict(request_id: int, exc: Exception) -> RetryableEventError:
    db.session.rollback()
    current_app.logger.warning("withdrawal %s conflicted: %s", request_id, exc)
    return RetryableEventError("withdrawal conflicted with a concurrent update, retry", request_id=request_id)


def process_withdrawal(request_id: int, admin_id: int, action: str, notes: str = "") -> dict:
    """Approve or reject a pending withdrawal request.

    Approval moves the amount from available_balance to total_withdrawn and
    fails with InsufficientFunds (request left pending) when the seller cannot
    cover it. Non-positive amounts are refused before any balance is touched,
    and a concurrent-update conflict surfaces as RetryableEventError with the
    request still pending. Every outcome, including failures, is audited.
    """
    verify_admin(admin_id)
    if action not in WITHDRAWAL_ACTIONS:
        raise ValidationFailed("action must be approve or reject", action=action)

    req = WithdrawalRequest.query.filter_by(id=int(request_id)).with_for_update().first()
    if req is None:
        _reject_attempt("withdrawal_not_found", admin_id, request_id, {"action": action})
        raise NotFound("withdrawal request not found", request_id=request_id)
    if req.status != "pending":
        status = req.status
        _reject_attempt("withdrawal_invalid_state", admin_id, request_id, {"action": action, "status": status})
        raise InvalidState(f"withdrawal request already {status}", status=status)

    amount = to_money(req.amount)
    txn = None
    if action == "approve":
        if amount <= ZERO:
            _reject_attempt("withdrawal_invalid_amount", admin_id, request_id, {"amount": str(amount)})
            raise ValidationFailed("withdrawal amount must be positive", amount=str(amount))
        try:
            txn = balances.transfer(
                req.seller_id,
                BalanceField.AVAILABLE,
                BalanceField.WITHDRAWN,
                amount,
                floor_at_zero=False,
                txn_type=TransactionType.WITHDRAWAL,
                description=f"Withdrawal #{req.id} via {req.method}",
                reference=f"withdrawal:{req.id}",
                idempotency_key=f"withdrawal:{req.id}:approve",
            )
        except InsufficientFunds as e:
            db.session.rollback()
            current_app.logger.info("withdrawal %s refused: %s", request_id, e.message)
            _reject_attempt(
                "withdrawal_insufficient_funds",
                admin_id,
                request_id,
                {"amount": str(amount), **e.details},
            )
            raise
        except _CONFLICTS as e:
            raise _conflict(request_id, e) from e
        req.status = "completed"
    else:
        req.status = "rejected"

    req.processed_by = int(admin_id)
    req.processed_at = datetime.utcnow()
    audit.record(
        f"withdrawal_{req.status}",
        actor_id=admin_id,
        target_type="withdrawal_request",
        target_id=req.id,
        detail={
            "seller_id": req.seller_id,
            "amount": str(amount),
            "method": req.method,
            "transaction_id": txn.id if txn is not None else None,
            "notes": notes or None,
        },
    )
    try:
        db.session.commit()
    except _CONFLICTS as e:
        raise _conflict(request_id, e) from e
    current_app.logger.info("withdrawal %s %s by admin %s", req.id, req.status, admin_id)

    bal = balances.get_balance(req.seller_id, lock=False)
    return {"request": req.to_dict(), "balance": bal.to_dict()}
