from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from settlement.extensions import db
from settlement.models import SellerBalance
from settlement.services.balances import ZERO, ledger_sum, to_money
from settlement.utils import audit


def reconcile_balances(*, limit: int = 500, tolerance=Decimal("0.00")) -> dict:
    """Detect seller balance anomalies (ledger vs cached balance).

    This does NOT auto-correct balances. Every anomaly is written to the audit
    log as ``balance_anomaly`` so it can be investigated.
    """
    checked = 0
    anomalies = 0
    now = datetime.utcnow()
    tol = to_money(tolerance)

    rows = SellerBalance.query.order_by(SellerBalance.id.asc()).limit(int(limit)).all()
    for bal in rows:
        checked += 1
        computed = ledger_sum(int(bal.seller_id))
        available = to_money(bal.available_balance)
        pending = to_money(bal.pending_balance)
        withdrawn = to_money(bal.total_withdrawn)

        issues = []
        if abs(computed - (available + pending)) > tol:
            issues.append("ledger_mismatch")
        if available < ZERO:
            issues.append("negative_available")
        if pending < ZERO:
            issues.append("negative_pending")
        if withdrawn < ZERO:
            issues.append("negative_withdrawn")
        if not issues:
            continue

        anomalies += 1
        current_app.logger.warning("balance anomaly seller=%s issues=%s", bal.seller_id, ",".join(issues))
        audit.record(
            "balance_anomaly",
            target_type="seller_balance",
            target_id=bal.seller_id,
            severity="warning",
            detail={
                "issues": issues,
                "seller_id": int(bal.seller_id),
                "ledger_sum": str(computed),
                "available_balance": str(available),
                "pending_balance": str(pending),
                "total_withdrawn": str(withdrawn),
                "at": now.isoformat(),
            },
        )
    db.session.commit()
    return {"checked": checked, "anomalies": anomalies}
