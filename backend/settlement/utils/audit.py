from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from settlement.extensions import db
from settlement.models import AuditLog


def _json_default(value):
    # Decimal, datetime and enums end up as plain strings in the payload
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def record(
    action: str,
    *,
    actor_id: Optional[int] = None,
    target_type: str = "",
    target_id: Any = None,
    detail: Optional[Dict[str, Any]] = None,
    severity: str = "info",
) -> AuditLog:
    """Append an audit row to the current session; the caller commits."""
    log = AuditLog(
        actor_user_id=int(actor_id) if actor_id is not None else None,
        action=action[:64],
        target_type=(target_type or "")[:64] or None,
        target_id=str(target_id)[:64] if target_id is not None else None,
        severity=severity,
        meta=json.dumps(detail or {}, default=_json_default),
        created_at=datetime.utcnow(),
    )
    db.session.add(log)
    return log


def query(*, target_id: Any = None, action: str = "", limit: int = 200) -> list[AuditLog]:
    q = AuditLog.query
    if target_id not in (None, ""):
        q = q.filter(AuditLog.target_id == str(target_id))
    if action:
        q = q.filter(AuditLog.action == action)
    return q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(int(limit)).all()
