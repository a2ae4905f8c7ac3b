from __future__ import annotations

import json
from typing import Any, Dict, Optional

from settlement.extensions import db
from settlement.models import Notification


def notify(
    user_id: int,
    type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    n = Notification(
        user_id=int(user_id),
        type=(type or "general")[:48],
        channel="in_app",
        title=title[:160] if title else "",
        message=message or "",
        link=link[:240] if link else None,
        data=json.dumps(data or {}, default=str),
        status="queued",
    )
    db.session.add(n)
    return n
