from __future__ import annotations

from typing import Optional

from flask_login import current_user

from settlement.extensions import db, login_manager
from settlement.models import User
from settlement.utils.jwt_utils import decode_token, get_bearer_token


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, int(user_id))
    if user is None or user.is_banned:
        return None
    return user


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve ``Authorization: Bearer <jwt>`` into the current user.

    Suspended users resolve to anonymous.
    """
    token = get_bearer_token(req.headers.get("Authorization", ""))
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, user_id)
    if user is None or user.is_banned:
        return None
    return user


def current_user_id() -> Optional[int]:
    if not current_user or not current_user.is_authenticated:
        return None
    return int(current_user.id)
