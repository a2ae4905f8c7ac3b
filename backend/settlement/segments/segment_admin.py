from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask import Blueprint, jsonify, request

from settlement.auth import current_user_id
from settlement.errors import ValidationFailed
from settlement.jobs.balance_reconciler import reconcile_balances
from settlement.services import admin, disputes, withdrawals
from settlement.services.admin import verify_admin

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/admin")


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _int_arg(name: str, default: int) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"{name} must be an integer")


def _date_arg(name: str, end_of_day: bool = False):
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed(f"{name} must be an ISO date", **{name: raw})
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(raw) == 10:
        value = value + timedelta(days=1) - timedelta(microseconds=1)
    return value


# -----------------------------
# Withdrawals
# -----------------------------
@admin_bp.get("/withdrawals")
def pending_withdrawals():
    rows = withdrawals.list_pending_withdrawals(current_user_id())
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200


@admin_bp.post("/withdrawals/<int:request_id>/process")
def process_withdrawal(request_id: int):
    data = _body()
    result = withdrawals.process_withdrawal(
        request_id,
        current_user_id(),
        (data.get("action") or "").strip().lower(),
        notes=data.get("notes") or "",
    )
    return jsonify({"ok": True, **result}), 200


# -----------------------------
# Platform figures
# -----------------------------
@admin_bp.get("/stats")
def platform_stats():
    return jsonify({"ok": True, "stats": admin.get_platform_stats(current_user_id())}), 200


@admin_bp.get("/revenue")
def platform_revenue():
    uid = current_user_id()
    verify_admin(uid)
    period = _int_arg("period", 30)
    return jsonify({"ok": True, **admin.get_platform_revenue(uid, period)}), 200


@admin_bp.get("/fees")
def platform_fees():
    uid = current_user_id()
    verify_admin(uid)
    summary = admin.get_platform_fees_summary(uid, _date_arg("start"), _date_arg("end", end_of_day=True))
    return jsonify({"ok": True, **summary}), 200


@admin_bp.get("/payouts")
def payout_history():
    uid = current_user_id()
    verify_admin(uid)
    return jsonify({"ok": True, **admin.get_seller_payout_history(uid)}), 200


@admin_bp.get("/sellers/<int:seller_id>/payouts")
def seller_payout_history(seller_id: int):
    return jsonify({"ok": True, **admin.get_seller_payout_history(current_user_id(), seller_id)}), 200


# -----------------------------
# Moderation
# -----------------------------
@admin_bp.post("/seller-applications/<int:application_id>/review")
def review_seller_application(application_id: int):
    data = _body()
    result = admin.review_seller_application(
        current_user_id(),
        application_id,
        (data.get("action") or "").strip().lower(),
        reason=data.get("reason") or "",
    )
    return jsonify({"ok": True, **result}), 200


@admin_bp.post("/products/<int:product_id>/moderate")
def moderate_product(product_id: int):
    data = _body()
    product = admin.moderate_product(
        current_user_id(),
        product_id,
        (data.get("action") or "").strip().lower(),
        notes=data.get("notes") or "",
    )
    return jsonify({"ok": True, "product": product}), 200


@admin_bp.post("/users/<int:user_id>/suspend")
def suspend_user(user_id: int):
    user = admin.suspend_user(current_user_id(), user_id, reason=_body().get("reason") or "")
    return jsonify({"ok": True, "user": user}), 200


@admin_bp.post("/users/<int:user_id>/unsuspend")
def unsuspend_user(user_id: int):
    user = admin.unsuspend_user(current_user_id(), user_id)
    return jsonify({"ok": True, "user": user}), 200


@admin_bp.get("/users/<int:user_id>/activity")
def user_activity(user_id: int):
    return jsonify({"ok": True, **admin.get_user_activity(current_user_id(), user_id)}), 200


# -----------------------------
# Disputes, audit, reconciliation
# -----------------------------
@admin_bp.get("/disputes")
def disputed_orders():
    return jsonify({"ok": True, "items": admin.get_disputed_orders(current_user_id())}), 200


@admin_bp.post("/orders/<int:order_id>/dispute")
def resolve_dispute(order_id: int):
    outcome = (_body().get("outcome") or "").strip().lower()
    order = disputes.resolve_dispute_manually(order_id, current_user_id(), outcome)
    return jsonify({"ok": True, "order": order}), 200


@admin_bp.get("/audit")
def audit_log():
    uid = current_user_id()
    verify_admin(uid)
    rows = admin.list_audit(
        uid,
        target_id=(request.args.get("target_id") or "").strip() or None,
        action=(request.args.get("action") or "").strip(),
        limit=_int_arg("limit", 200),
    )
    return jsonify({"ok": True, "items": rows}), 200


@admin_bp.post("/balances/reconcile")
def reconcile():
    verify_admin(current_user_id())
    limit = _int_arg("limit", 500)
    return jsonify({"ok": True, **reconcile_balances(limit=limit)}), 200


@admin_bp.get("/balances/anomalies")
def balance_anomalies():
    uid = current_user_id()
    verify_admin(uid)
    rows = admin.list_audit(uid, action="balance_anomaly", limit=_int_arg("limit", 200))
    return jsonify({"ok": True, "items": rows}), 200
