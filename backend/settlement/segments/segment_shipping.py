from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from settlement.auth import current_user_id
from settlement.errors import SignatureVerificationError, ValidationFailed
from settlement.services import shipping
from settlement.utils.signatures import verify_hmac_hex

shipping_bp = Blueprint("shipping_bp", __name__, url_prefix="/api/shipping")


def _parse_datetime(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationFailed("estimated_delivery must be an ISO-8601 timestamp")


@shipping_bp.post("/manual-ship")
@login_required
def manual_ship():
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id") or data.get("orderId")
    tracking_number = (data.get("tracking_number") or data.get("trackingNumber") or "").strip()
    if not order_id or not tracking_number:
        raise ValidationFailed("order_id and tracking_number are required")
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        raise ValidationFailed("order_id must be an integer")

    result = shipping.mark_shipped(
        order_id,
        current_user_id(),
        tracking_number,
        carrier=data.get("carrier") or shipping.DEFAULT_CARRIER,
        estimated_delivery=_parse_datetime(data.get("estimated_delivery") or data.get("estimatedDelivery")),
    )
    message = "Tracking information updated" if result["updated"] else "Order marked as shipped"
    return jsonify({"ok": True, "message": message, **result}), 200


@shipping_bp.post("/webhook")
def carrier_webhook():
    raw = request.get_data() or b""
    secret = (current_app.config.get("SHIPPING_WEBHOOK_SECRET") or "").strip()
    if secret and not verify_hmac_hex(raw, request.headers.get("Sendcloud-Signature"), secret):
        raise SignatureVerificationError("invalid carrier signature")
    payload = request.get_json(silent=True) or {}
    return jsonify(shipping.handle_carrier_event(payload)), 200
