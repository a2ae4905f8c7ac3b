from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from settlement.errors import SignatureVerificationError

webhooks_bp = Blueprint("webhooks_bp", __name__, url_prefix="/api/webhooks")

SIGNATURE_HEADER = "Processor-Signature"


@webhooks_bp.post("/processor")
def processor_webhook():
    """Inbound payment processor events.

    2xx for every accepted event, including duplicates and types we do not act on.
    """
    reconciler = current_app.extensions["settlement_reconciler"]
    raw = request.get_data() or b""
    try:
        result = reconciler.handle(raw, request.headers.get(SIGNATURE_HEADER))
    except SignatureVerificationError as e:
        current_app.logger.warning("processor webhook rejected: %s", e.message)
        raise
    return jsonify(result.to_dict()), 200
