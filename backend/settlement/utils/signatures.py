"""Signed payload verification for inbound webhooks.

Processor header format: ``t=<unix seconds>,v1=<hex digest>`` where the
digest is HMAC-SHA256 over ``"<t>." + raw body``. Several ``v1`` entries may
be present while the processor rotates secrets.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Optional

from settlement.errors import SignatureVerificationError, WebhookNotConfigured


def _parse_header(header: str) -> tuple[Optional[int], list[str]]:
    timestamp = None
    signatures = []
    for part in (header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1" and value:
            signatures.append(value.strip())
    return timestamp, signatures


def compute_signature(secret: str, timestamp: int, raw_body: bytes) -> str:
    signed = f"{int(timestamp)}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def sign_payload(secret: str, raw_body: bytes, timestamp: Optional[int] = None) -> str:
    """Build a header value for ``raw_body``; used by tooling and tests."""
    ts = int(timestamp if timestamp is not None else time.time())
    return f"t={ts},v1={compute_signature(secret, ts, raw_body)}"


def verify_processor_signature(
    raw_body: bytes,
    header: Optional[str],
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> None:
    if not secret:
        raise WebhookNotConfigured("processor webhook secret is not configured")
    if not header:
        raise SignatureVerificationError("missing signature header")

    timestamp, candidates = _parse_header(header)
    if timestamp is None or not candidates:
        raise SignatureVerificationError("unparseable signature header")

    current = int(now if now is not None else time.time())
    if tolerance_seconds and abs(current - timestamp) > int(tolerance_seconds):
        raise SignatureVerificationError("signature timestamp outside tolerance")

    expected = compute_signature(secret, timestamp, raw_body)
    if not any(hmac.compare_digest(expected, c) for c in candidates):
        raise SignatureVerificationError("signature mismatch")


def verify_hmac_hex(raw_body: bytes, header: Optional[str], secret: str) -> bool:
    """Plain HMAC-SHA256 hex digest over the body (carrier callbacks)."""
    if not secret or not header:
        return False
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, header.strip())
