"""Error taxonomy for settlement processing and operator-facing actions.

Every error carries a stable ``code`` (returned to API callers) and the HTTP
``status_code`` the blueprints answer with.
"""

from __future__ import annotations


class SettlementError(Exception):
    code = "ERROR"
    status_code = 500

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"ok": False, "error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# Fatal: never retried by the event source
class SignatureVerificationError(SettlementError):
    code = "INVALID_SIGNATURE"
    status_code = 400


class MalformedEventError(SettlementError):
    code = "MALFORMED_EVENT"
    status_code = 400


class WebhookNotConfigured(SettlementError):
    code = "NOT_CONFIGURED"
    status_code = 500


# Transient: the event source should redeliver
class RetryableEventError(SettlementError):
    code = "RETRY"
    status_code = 503


# Business conflicts surfaced to a waiting human
class Forbidden(SettlementError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(SettlementError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidState(SettlementError):
    code = "INVALID_STATE"
    status_code = 409


class InsufficientFunds(SettlementError):
    code = "INSUFFICIENT_FUNDS"
    status_code = 422


class ValidationFailed(SettlementError):
    code = "VALIDATION_FAILED"
    status_code = 400
