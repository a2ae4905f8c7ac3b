"""
Tests for processor signature verification.
"""

import time

import pytest

from settlement.errors import SignatureVerificationError, WebhookNotConfigured
from settlement.utils.signatures import compute_signature, sign_payload, verify_hmac_hex, verify_processor_signature

SECRET = "whsec_unit"
BODY = b'{"id":"evt_1","type":"payment_intent.succeeded"}'


@pytest.mark.security
class TestProcessorSignature:
    """Tests for the t=...,v1=... header scheme."""

    def test_valid_signature(self):
        """Test a freshly signed body verifies."""
        verify_processor_signature(BODY, sign_payload(SECRET, BODY), SECRET)

    def test_tampered_body_rejected(self):
        """Test that changing one byte breaks the signature."""
        header = sign_payload(SECRET, BODY)
        with pytest.raises(SignatureVerificationError):
            verify_processor_signature(BODY.replace(b"evt_1", b"evt_2"), header, SECRET)

    def test_wrong_secret_rejected(self):
        """Test a body signed with another secret."""
        with pytest.raises(SignatureVerificationError):
            verify_processor_signature(BODY, sign_payload("whsec_other", BODY), SECRET)

    def test_stale_timestamp_rejected(self):
        """Test replays older than the tolerance."""
        old = int(time.time()) - 301
        with pytest.raises(SignatureVerificationError) as exc_info:
            verify_processor_signature(BODY, sign_payload(SECRET, BODY, timestamp=old), SECRET, tolerance_seconds=300)
        assert "tolerance" in exc_info.value.message

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=deadbeef", "t=1700000000"])
    def test_missing_or_unparseable_header(self, header):
        """Test headers that cannot be verified."""
        with pytest.raises(SignatureVerificationError):
            verify_processor_signature(BODY, header, SECRET)

    def test_any_matching_v1_is_accepted(self):
        """Test rotation: one of several v1 entries matches."""
        ts = int(time.time())
        good = compute_signature(SECRET, ts, BODY)
        header = f"t={ts},v1={'0' * 64},v1={good}"
        verify_processor_signature(BODY, header, SECRET)

    def test_missing_secret_is_configuration_error(self):
        """Test that an unconfigured secret is not treated as a bad signature."""
        with pytest.raises(WebhookNotConfigured):
            verify_processor_signature(BODY, sign_payload(SECRET, BODY), "")

    def test_error_codes(self):
        """Test the codes and HTTP statuses of signature errors."""
        assert SignatureVerificationError.code == "INVALID_SIGNATURE"
        assert SignatureVerificationError.status_code == 400
        assert WebhookNotConfigured.status_code == 500


@pytest.mark.security
class TestCarrierSignature:
    """Tests for plain HMAC body signatures."""

    def test_plain_hmac(self):
        """Test the carrier callback digest."""
        import hashlib
        import hmac

        digest = hmac.new(b"carrier", BODY, hashlib.sha256).hexdigest()
        assert verify_hmac_hex(BODY, digest, "carrier") is True
        assert verify_hmac_hex(BODY, digest, "other") is False
        assert verify_hmac_hex(BODY, None, "carrier") is False
