from __future__ import annotations

from stepcoin.core.logging import REDACTED, redact_sensitive_fields


def test_redact_sensitive_fields_masks_secrets_only() -> None:
    event = {
        "event": "payment_verify_rejected",
        "signature": "abc123",
        "key_secret": "rzp_secret",
        "payment_intent_id": "6f1c",
    }

    result = redact_sensitive_fields(None, "info", event)

    assert result["signature"] == REDACTED
    assert result["key_secret"] == REDACTED
    assert result["payment_intent_id"] == "6f1c"
    assert result["event"] == "payment_verify_rejected"
