from __future__ import annotations

import hashlib
import hmac
import secrets


def compute_hmac_sha256(*, secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, received: str | None) -> bool:
    if not received:
        return False
    return secrets.compare_digest(expected, received.strip().lower())


def is_valid_payment_signature(
    *,
    key_secret: str,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str | None,
) -> bool:
    if not key_secret or not gateway_order_id or not gateway_payment_id:
        return False
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return _matches(compute_hmac_sha256(secret=key_secret, message=message), signature)


def is_valid_webhook_signature(*, webhook_secret: str, raw_body: bytes, signature: str | None) -> bool:
    if not webhook_secret:
        return False
    return _matches(compute_hmac_sha256(secret=webhook_secret, message=raw_body), signature)
