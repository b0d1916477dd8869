"""
verification.py — Shopify Webhook Signature Verification

Shopify signs every webhook with HMAC-SHA256 over the raw request body using
the shared secret and sends the base64 digest in `X-Shopify-Hmac-SHA256`.
Verification must run on the bytes exactly as received; re-serialized JSON
produces a different digest.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

HMAC_HEADER = "X-Shopify-Hmac-SHA256"

log = logging.getLogger(__name__)


def compute_signature(secret: str, body: bytes) -> str:
    """Returns the base64-encoded HMAC-SHA256 of `body` under `secret`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(secret: Optional[str], body: bytes, signature_header: Optional[str]) -> bool:
    """
    Checks a webhook signature in constant time.

    Args:
        secret (str): The shared webhook secret. An empty secret always fails.
        body (bytes): Raw request body.
        signature_header (str): Value of the `X-Shopify-Hmac-SHA256` header.

    Returns:
        bool: True if the signature matches the body.
    """
    if not secret:
        log.warning("Webhook secret not configured, rejecting webhook.")
        return False
    if not signature_header:
        log.warning("Webhook without HMAC header rejected.")
        return False

    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature_header.strip().encode("utf-8"))
