"""Security utilities for webhook signatures and store API keys.

WHAT:
    Centralizes Shopify webhook HMAC verification and API key generation.

WHY:
    - Order webhooks are only trusted when signed with the shared app secret
    - Store API keys are handed to storefront scripts and must be unguessable

REFERENCES:
    - https://shopify.dev/docs/apps/build/webhooks/subscribe/https#step-5-verify-the-webhook
"""

import base64
import hashlib
import hmac
import logging
import secrets
from typing import Optional

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "ftk"


def compute_webhook_signature(secret: str, request_body: bytes) -> str:
    """Return the base64 HMAC-SHA256 digest Shopify sends in X-Shopify-Hmac-SHA256."""
    return base64.b64encode(
        hmac.new(
            secret.encode("utf-8"),
            request_body,
            hashlib.sha256
        ).digest()
    ).decode("utf-8")


def verify_webhook_signature(secret: Optional[str], request_body: bytes, hmac_header: Optional[str]) -> bool:
    """Verify that a webhook request was signed with the shared secret.

    WHAT: Recomputes the digest over the exact raw body and compares it
    WHY: Prevent forged order notifications from being persisted

    Args:
        secret: Shared webhook secret (SHOPIFY_API_SECRET)
        request_body: Raw request body bytes
        hmac_header: X-Shopify-Hmac-SHA256 header value

    Returns:
        True if signature is valid, False otherwise
    """
    if not secret:
        logger.error("[WEBHOOK] SHOPIFY_API_SECRET not configured")
        return False

    if not hmac_header:
        logger.warning("[WEBHOOK] Missing HMAC header")
        return False

    computed_hmac = compute_webhook_signature(secret, request_body)

    # Constant-time comparison on bytes; str compare_digest rejects non-ASCII headers
    is_valid = hmac.compare_digest(
        computed_hmac.encode("utf-8"),
        hmac_header.encode("utf-8", "replace"),
    )

    if not is_valid:
        logger.warning("[WEBHOOK] Invalid HMAC signature")

    return is_valid


def generate_api_key() -> str:
    """Generate a new store API key (e.g. `ftk_3qF...`)."""
    return f"{API_KEY_PREFIX}_{secrets.token_urlsafe(32)}"
