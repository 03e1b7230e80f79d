"""Shopify Webhook Signature Verification.

Recomputes the HMAC-SHA256 digest of a webhook body with the app's shared
secret and compares it, in constant time, with the lowercase hex digest the
sender put in the X-Shopify-Hmac-Sha256 header.

A request without an X-Shopify-Shop-Domain value is rejected before any
digest is computed. The shop domain is a presence check only; it is not part
of the signed material.

Usage:
    from shopify_webhook import WebhookVerifier, verify_request

    # One-shot check
    ok = verify_request(secret, shop, signature, body)

    # Configured once, reused for every request
    verifier = WebhookVerifier(secret="abc123")
    result = verifier.verify(shop=shop, signature=signature, body=body)
    if not result:
        print(f"Verification failed: {result.error}")
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"


class VerificationStatus(Enum):
    """Status of webhook signature verification."""

    VALID = "valid"
    MISSING_SHOP = "missing_shop"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE = "invalid_signature"
    BODY_TOO_LARGE = "body_too_large"
    BODY_READ_ERROR = "body_read_error"


@dataclass
class VerificationResult:
    """Result of webhook signature verification."""

    valid: bool
    """Whether the request is authentic."""

    status: VerificationStatus
    """Detailed verification status."""

    error: str | None = None
    """Error message if verification failed."""

    shop: str | None = None
    """Shop domain claimed by the sender."""

    def __bool__(self) -> bool:
        return self.valid


def _key_bytes(secret: str | bytes) -> bytes:
    if isinstance(secret, bytes):
        return secret
    return secret.encode("utf-8")


def compute_signature(secret: str | bytes, body: bytes) -> str:
    """Compute the lowercase hex HMAC-SHA256 of a webhook body.

    Args:
        secret: The app's shared secret.
        body: The raw request body bytes.

    Returns:
        64 character hexadecimal digest.
    """
    return hmac.new(_key_bytes(secret), body, hashlib.sha256).hexdigest()


def _constant_time_compare(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def verify_request(
    secret: str | bytes,
    shop: str,
    signature: str,
    body: bytes,
) -> bool:
    """Check that a webhook body was signed with ``secret``.

    Returns False without computing a digest when ``shop`` is empty.
    Malformed or missing signatures are never an error, only False.
    """
    if not shop:
        return False

    expected = compute_signature(secret, body)
    return _constant_time_compare(expected, signature or "")


def signed_headers(secret: str | bytes, shop: str, body: bytes) -> dict[str, str]:
    """Build the headers a sender attaches to a signed webhook."""
    return {
        HMAC_HEADER: compute_signature(secret, body),
        SHOP_DOMAIN_HEADER: shop,
    }


class WebhookVerifier:
    """Shopify webhook verifier bound to one shared secret.

    The secret is fixed at construction and never mutated, so a single
    instance can serve any number of concurrent requests.
    """

    def __init__(self, secret: str | bytes) -> None:
        """Initialize the webhook verifier.

        Args:
            secret: The shared secret of the Shopify app.
        """
        self._key = _key_bytes(secret)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(secret=<hidden>)"

    @property
    def has_secret(self) -> bool:
        return bool(self._key)

    def sign(self, body: bytes) -> str:
        """Compute the signature a sender would attach to ``body``."""
        return compute_signature(self._key, body)

    def verify(
        self,
        shop: str | None,
        signature: str | None,
        body: bytes,
    ) -> VerificationResult:
        """Verify a webhook request.

        Args:
            shop: Value of the X-Shopify-Shop-Domain header.
            signature: Value of the X-Shopify-Hmac-Sha256 header.
            body: The raw request body bytes.

        Returns:
            VerificationResult with status and details.
        """
        if not shop:
            return VerificationResult(
                valid=False,
                status=VerificationStatus.MISSING_SHOP,
                error=f"Missing {SHOP_DOMAIN_HEADER} header",
            )

        if not signature:
            return VerificationResult(
                valid=False,
                status=VerificationStatus.MISSING_SIGNATURE,
                error=f"Missing {HMAC_HEADER} header",
                shop=shop,
            )

        if verify_request(self._key, shop, signature, body):
            return VerificationResult(
                valid=True,
                status=VerificationStatus.VALID,
                shop=shop,
            )

        return VerificationResult(
            valid=False,
            status=VerificationStatus.INVALID_SIGNATURE,
            error="Signature mismatch",
            shop=shop,
        )
