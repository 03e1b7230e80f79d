"""Shopify Webhook Verification.

Authenticates inbound Shopify webhooks before they reach application code.
The sender signs the raw body with HMAC-SHA256 using the app's shared
secret; the gate recomputes the digest, compares it in constant time, and
either rejects the request with 400 or hands it, body intact, to the next
handler.

Headers:
- X-Shopify-Hmac-Sha256: lowercase hex HMAC-SHA256 of the body
- X-Shopify-Shop-Domain: sending shop, must be present

Usage:
    from aiohttp import web
    from shopify_webhook import webhook_verify

    verify = webhook_verify("your-app-secret")

    async def handle(request: web.Request) -> web.Response:
        payload = await request.json()  # same bytes the gate verified
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_post("/webhooks", verify(handle))

Without a web framework:
    from shopify_webhook import verify_request

    if verify_request(secret, shop, signature, body):
        process(body)
"""

from shopify_webhook.body import (
    BodyReadError,
    BodyTooLargeError,
    WebhookError,
    read_body,
)
from shopify_webhook.config import WebhookSettings, get_settings
from shopify_webhook.middleware import (
    INVALID_SIGNATURE_MESSAGE,
    Handler,
    Middleware,
    WebhookGate,
    WebhookVerifyMiddleware,
    create_webhook_middleware,
    webhook_verify,
)
from shopify_webhook.verifier import (
    HMAC_HEADER,
    SHOP_DOMAIN_HEADER,
    VerificationResult,
    VerificationStatus,
    WebhookVerifier,
    compute_signature,
    signed_headers,
    verify_request,
)

__version__ = "0.1.0"

__all__ = [
    # Verification
    "WebhookVerifier",
    "VerificationResult",
    "VerificationStatus",
    "compute_signature",
    "signed_headers",
    "verify_request",
    # Gate
    "Handler",
    "Middleware",
    "WebhookGate",
    "WebhookVerifyMiddleware",
    "create_webhook_middleware",
    "webhook_verify",
    # Body capture
    "read_body",
    "WebhookError",
    "BodyReadError",
    "BodyTooLargeError",
    # Settings
    "WebhookSettings",
    "get_settings",
    # Constants
    "HMAC_HEADER",
    "SHOP_DOMAIN_HEADER",
    "INVALID_SIGNATURE_MESSAGE",
]
