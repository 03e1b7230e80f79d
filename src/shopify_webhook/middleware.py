"""Webhook verification gate for aiohttp handlers.

``webhook_verify(secret)`` returns a middleware: a callable that takes an
aiohttp handler and returns a new handler that only lets authentic Shopify
webhooks through. The body is captured for verification and stays readable
by the wrapped handler.

Example:
    from aiohttp import web
    from shopify_webhook import webhook_verify

    verify = webhook_verify("abc123")

    async def orders_create(request: web.Request) -> web.Response:
        order = await request.json()
        ...

    app = web.Application()
    app.router.add_post("/webhooks/orders", verify(orders_create))

Application-wide alternative:
    gate = WebhookVerifyMiddleware("abc123", paths=["/webhooks/"])
    app = web.Application(middlewares=[gate.middleware])
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

import structlog
from aiohttp import web

from shopify_webhook.body import BodyReadError, BodyTooLargeError, read_body
from shopify_webhook.verifier import (
    HMAC_HEADER,
    SHOP_DOMAIN_HEADER,
    VerificationResult,
    VerificationStatus,
    WebhookVerifier,
)

if TYPE_CHECKING:
    from shopify_webhook.config import WebhookSettings

logger = structlog.get_logger()

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
Middleware = Callable[[Handler], Handler]

INVALID_SIGNATURE_MESSAGE = "Invalid webhook signature"
BODY_TOO_LARGE_MESSAGE = "Request body too large"
BODY_READ_ERROR_MESSAGE = "Unable to read request body"

DEFAULT_MAX_BODY_SIZE = 1024 * 1024

SHOP_REQUEST_KEY = web.RequestKey("shopify_shop", str)


def _error_response(message: str, status: int) -> web.Response:
    """Plain text error body ending in a newline."""
    return web.Response(text=f"{message}\n", status=status, content_type="text/plain")


class WebhookGate:
    """Verifies one request at a time against a fixed secret.

    Holds no per-request state; one instance serves every request of the
    handlers it guards.
    """

    def __init__(
        self,
        secret: str | bytes,
        *,
        max_body_size: int | None = DEFAULT_MAX_BODY_SIZE,
        forward_on_failure: bool = False,
    ) -> None:
        """Initialize the gate.

        Args:
            secret: Shared secret of the Shopify app.
            max_body_size: Largest accepted body in bytes, None for no limit.
            forward_on_failure: Still run the downstream handler after a
                signature failure. The client receives the 400 either way.
        """
        self.verifier = WebhookVerifier(secret)
        self.max_body_size = max_body_size
        self.forward_on_failure = forward_on_failure

        if not self.verifier.has_secret:
            logger.warning("Webhook secret is empty, every request will be rejected")

    async def handle(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        shop = request.headers.get(SHOP_DOMAIN_HEADER, "")
        signature = request.headers.get(HMAC_HEADER, "")

        try:
            request, body = await read_body(request, self.max_body_size)
        except BodyTooLargeError as e:
            logger.warning(
                "Webhook body rejected",
                shop=shop,
                status=VerificationStatus.BODY_TOO_LARGE.value,
                path=request.path,
                limit=e.limit,
            )
            return _error_response(BODY_TOO_LARGE_MESSAGE, 413)
        except BodyReadError as e:
            logger.warning(
                "Webhook body unreadable",
                shop=shop,
                status=VerificationStatus.BODY_READ_ERROR.value,
                path=request.path,
                error=str(e),
            )
            return _error_response(BODY_READ_ERROR_MESSAGE, 400)

        result = self.verifier.verify(shop, signature, body)
        if not result:
            return await self._reject(request, handler, result)

        logger.debug("Webhook verified", shop=shop, path=request.path, size=len(body))
        request[SHOP_REQUEST_KEY] = shop
        return await handler(request)

    async def _reject(
        self,
        request: web.Request,
        handler: Handler,
        result: VerificationResult,
    ) -> web.StreamResponse:
        logger.warning(
            "Webhook verification failed",
            shop=result.shop,
            status=result.status.value,
            path=request.path,
            forwarded=self.forward_on_failure,
        )
        rejection = _error_response(INVALID_SIGNATURE_MESSAGE, 400)
        if self.forward_on_failure:
            # The rejection is already decided; whatever the handler returns or raises is dropped.
            try:
                await handler(request)
            except Exception:
                logger.warning(
                    "Forwarded handler failed after rejection",
                    shop=result.shop,
                    path=request.path,
                    exc_info=True,
                )
        return rejection

    def wrap(self, handler: Handler) -> Handler:
        """Return ``handler`` guarded by this gate."""

        @functools.wraps(handler)
        async def verified_handler(request: web.Request) -> web.StreamResponse:
            return await self.handle(request, handler)

        return verified_handler


def webhook_verify(
    secret: str | bytes,
    *,
    max_body_size: int | None = DEFAULT_MAX_BODY_SIZE,
    forward_on_failure: bool = False,
) -> Middleware:
    """Configure a webhook gate once and get back a handler wrapper.

    Example: ``webhook_verify("abc123")(another_handler)``.

    Wrappers compose by plain application, so this gate can sit in front of
    any handler, including one already wrapped by other middleware.
    """
    gate = WebhookGate(
        secret,
        max_body_size=max_body_size,
        forward_on_failure=forward_on_failure,
    )
    return gate.wrap


class WebhookVerifyMiddleware:
    """Application-level variant of the gate.

    Requests whose path does not start with one of ``paths`` pass through
    untouched, so the same application can serve other routes.
    """

    def __init__(
        self,
        secret: str | bytes,
        *,
        paths: Sequence[str] = ("/",),
        max_body_size: int | None = DEFAULT_MAX_BODY_SIZE,
        forward_on_failure: bool = False,
    ) -> None:
        self.paths = tuple(paths)
        self._gate = WebhookGate(
            secret,
            max_body_size=max_body_size,
            forward_on_failure=forward_on_failure,
        )

    def applies_to(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.paths)

    @web.middleware
    async def middleware(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        if not self.applies_to(request.path):
            return await handler(request)
        return await self._gate.handle(request, handler)


def create_webhook_middleware(settings: WebhookSettings) -> WebhookVerifyMiddleware:
    """Build the application-level gate from settings."""
    return WebhookVerifyMiddleware(
        settings.secret.get_secret_value(),
        paths=settings.paths,
        max_body_size=settings.max_body_size,
        forward_on_failure=settings.forward_on_failure,
    )
