"""Bounded capture of webhook request bodies.

The gate needs the raw body bytes to check the signature, and the downstream
handler needs the very same bytes afterwards. aiohttp caches the payload on
the request the first time it is read, so ``request.read()``, ``text()`` and
``json()`` keep returning the full body from the start.

Example:
    request, body = await read_body(request, max_size=1024 * 1024)
    # ``request`` is what the next handler must receive
"""

from __future__ import annotations

import asyncio

from aiohttp import web
from aiohttp.http_exceptions import HttpProcessingError


class WebhookError(Exception):
    """Base class for errors raised while gating a webhook."""


class BodyTooLargeError(WebhookError):
    """Request body exceeds the configured limit."""

    def __init__(self, size: int | None, limit: int) -> None:
        self.size = size
        self.limit = limit
        if size is None:
            super().__init__(f"Request body exceeds {limit} bytes")
        else:
            super().__init__(f"Request body of {size} bytes exceeds {limit} bytes")


class BodyReadError(WebhookError):
    """The transport failed while the body was being read."""


def _effective_limit(max_size: int | None, app_limit: int) -> int | None:
    """Tighter of the gate's limit and the application's; 0 means no app limit."""
    if not app_limit:
        return max_size
    if max_size is None:
        return app_limit
    return min(max_size, app_limit)


async def read_body(
    request: web.Request,
    max_size: int | None,
) -> tuple[web.Request, bytes]:
    """Read the whole request body without taking it away from later readers.

    Args:
        request: The incoming request.
        max_size: Largest accepted body in bytes, or None for no limit of
            our own. The application's ``client_max_size`` always applies
            too; the gate only ever tightens it.

    Returns:
        Tuple of (request to pass downstream, body bytes). A body without a
        Content-Length is read through a clone carrying the limit; the clone
        shares the original payload and caches the bytes read here, so it is
        the one the downstream handler must receive.

    Raises:
        BodyTooLargeError: Declared or actual size is above the limit.
        BodyReadError: The connection failed before the body was complete.
    """
    app_limit = request.client_max_size
    limit = _effective_limit(max_size, app_limit)

    if max_size is not None:
        declared = request.content_length
        if declared is not None and declared > max_size:
            raise BodyTooLargeError(declared, max_size)
        if declared is None:
            # Headroom so a body exactly at the limit still reads; the length check below enforces it.
            clone_limit = max_size + 1
            if app_limit:
                clone_limit = min(clone_limit, app_limit)
            request = request.clone(client_max_size=clone_limit)

    try:
        body = await request.read()
    except web.HTTPRequestEntityTooLarge as e:
        raise BodyTooLargeError(None, limit if limit is not None else app_limit) from e
    except (OSError, asyncio.IncompleteReadError, HttpProcessingError) as e:
        raise BodyReadError(f"Failed to read request body: {e}") from e

    if limit is not None and len(body) > limit:
        raise BodyTooLargeError(len(body), limit)

    return request, body
