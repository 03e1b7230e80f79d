"""shopify-webhook CLI - sign, check and locally serve Shopify webhooks."""

from __future__ import annotations

import json
import logging
import sys

import click
import structlog
from rich.console import Console
from rich.table import Table

from shopify_webhook.config import WebhookSettings, get_settings
from shopify_webhook.verifier import (
    HMAC_HEADER,
    SHOP_DOMAIN_HEADER,
    WebhookVerifier,
)

console = Console()


def configure_logging(log_level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
    )


def _require_secret(secret: str | None) -> str:
    if secret is None:
        secret = get_settings().secret.get_secret_value()
    if not secret:
        console.print("[red]No secret given.[/red] Use --secret or SHOPIFY_WEBHOOK_SECRET.")
        sys.exit(2)
    return secret


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: SHOPIFY_WEBHOOK_LOG_LEVEL or info)",
)
def main(log_level: str | None):
    """shopify-webhook - verify Shopify webhook signatures."""
    configure_logging(log_level or get_settings().log_level)


@main.command()
@click.argument("payload", type=click.File("rb"), default="-")
@click.option("--secret", envvar="SHOPIFY_WEBHOOK_SECRET", help="Shared secret of the app")
@click.option("--shop", help="Also print the headers for this shop domain")
def sign(payload, secret: str | None, shop: str | None):
    """Print the signature of PAYLOAD (a file, or stdin)."""
    verifier = WebhookVerifier(_require_secret(secret))
    signature = verifier.sign(payload.read())

    if shop is None:
        click.echo(signature)
        return

    click.echo(f"{HMAC_HEADER}: {signature}")
    click.echo(f"{SHOP_DOMAIN_HEADER}: {shop}")


@main.command()
@click.argument("payload", type=click.File("rb"), default="-")
@click.option("--secret", envvar="SHOPIFY_WEBHOOK_SECRET", help="Shared secret of the app")
@click.option("--signature", required=True, help="Value of the X-Shopify-Hmac-Sha256 header")
@click.option("--shop", default="cli.myshopify.com", help="Value of the X-Shopify-Shop-Domain header")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def verify(payload, secret: str | None, signature: str, shop: str, json_output: bool):
    """Check SIGNATURE against PAYLOAD. Exits 1 when it does not match."""
    verifier = WebhookVerifier(_require_secret(secret))
    result = verifier.verify(shop, signature, payload.read())

    if json_output:
        click.echo(
            json.dumps(
                {"valid": result.valid, "status": result.status.value, "error": result.error}
            )
        )
    elif result:
        console.print("[green]Valid webhook signature[/green]")
    else:
        console.print(f"[red]Invalid:[/red] {result.error} ({result.status.value})")

    if not result:
        sys.exit(1)


@main.command()
@click.option("--secret", envvar="SHOPIFY_WEBHOOK_SECRET", help="Shared secret of the app")
@click.option("--host", default="127.0.0.1", help="Address to bind")
@click.option("--port", "-p", type=int, default=8080, help="Port to bind")
@click.option("--path", "route", default="/webhooks", help="Path the echo handler listens on")
@click.option(
    "--forward-on-failure",
    is_flag=True,
    help="Run the handler even after a failed check (the client still gets 400)",
)
def serve(secret: str | None, host: str, port: int, route: str, forward_on_failure: bool):
    """Run a local echo server behind the verification gate."""
    from aiohttp import web

    from shopify_webhook.middleware import SHOP_REQUEST_KEY, webhook_verify

    settings = get_settings()
    verify_webhook = webhook_verify(
        _require_secret(secret),
        max_body_size=settings.max_body_size,
        forward_on_failure=forward_on_failure or settings.forward_on_failure,
    )
    log = structlog.get_logger()

    async def echo(request: web.Request) -> web.Response:
        body = await request.read()
        log.info("Webhook received", shop=request.get(SHOP_REQUEST_KEY), size=len(body))
        return web.Response(body=body, content_type=request.content_type)

    app = web.Application()
    app.router.add_post(route, verify_webhook(echo))

    console.print(f"Listening on http://{host}:{port}{route}", style="yellow")
    web.run_app(app, host=host, port=port, print=None)


@main.command("config")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def config_show(json_output: bool):
    """Show the effective settings (secret hidden)."""
    settings: WebhookSettings = get_settings()
    display = settings.model_dump(mode="json")
    display["secret"] = "<set>" if settings.secret.get_secret_value() else "<empty>"

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    table = Table(title="Webhook Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in display.items():
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    main()
