"""Configuration with environment variable support.

All settings can be configured via environment variables with the
SHOPIFY_WEBHOOK_ prefix.
Example: SHOPIFY_WEBHOOK_MAX_BODY_SIZE=262144 caps bodies at 256KB.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_yaml(content: str) -> Any:
    try:
        return yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML: {e}") from e


def _parse_toml(content: str) -> Any:
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML: {e}") from e


_PARSERS = {".yaml": _parse_yaml, ".yml": _parse_yaml, ".toml": _parse_toml}


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Read the webhook settings stored in a YAML or TOML file.

    Settings may sit at the top level or under a ``webhook`` table; either
    way the returned dict holds only the settings themselves.

    Raises:
        FileNotFoundError: The file does not exist.
        ValueError: Unknown extension, unparsable content, or a ``webhook``
            entry that is not a table.
    """
    path = Path(path)
    parse = _PARSERS.get(path.suffix.lower())
    if parse is None:
        raise ValueError(f"Unsupported config format: {path.suffix or path.name}")

    # FileNotFoundError propagates as-is.
    data = parse(path.read_text(encoding="utf-8"))

    section = data.get("webhook", data) if isinstance(data, dict) else data
    if not isinstance(section, dict):
        raise ValueError(f"Invalid webhook section in {path}")
    return section


class WebhookSettings(BaseSettings):
    """Settings for the webhook verification gate.

    Environment variables:
    - SHOPIFY_WEBHOOK_SECRET: Shared secret of the Shopify app
    - SHOPIFY_WEBHOOK_MAX_BODY_SIZE: Largest accepted body (bytes)
    - SHOPIFY_WEBHOOK_FORWARD_ON_FAILURE: Run the handler after a failed check
    - SHOPIFY_WEBHOOK_PATHS: JSON list of guarded path prefixes
    - SHOPIFY_WEBHOOK_LOG_LEVEL: debug, info, warning or error
    """

    model_config = SettingsConfigDict(
        env_prefix="SHOPIFY_WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    secret: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret of the Shopify app used as the HMAC key.",
    )
    max_body_size: int | None = Field(
        default=1024 * 1024,
        ge=0,
        description="Maximum webhook body size (bytes). Default 1MB. None disables the cap.",
    )
    forward_on_failure: bool = Field(
        default=False,
        description="Invoke the downstream handler even when verification fails.",
    )
    paths: list[str] = Field(
        default_factory=lambda: ["/"],
        description="Path prefixes guarded by the application-level middleware.",
    )
    log_level: str = Field(
        default="info",
        description="Log level (debug, info, warning, error).",
    )

    @classmethod
    def from_file(cls, path: str | Path) -> WebhookSettings:
        """Create settings from a YAML or TOML file.

        Values may sit at the top level or under a ``webhook`` table.
        Environment variables are still read for anything the file omits.
        """
        return cls(**load_config_from_file(path))


_settings: WebhookSettings | None = None


def get_settings() -> WebhookSettings:
    """Get the global settings instance.

    Created from the environment once and cached for the lifetime of the
    process. Call clear_settings() first to reload (e.g., in tests).
    """
    global _settings
    if _settings is None:
        _settings = WebhookSettings()
    return _settings


def clear_settings() -> None:
    """Clear the cached settings."""
    global _settings
    _settings = None
