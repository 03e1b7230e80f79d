"""Tests for configuration loading from environment variables and files."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from shopify_webhook.config import (
    WebhookSettings,
    clear_settings,
    get_settings,
    load_config_from_file,
)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep stray SHOPIFY_WEBHOOK_* variables and .env files out of the tests."""
    for key in list(os.environ):
        if key.startswith("SHOPIFY_WEBHOOK_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings()
    yield
    clear_settings()


class TestWebhookSettings:
    """Test WebhookSettings."""

    def test_default_values(self) -> None:
        """Test default values."""
        settings = WebhookSettings()
        assert settings.secret.get_secret_value() == ""
        assert settings.max_body_size == 1024 * 1024
        assert settings.forward_on_failure is False
        assert settings.paths == ["/"]
        assert settings.log_level == "info"

    def test_env_override_secret(self) -> None:
        """Test SHOPIFY_WEBHOOK_SECRET env var."""
        with patch.dict(os.environ, {"SHOPIFY_WEBHOOK_SECRET": "abc123"}):
            settings = WebhookSettings()
            assert settings.secret.get_secret_value() == "abc123"

    def test_secret_hidden_in_repr(self) -> None:
        """Test the secret is masked."""
        settings = WebhookSettings(secret="abc123")
        assert "abc123" not in repr(settings)
        assert "abc123" not in str(settings.model_dump())

    def test_env_override_max_body_size(self) -> None:
        """Test SHOPIFY_WEBHOOK_MAX_BODY_SIZE env var."""
        with patch.dict(os.environ, {"SHOPIFY_WEBHOOK_MAX_BODY_SIZE": "2048"}):
            assert WebhookSettings().max_body_size == 2048

    def test_env_override_forward_on_failure(self) -> None:
        """Test SHOPIFY_WEBHOOK_FORWARD_ON_FAILURE env var."""
        with patch.dict(os.environ, {"SHOPIFY_WEBHOOK_FORWARD_ON_FAILURE": "true"}):
            assert WebhookSettings().forward_on_failure is True

    def test_env_override_paths(self) -> None:
        """Test SHOPIFY_WEBHOOK_PATHS takes a JSON list."""
        with patch.dict(os.environ, {"SHOPIFY_WEBHOOK_PATHS": '["/webhooks/", "/hooks/"]'}):
            assert WebhookSettings().paths == ["/webhooks/", "/hooks/"]

    def test_negative_max_body_size_rejected(self) -> None:
        """Test validation of max_body_size."""
        with pytest.raises(ValueError):
            WebhookSettings(max_body_size=-1)

    def test_dotenv_file(self, tmp_path) -> None:
        """Test values are read from .env in the working directory."""
        (tmp_path / ".env").write_text("SHOPIFY_WEBHOOK_SECRET=from-dotenv\n")
        assert WebhookSettings().secret.get_secret_value() == "from-dotenv"


class TestGetSettings:
    """Test cached settings access."""

    def test_cached(self) -> None:
        """Test get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_clear_reloads_env(self) -> None:
        """Test clear_settings forces a reload."""
        first = get_settings()
        with patch.dict(os.environ, {"SHOPIFY_WEBHOOK_MAX_BODY_SIZE": "4096"}):
            clear_settings()
            second = get_settings()
        assert second is not first
        assert second.max_body_size == 4096


class TestConfigFiles:
    """Test YAML/TOML config loading."""

    def test_yaml(self, tmp_path) -> None:
        """Test loading a YAML file with a webhook section."""
        path = tmp_path / "webhook.yaml"
        path.write_text("webhook:\n  secret: yaml-secret\n  max_body_size: 512\n")

        settings = WebhookSettings.from_file(path)
        assert settings.secret.get_secret_value() == "yaml-secret"
        assert settings.max_body_size == 512

    def test_toml(self, tmp_path) -> None:
        """Test loading a flat TOML file."""
        path = tmp_path / "webhook.toml"
        path.write_text('secret = "toml-secret"\npaths = ["/webhooks/"]\n')

        settings = WebhookSettings.from_file(path)
        assert settings.secret.get_secret_value() == "toml-secret"
        assert settings.paths == ["/webhooks/"]

    def test_empty_yaml(self, tmp_path) -> None:
        """Test an empty YAML file yields an empty dict."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config_from_file(path) == {}

    def test_missing_file(self, tmp_path) -> None:
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        """Test unsupported extensions raise ValueError."""
        path = tmp_path / "webhook.ini"
        path.write_text("[webhook]\n")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        """Test invalid YAML raises ValueError."""
        path = tmp_path / "bad.yaml"
        path.write_text("webhook: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_from_file(path)

    def test_invalid_toml(self, tmp_path) -> None:
        """Test invalid TOML raises ValueError."""
        path = tmp_path / "bad.toml"
        path.write_text("secret = \n")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_config_from_file(path)

    def test_invalid_webhook_section(self, tmp_path) -> None:
        """Test a non-table webhook section is rejected."""
        path = tmp_path / "webhook.yaml"
        path.write_text("webhook: just-a-string\n")
        with pytest.raises(ValueError, match="Invalid webhook section"):
            WebhookSettings.from_file(path)

    def test_webhook_section_unwrapped(self, tmp_path) -> None:
        """Test the loader returns the webhook table itself."""
        path = tmp_path / "webhook.toml"
        path.write_text('[webhook]\nsecret = "s"\nforward_on_failure = true\n')
        assert load_config_from_file(path) == {"secret": "s", "forward_on_failure": True}

    def test_uppercase_extension(self, tmp_path) -> None:
        """Test extensions are matched case-insensitively."""
        path = tmp_path / "WEBHOOK.YML"
        path.write_text("secret: upper\n")
        assert load_config_from_file(path) == {"secret": "upper"}

    def test_top_level_list_rejected(self, tmp_path) -> None:
        """Test a YAML document that is not a mapping is rejected."""
        path = tmp_path / "webhook.yaml"
        path.write_text("- secret\n- other\n")
        with pytest.raises(ValueError, match="Invalid webhook section"):
            load_config_from_file(path)
