"""Tests for eventsync.toml loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from eventsync.config import ConfigError, load_config, resolve_env_vars

pytestmark = pytest.mark.unit

MINIMAL = """
[service]
name = "eventsync"
port = 40300
base_url = "https://forum.example.com/"
"""

FULL = """
[service]
name = "events"
port = 40301
base_url = "https://forum.example.com"

[service.db]
name = "events_db"

[service.logging]
level = "debug"
format = "json"
log_root = "logs"

[webhook]
secret = "${EVENTSYNC_TEST_SECRET}"
secret_header = "X-BEVY-SECRET"
category_id = 12
uncategorized_category_id = 3
system_user_id = -2
platform_name = "Bevy"
tag_rules = "has-venue,venue_name"
max_link_attempts = 5
link_retry_base_delay_s = 0.2
"""


def _write(tmp_path: Path, content: str) -> Path:
    (tmp_path / "eventsync.toml").write_text(content)
    return tmp_path


class TestLoadConfig:
    def test_minimal_config_uses_defaults(self, tmp_path):
        config = load_config(_write(tmp_path, MINIMAL))

        assert config.name == "eventsync"
        assert config.port == 40300
        assert config.base_url == "https://forum.example.com"
        assert config.db_name == "eventsync"
        assert config.logging.format == "text"
        assert config.webhook.secret == ""
        assert not config.webhook.is_configured
        assert config.webhook.secret_header == "X-Webhook-Secret"
        assert config.webhook.category_id is None
        assert config.webhook.max_link_attempts == 3

    def test_full_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EVENTSYNC_TEST_SECRET", "s3cret")

        config = load_config(_write(tmp_path, FULL))

        assert config.db_name == "events_db"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.logging.log_root == "logs"
        webhook = config.webhook
        assert webhook.secret == "s3cret"
        assert webhook.is_configured
        assert webhook.secret_header == "X-BEVY-SECRET"
        assert webhook.category_id == 12
        assert webhook.uncategorized_category_id == 3
        assert webhook.system_user_id == -2
        assert webhook.platform_name == "Bevy"
        assert webhook.tag_rules == "has-venue,venue_name"
        assert webhook.max_link_attempts == 5
        assert webhook.link_retry_base_delay_s == 0.2

    def test_missing_env_var_is_reported(self, tmp_path, monkeypatch):
        monkeypatch.delenv("EVENTSYNC_TEST_SECRET", raising=False)

        with pytest.raises(ConfigError, match="EVENTSYNC_TEST_SECRET"):
            load_config(_write(tmp_path, FULL))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path)

    def test_invalid_toml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(_write(tmp_path, "[service\nname="))

    def test_missing_service_section(self, tmp_path):
        with pytest.raises(ConfigError, match=r"\[service\]"):
            load_config(_write(tmp_path, "[webhook]\nsecret = 'x'\n"))

    def test_missing_base_url(self, tmp_path):
        with pytest.raises(ConfigError, match="base_url"):
            load_config(_write(tmp_path, "[service]\nport = 1\n"))

    @pytest.mark.parametrize("attempts", [0, -1])
    def test_non_positive_link_attempts(self, tmp_path, attempts):
        content = MINIMAL + f"\n[webhook]\nmax_link_attempts = {attempts}\n"
        with pytest.raises(ConfigError, match="max_link_attempts"):
            load_config(_write(tmp_path, content))

    def test_bad_logging_format(self, tmp_path):
        content = MINIMAL + '\n[service.logging]\nformat = "xml"\n'
        with pytest.raises(ConfigError, match="format"):
            load_config(_write(tmp_path, content))


class TestResolveEnvVars:
    def test_resolves_nested_values(self, monkeypatch):
        monkeypatch.setenv("A_VAR", "alpha")
        resolved = resolve_env_vars({"x": ["${A_VAR}-1", 2], "y": {"z": "${A_VAR}"}, "n": None})
        assert resolved == {"x": ["alpha-1", 2], "y": {"z": "alpha"}, "n": None}

    def test_reports_every_missing_variable(self, monkeypatch):
        monkeypatch.delenv("MISSING_ONE", raising=False)
        monkeypatch.delenv("MISSING_TWO", raising=False)
        with pytest.raises(ConfigError, match="MISSING_ONE, MISSING_TWO"):
            resolve_env_vars("${MISSING_ONE}:${MISSING_TWO}")
