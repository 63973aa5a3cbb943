"""Service configuration loading and validation.

Reads eventsync.toml from a config directory, parses all sections, and
returns a validated ServiceConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from eventsync.links import DEFAULT_BASE_DELAY_S, DEFAULT_MAX_ATTEMPTS

CONFIG_FILENAME = "eventsync.toml"
DEFAULT_SECRET_HEADER = "X-Webhook-Secret"
DEFAULT_PLATFORM_NAME = "the event platform"

# Pattern matching ${VAR_NAME}: alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_FORMATS = ("text", "json")


class ConfigError(Exception):
    """Raised when service configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [service.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class WebhookConfig:
    """Webhook configuration from the [webhook] section.

    An empty ``secret`` leaves the endpoint answering 503 until one is set.
    ``tag_rules`` is the raw ``tag,expression|tag,expression`` rule string.
    """

    secret: str = ""
    secret_header: str = DEFAULT_SECRET_HEADER
    category_id: int | None = None
    uncategorized_category_id: int = 1
    system_user_id: int = -1
    platform_name: str = DEFAULT_PLATFORM_NAME
    tag_rules: str = ""
    max_link_attempts: int = DEFAULT_MAX_ATTEMPTS
    link_retry_base_delay_s: float = DEFAULT_BASE_DELAY_S

    @property
    def is_configured(self) -> bool:
        return bool(self.secret)


@dataclass
class ServiceConfig:
    """Parsed and validated service configuration."""

    name: str
    port: int
    base_url: str
    db_name: str = "eventsync"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_logging(service_section: dict) -> LoggingConfig:
    logging_section = service_section.get("logging", {})
    if not isinstance(logging_section, dict):
        raise ConfigError("service.logging must be a TOML table")

    fmt = str(logging_section.get("format", "text")).strip().lower()
    if fmt not in _LOG_FORMATS:
        raise ConfigError(
            f"Invalid service.logging.format: {fmt!r}. Expected one of: {', '.join(_LOG_FORMATS)}"
        )

    log_root = logging_section.get("log_root")
    if log_root is not None and not str(log_root).strip():
        log_root = None

    return LoggingConfig(
        level=str(logging_section.get("level", "INFO")).upper(),
        format=fmt,
        log_root=str(log_root) if log_root is not None else None,
    )


def _optional_int(section: dict, key: str, path: str) -> int | None:
    value = section.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{path}.{key} must be an integer when set")
    return value


def _parse_webhook(data: dict) -> WebhookConfig:
    """Parse the optional [webhook] section; absent means "not configured"."""
    section = data.get("webhook", {})
    if not isinstance(section, dict):
        raise ConfigError("webhook must be a TOML table")

    defaults = WebhookConfig()

    max_link_attempts = section.get("max_link_attempts", defaults.max_link_attempts)
    if isinstance(max_link_attempts, bool) or not isinstance(max_link_attempts, int):
        raise ConfigError("webhook.max_link_attempts must be an integer")
    if max_link_attempts <= 0:
        raise ConfigError(
            f"Invalid webhook.max_link_attempts: {max_link_attempts!r}. "
            "Must be a positive integer."
        )

    delay = section.get("link_retry_base_delay_s", defaults.link_retry_base_delay_s)
    if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
        raise ConfigError("webhook.link_retry_base_delay_s must be a non-negative number")

    secret_header = str(section.get("secret_header", DEFAULT_SECRET_HEADER)).strip()
    if not secret_header:
        raise ConfigError("webhook.secret_header must be a non-empty string")

    uncategorized = _optional_int(section, "uncategorized_category_id", "webhook")
    system_user_id = _optional_int(section, "system_user_id", "webhook")

    return WebhookConfig(
        secret=str(section.get("secret", "") or ""),
        secret_header=secret_header,
        category_id=_optional_int(section, "category_id", "webhook"),
        uncategorized_category_id=(
            uncategorized if uncategorized is not None else defaults.uncategorized_category_id
        ),
        system_user_id=system_user_id if system_user_id is not None else defaults.system_user_id,
        platform_name=str(section.get("platform_name", DEFAULT_PLATFORM_NAME)),
        tag_rules=str(section.get("tag_rules", "") or ""),
        max_link_attempts=max_link_attempts,
        link_retry_base_delay_s=float(delay),
    )


def load_config(config_dir: Path) -> ServiceConfig:
    """Load and validate an eventsync.toml from *config_dir*.

    Parameters
    ----------
    config_dir:
        Directory containing ``eventsync.toml``.

    Returns
    -------
    ServiceConfig
        Fully parsed and validated configuration.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    toml_path = Path(config_dir) / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    # --- [service] section (required) ---
    service_section = data.get("service")
    if not isinstance(service_section, dict):
        raise ConfigError("Missing [service] section in config")

    name = str(service_section.get("name", "eventsync")).strip()
    if not name:
        raise ConfigError("service.name must be a non-empty string")

    port = service_section.get("port")
    if port is None:
        raise ConfigError("Missing required field: service.port")
    if isinstance(port, bool) or not isinstance(port, int) or port <= 0:
        raise ConfigError(f"Invalid service.port: {port!r}. Must be a positive integer.")

    base_url = service_section.get("base_url")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("Missing required field: service.base_url")

    db_section = service_section.get("db", {})
    db_name = str(db_section.get("name", name)).strip()
    if not db_name:
        raise ConfigError("service.db.name must be a non-empty string")

    return ServiceConfig(
        name=name,
        port=port,
        base_url=base_url.strip().rstrip("/"),
        db_name=db_name,
        logging=_parse_logging(service_section),
        webhook=_parse_webhook(data),
    )
