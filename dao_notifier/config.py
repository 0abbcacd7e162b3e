"""DAO Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for the Telegram bot and its webhook."""

    bot_token: str
    webhook_secret: str
    bot_username: str
    request_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotifyConfig:
    """Configuration for the notification fan-out."""

    api_key: str
    batch_size: int = 10
    max_attempts: int = 3
    retry_delay_seconds: float = 0.0
    description_max_length: int = 500
    disable_link_preview: bool = False


@dataclass(frozen=True)
class DaoInfoConfig:
    """Configuration for the DAO metadata indexer."""

    base_url: str
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for the HTTP server."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    notify: NotifyConfig
    dao_info: DaoInfoConfig
    server: ServerConfig
    database_path: str
    log_level: str


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all ${VAR_NAME} placeholders replaced
        by their environment variable values.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        matches = ENV_VAR_PATTERN.findall(value)
        for var_name in matches:
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Args:
        path: Absolute or relative path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section."""
    _validate_keys(data, ["bot_token", "webhook_secret", "bot_username"], "telegram")

    return TelegramConfig(
        bot_token=str(data["bot_token"]),
        webhook_secret=str(data["webhook_secret"]),
        bot_username=str(data["bot_username"]).lstrip("@"),
        request_timeout_seconds=float(data.get("request_timeout_seconds", 10.0)),
    )


def _build_notify_config(data: dict[str, Any]) -> NotifyConfig:
    """Build a NotifyConfig from the 'notify' section.

    Args:
        data: The 'notify' section of settings.yaml.

    Returns:
        A validated NotifyConfig instance.

    Raises:
        ValueError: If batch_size, max_attempts or
            description_max_length are not positive.
    """
    _validate_keys(data, ["api_key"], "notify")

    config = NotifyConfig(
        api_key=str(data["api_key"]),
        batch_size=int(data.get("batch_size", 10)),
        max_attempts=int(data.get("max_attempts", 3)),
        retry_delay_seconds=float(data.get("retry_delay_seconds", 0.0)),
        description_max_length=int(data.get("description_max_length", 500)),
        disable_link_preview=_parse_bool(
            data.get("disable_link_preview", False), "notify.disable_link_preview",
        ),
    )

    for name in ("batch_size", "max_attempts", "description_max_length"):
        if getattr(config, name) < 1:
            raise ValueError(
                f"notify.{name} must be a positive integer, got {getattr(config, name)}"
            )
    if not config.api_key:
        raise ValueError("notify.api_key must not be empty")

    return config


def _build_dao_info_config(data: dict[str, Any]) -> DaoInfoConfig:
    """Build a DaoInfoConfig from the 'dao_info' section."""
    _validate_keys(data, ["base_url"], "dao_info")

    return DaoInfoConfig(
        base_url=data["base_url"],
        timeout_seconds=float(data.get("timeout_seconds", 10.0)),
    )


def _build_server_config(data: dict[str, Any]) -> ServerConfig:
    """Build a ServerConfig from the optional 'server' section."""
    return ServerConfig(
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 8080)),
    )


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0", ""}


def _parse_bool(value: Any, name: str) -> bool:
    """Parse a YAML boolean that may arrive as a string from ${VAR}.

    Raises:
        ValueError: If the value is not a recognizable boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"{name} must be true or false, got {value!r}")


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Args:
        data: The configuration dictionary to validate.
        required: List of required key names.
        section: Human-readable section name for error messages.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads settings.yaml, resolves environment variables, validates all
    required fields, and returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the config file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings_file = settings_path or SETTINGS_PATH
    settings = _resolve_env_vars(_load_yaml(settings_file))

    _validate_keys(settings, ["telegram", "notify", "dao_info", "database"], "settings")

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"]),
        notify=_build_notify_config(settings["notify"]),
        dao_info=_build_dao_info_config(settings["dao_info"]),
        server=_build_server_config(settings.get("server") or {}),
        database_path=settings["database"]["path"],
        log_level=(settings.get("logging") or {}).get("level", "INFO"),
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Database path: %s", config.database_path)
    logger.debug(
        "Fan-out: batch_size=%d, max_attempts=%d",
        config.notify.batch_size, config.notify.max_attempts,
    )

    return config
