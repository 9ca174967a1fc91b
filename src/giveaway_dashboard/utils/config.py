"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from giveaway_dashboard.utils.common import mask_secret
from giveaway_dashboard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "giveaway.conf"

# Legacy env var names that do not follow the SECTION_KEY scheme
_EXPLICIT_ENV = {
    "SHEET_WEBHOOK": ("ledger", "webhook"),
    "SHEET_KEY": ("ledger", "key"),
    "ADMIN_TOKEN": ("server", "admin_token"),
    "MOD_NAME": ("giveaway", "mod_name"),
    "PORT": ("server", "port"),
}

_PREFIXES = {
    "TWITCH_": "twitch",
    "GIVEAWAY_": "giveaway",
    "LEDGER_": "ledger",
    "NIGHTBOT_": "nightbot",
    "SERVER_": "server",
}

REQUIRED_SETTINGS = (
    ("twitch.channel", "TWITCH_CHANNEL"),
    ("twitch.bot", "TWITCH_BOT"),
    ("twitch.oauth", "TWITCH_OAUTH"),
    ("ledger.webhook", "SHEET_WEBHOOK"),
)

SECRET_SETTINGS = {"twitch.oauth", "ledger.key", "nightbot.access_token", "server.admin_token"}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


def load_config(config_file: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load configuration from files and environment variables"""
    config: Dict[str, Any] = {}
    env = os.environ if environ is None else environ

    if config_file is None:
        config_file = Path(env.get("GIVEAWAY_CONFIG", DEFAULT_CONFIG_FILE))
    config_file = Path(config_file)

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
            for section, values in file_config.items():
                if isinstance(values, dict):
                    config.setdefault(section, {}).update(values)
                else:
                    config[section] = values
            logger.info(f"Loaded configuration from {config_file}")
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Error loading config file {config_file}: {e}") from e
    else:
        logger.info(f"Config file {config_file} not found. Will only use environment variables.")

    # Override with environment variables, usually defined in .env
    config = _apply_env_overrides(config, env)

    logger.debug("Configuration after applying environment overrides: %s", json.dumps(redact_config(config), indent=2))

    return config


def _apply_env_overrides(config: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in environ.items():
        if key in _EXPLICIT_ENV:
            section, name = _EXPLICIT_ENV[key]
        elif key == "GIVEAWAY_CONFIG":
            continue
        else:
            for prefix, section in _PREFIXES.items():
                if key.startswith(prefix):
                    name = key[len(prefix):].lower()
                    break
            else:
                continue

        config.setdefault(section, {})[name] = value

    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Raise ConfigError listing every required setting that is missing."""
    missing: List[str] = [
        env_name
        for key_path, env_name in REQUIRED_SETTINGS
        if not get_config_value(config, key_path)
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def get_int(config: Dict[str, Any], key_path: str, default: int) -> int:
    """Read an integer setting; env overrides arrive as strings."""
    raw = get_config_value(config, key_path, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Setting {key_path} must be an integer, got {raw!r}") from e


def get_backoff(config: Dict[str, Any], key_path: str, default: List[float]) -> List[float]:
    """Read a retry delay list given either as a JSON list or a comma string."""
    raw = get_config_value(config, key_path, default)
    if isinstance(raw, str):
        raw = [part for part in raw.split(",") if part.strip()]
    try:
        delays = [float(item) for item in raw]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Setting {key_path} must be a list of seconds, got {raw!r}") from e
    if not delays:
        raise ConfigError(f"Setting {key_path} needs at least one delay")
    return delays


def redact_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the config with secret values replaced by set/missing markers."""
    redacted: Dict[str, Any] = {}
    for section, values in config.items():
        if not isinstance(values, dict):
            redacted[section] = values
            continue
        redacted[section] = {
            key: mask_secret(value) if f"{section}.{key}" in SECRET_SETTINGS else value
            for key, value in values.items()
        }
    return redacted
