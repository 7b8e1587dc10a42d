"""
firemock configuration
Defaults, optional JSON file and environment overrides for mock behavior
"""

import os
import json
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = 'FIREMOCK_CONFIG'
AUTO_FLUSH_ENV = 'FIREMOCK_AUTO_FLUSH'
TOKEN_LIFETIME_ENV = 'FIREMOCK_TOKEN_LIFETIME_SECONDS'

_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off', '')


@dataclass
class MockSettings:
    """Behavior knobs shared by every mock subsystem"""
    # False = manual flushing, True = flush on every enqueue, number = delay in seconds
    auto_flush: Union[bool, float] = False

    # Lifetime of freshly issued ID tokens
    token_lifetime_seconds: float = 3600.0

    message_id_prefix: str = 'projects/mock/messages/'


def parse_auto_flush(raw: Any) -> Union[bool, float]:
    """Interpret an auto-flush setting given as bool, number or text"""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    try:
        return float(text)
    except ValueError:
        logger.warning(f"Unrecognized auto flush value {raw!r}, using manual flushing")
        return False


def parse_token_lifetime(raw: Any) -> float:
    """Interpret a token lifetime in seconds, falling back to the default"""
    default = MockSettings.token_lifetime_seconds
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Unrecognized token lifetime {raw!r}, using {default} seconds")
        return default
    if not seconds > 0:
        logger.warning(f"Token lifetime must be positive, got {raw!r}; using {default} seconds")
        return default
    return seconds


def load_settings() -> MockSettings:
    """Load settings from defaults, then config file, then environment"""
    values: Dict[str, Any] = {}
    known = {f.name for f in fields(MockSettings)}

    config_file = os.getenv(CONFIG_FILE_ENV)
    if config_file and os.path.exists(config_file):
        try:
            with open(config_file, 'r') as f:
                file_config = json.load(f)
            for key, value in file_config.items():
                if key in known:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown setting {key} in {config_file}")
            logger.info(f"Loaded firemock settings from {config_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load firemock settings from {config_file}: {e}")

    env_auto_flush = os.getenv(AUTO_FLUSH_ENV)
    if env_auto_flush is not None:
        values['auto_flush'] = env_auto_flush

    env_lifetime = os.getenv(TOKEN_LIFETIME_ENV)
    if env_lifetime is not None:
        values['token_lifetime_seconds'] = env_lifetime

    settings = MockSettings(**values)
    settings.auto_flush = parse_auto_flush(settings.auto_flush)
    settings.token_lifetime_seconds = parse_token_lifetime(settings.token_lifetime_seconds)
    logger.debug(f"firemock settings: {settings}")
    return settings


# Global settings instance
_settings_instance: Optional[MockSettings] = None


def get_settings() -> MockSettings:
    """Get the cached settings instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = load_settings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads them"""
    global _settings_instance
    _settings_instance = None
