"""
Configuration dataclasses for the VPN directory core.

This module defines the configuration structures used throughout the core
(latency tiers, selector geometry, logging) and the helpers that load them
from a JSON file or from the environment.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigError


ENV_PREFIX = "VPN_DIRECTORY_"


@dataclass
class PingConfig:
    """Latency tier thresholds."""

    good_below_ms: float = 100.0
    moderate_below_ms: float = 300.0
    # Derive a server's quality from its aggregate before the batch was applied
    stale_aggregate_quality: bool = False


@dataclass
class SelectorConfig:
    """Fastest-server selection settings."""

    earth_radius_km: float = 6371.0


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class CoreConfig:
    """Main configuration combining all sub-configurations."""

    ping: PingConfig = field(default_factory=PingConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_to_dict(config: CoreConfig) -> dict:
    """Serialize configuration to a JSON-compatible dictionary."""
    return {
        "ping": {
            "good_below_ms": config.ping.good_below_ms,
            "moderate_below_ms": config.ping.moderate_below_ms,
            "stale_aggregate_quality": config.ping.stale_aggregate_quality,
        },
        "selector": {
            "earth_radius_km": config.selector.earth_radius_km,
        },
        "logging": {
            "level": config.logging.level,
            "audit_mode": config.logging.audit_mode,
            "audit_signing_key": config.logging.audit_signing_key,
            "output_format": config.logging.output_format,
        },
    }


def config_from_dict(data: dict) -> CoreConfig:
    """
    Build configuration from a dictionary, defaulting missing sections.

    Raises:
        ConfigError: If a value has the wrong type or thresholds are inverted
    """
    if not isinstance(data, dict):
        raise ConfigError(
            code="invalid_config",
            message="Configuration must be a JSON object",
            details={"type": type(data).__name__},
        )

    try:
        ping_data = data.get("ping") or {}
        ping = PingConfig(
            good_below_ms=float(ping_data.get("good_below_ms", 100.0)),
            moderate_below_ms=float(ping_data.get("moderate_below_ms", 300.0)),
            stale_aggregate_quality=bool(ping_data.get("stale_aggregate_quality", False)),
        )

        selector_data = data.get("selector") or {}
        selector = SelectorConfig(
            earth_radius_km=float(selector_data.get("earth_radius_km", 6371.0)),
        )

        logging_data = data.get("logging") or {}
        logging_config = LoggingConfig(
            level=str(logging_data.get("level", "info")),
            audit_mode=bool(logging_data.get("audit_mode", False)),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=str(logging_data.get("output_format", "text")),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(
            code="invalid_value",
            message=f"Invalid configuration value: {e}",
            details={},
        )

    if ping.good_below_ms > ping.moderate_below_ms:
        raise ConfigError(
            code="inverted_thresholds",
            message="good_below_ms must not exceed moderate_below_ms",
            details={
                "good_below_ms": ping.good_below_ms,
                "moderate_below_ms": ping.moderate_below_ms,
            },
        )

    return CoreConfig(ping=ping, selector=selector, logging=logging_config)


def load_config_from_file(config_path: Path) -> CoreConfig:
    """
    Load configuration from a JSON file.

    A missing file yields the default configuration.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return CoreConfig()
    except json.JSONDecodeError as e:
        raise ConfigError(
            code="parse_error",
            message=f"Failed to parse config file: {e}",
            details={"file_path": str(config_path)},
        )
    except OSError as e:
        raise ConfigError(
            code="io_error",
            message=f"Failed to read config file: {e}",
            details={"file_path": str(config_path)},
        )

    return config_from_dict(data)


def save_config_to_file(config: CoreConfig, config_path: Path) -> None:
    """
    Save configuration to a JSON file.

    Raises:
        ConfigError: If the file cannot be written
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ConfigError(
            code="io_error",
            message=f"Failed to write config file: {e}",
            details={"file_path": str(config_path)},
        )


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(ENV_PREFIX + name, str(default)))
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    base: Optional[CoreConfig] = None,
    dotenv_path: Optional[Path] = None,
) -> CoreConfig:
    """
    Overlay ``VPN_DIRECTORY_*`` environment variables onto a configuration.

    Variables from a ``.env`` file are loaded first (without overriding the
    real environment).

    Args:
        base: Configuration to start from (defaults if None)
        dotenv_path: Optional explicit path of the .env file

    Returns:
        New CoreConfig with environment overrides applied
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)
    base = base or CoreConfig()

    ping = PingConfig(
        good_below_ms=_float_env("PING_GOOD_BELOW_MS", base.ping.good_below_ms),
        moderate_below_ms=_float_env("PING_MODERATE_BELOW_MS", base.ping.moderate_below_ms),
        stale_aggregate_quality=_bool_env(
            "PING_STALE_AGGREGATE_QUALITY", base.ping.stale_aggregate_quality
        ),
    )
    selector = SelectorConfig(
        earth_radius_km=_float_env("EARTH_RADIUS_KM", base.selector.earth_radius_km),
    )
    logging_config = LoggingConfig(
        level=(os.getenv(ENV_PREFIX + "LOG_LEVEL") or base.logging.level).lower(),
        audit_mode=_bool_env("AUDIT_MODE", base.logging.audit_mode),
        audit_signing_key=os.getenv(ENV_PREFIX + "AUDIT_SIGNING_KEY") or base.logging.audit_signing_key,
        output_format=(os.getenv(ENV_PREFIX + "LOG_FORMAT") or base.logging.output_format).lower(),
    )
    return config_from_dict(config_to_dict(CoreConfig(ping, selector, logging_config)))
