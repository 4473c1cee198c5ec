"""
Configuration management for Site Monitor.
"""

import logging
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DURATION_PATTERN = r"^(\d+)([smhd])$"
DURATION_MULTIPLIERS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration_seconds(duration: str) -> int:
    """Parse duration string (e.g. '30s', '5m', '1h', '1d') to seconds."""
    match = re.match(DURATION_PATTERN, duration)
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")

    value, unit = match.groups()
    return int(value) * DURATION_MULTIPLIERS[unit]


class MonitorConfig(BaseModel):
    """
    Configuration for monitoring a single site.

    Only types are checked here; the semantic rules (defaults for timeout and
    status codes, required method, URL sanitation) are applied by
    ``site_monitor.monitor.create_monitor``.
    """

    model_config = ConfigDict(frozen=True)

    url: str = ""
    method: str = "GET"
    request_timeout: float = 0.0  # seconds, 0 means default
    ignore_cert: bool = False
    dont_follow_redirect: bool = False
    up_status_codes: FrozenSet[int] = Field(default_factory=frozenset)
    headers: Tuple[Tuple[str, str], ...] = ()

    @field_validator("request_timeout", mode="before")
    @classmethod
    def validate_request_timeout(cls, v: Any) -> Any:
        """Accept durations as seconds, timedelta or strings like '5s'."""
        if isinstance(v, timedelta):
            return v.total_seconds()
        if isinstance(v, str) and re.match(DURATION_PATTERN, v.strip()):
            return parse_duration_seconds(v.strip())
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def validate_headers(cls, v: Any) -> Any:
        """Store headers as name/value pairs so they cannot change once bound."""
        if isinstance(v, Mapping):
            return tuple(v.items())
        return v


class Config(BaseModel):
    """Configuration model for Site Monitor."""

    # Server settings
    port: int = Field(default=3200, ge=1, le=65535)
    bind_address: str = Field(default="0.0.0.0")  # nosec B104

    # Monitored sites
    sites: List[MonitorConfig] = Field(default_factory=list)

    # Check settings
    check_interval: str = Field(default="1m")
    workers: int = Field(default=16, ge=1, le=256)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    # Operation modes
    dry_run: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("check_interval")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Validate duration format (e.g., '5m', '1h', '30s')."""
        if not v:
            raise ValueError("Duration cannot be empty")

        if not re.match(DURATION_PATTERN, v):
            raise ValueError("Duration must be in format like '5m', '1h', '30s', '1d'")
        if parse_duration_seconds(v) == 0:
            raise ValueError("Duration must be greater than zero")
        return v

    @property
    def check_interval_seconds(self) -> int:
        """Get check interval in seconds."""
        return parse_duration_seconds(self.check_interval)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file or environment variables.

    Args:
        config_path: Path to configuration file

    Returns:
        Config object
    """
    config_data: Dict[str, Any] = {}

    # Load from file if provided
    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        else:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

    # Override with environment variables
    env_overrides = _get_env_overrides()
    extra_sites = env_overrides.pop("sites", [])
    config_data.update(env_overrides)
    if extra_sites:
        config_data["sites"] = list(config_data.get("sites") or []) + extra_sites

    return Config(**config_data)


def _get_env_overrides() -> Dict[str, Any]:
    """Get configuration overrides from environment variables."""
    env_mapping: Dict[str, tuple[str, Callable[[str], Any]]] = {
        "SITE_MONITOR_PORT": ("port", int),
        "SITE_MONITOR_BIND_ADDRESS": ("bind_address", str),
        "SITE_MONITOR_CHECK_INTERVAL": ("check_interval", str),
        "SITE_MONITOR_WORKERS": ("workers", int),
        "SITE_MONITOR_LOG_LEVEL": ("log_level", str),
        "SITE_MONITOR_LOG_FILE": ("log_file", str),
        "SITE_MONITOR_DRY_RUN": ("dry_run", lambda x: x.lower() in ("true", "1", "yes")),
    }

    overrides: Dict[str, Any] = {}
    for env_var, (config_key, converter) in env_mapping.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                overrides[config_key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    # Sites given as a plain URL list are checked with GET and defaults
    urls = os.getenv("SITE_MONITOR_URLS")
    if urls:
        overrides["sites"] = [{"url": u.strip()} for u in urls.split(",") if u.strip()]

    return overrides


def create_example_config(output_path: str = "config.example.yaml") -> None:
    """Create an example configuration file."""
    example_config = {
        "port": 3200,
        "bind_address": "0.0.0.0",  # nosec B104  # Intentional for production - allows external access
        "check_interval": "1m",
        "workers": 16,
        "log_level": "INFO",
        "dry_run": False,
        "sites": [
            {
                "url": "https://example.com",
                "method": "GET",
                "request_timeout": "10s",
                "up_status_codes": [200],
            },
            {
                "url": "https://expired.badssl.com/",
                "method": "HEAD",
                "request_timeout": 5,
            },
            {
                "url": "http://example.org",
                "method": "GET",
                "dont_follow_redirect": True,
                "up_status_codes": [200, 301, 302],
                "headers": {"User-Agent": "site-monitor"},
            },
        ],
    }

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
