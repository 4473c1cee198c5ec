"""
Site Monitor

Scheduled availability checks for HTTP(S) endpoints, recording response
status, timing and TLS certificate validity.
"""

__version__ = "1.0.0"
__author__ = "Site Monitor Team"
__description__ = "HTTP(S) availability and TLS certificate monitoring"

from site_monitor.config import Config, MonitorConfig
from site_monitor.context import CheckContext
from site_monitor.exceptions import (
    CheckError,
    ConfigurationError,
    MonitorError,
    RequestError,
    TransportError,
)
from site_monitor.models import CertInfo, CheckResult
from site_monitor.monitor import Monitor, create_monitor

__all__ = [
    "CertInfo",
    "CheckContext",
    "CheckError",
    "CheckResult",
    "Config",
    "ConfigurationError",
    "Monitor",
    "MonitorConfig",
    "MonitorError",
    "RequestError",
    "TransportError",
    "create_monitor",
]
