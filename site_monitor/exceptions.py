"""
Exception hierarchy for Site Monitor.
"""

from typing import Optional


class MonitorError(Exception):
    """Base class for all Site Monitor errors."""


class ConfigurationError(MonitorError, ValueError):
    """Raised when a monitor configuration is rejected by the factory."""


class CheckError(MonitorError):
    """
    Raised when a single check cannot produce a result.

    Attributes:
        url: Target URL of the failed check
        cause: Underlying exception, also available as ``__cause__``
    """

    def __init__(self, message: str, url: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.url = url
        self.cause = cause


class RequestError(CheckError):
    """The request object could not be built from the configured method and URL."""


class TransportError(CheckError):
    """The request/response round trip did not complete."""
