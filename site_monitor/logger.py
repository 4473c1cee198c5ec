"""
Standardized logging configuration for Site Monitor.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from site_monitor.config import Config

STRUCTURED_FIELDS = ("url", "status_code", "duration", "error_type", "cert_valid")


class CustomFormatter(logging.Formatter):
    """Custom formatter with colored output for console."""

    # Color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def __init__(self, use_color: bool = True) -> None:
        self.use_color = use_color
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with optional colors."""
        if self.use_color and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            reset = self.COLORS["RESET"]
            level_name = f"{color}{record.levelname:<8}{reset}"
        else:
            level_name = f"{record.levelname:<8}"

        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        if record.exc_info:
            if not message.endswith("\n"):
                message += "\n"
            message += self.formatException(record.exc_info)

        return f"{timestamp} | {level_name} | {record.name:<22} | {message}"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config: Config) -> None:
    """
    Setup logging configuration.

    Args:
        config: Configuration object
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, config.log_level))

    # Use colored formatter for console if output is a TTY
    use_color = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    console_handler.setFormatter(CustomFormatter(use_color=use_color))
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            config.log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"  # 10MB
        )
        file_handler.setLevel(getattr(logging, config.log_level))
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)

    app_logger = logging.getLogger("site_monitor")
    app_logger.info(f"Logging initialized - Level: {config.log_level}")

    if config.log_file:
        app_logger.info(f"Log file: {config.log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"site_monitor.{name}")


# Logging helpers for check operations
def log_check_start(logger: logging.Logger, url: str, method: str) -> None:
    """Log check start."""
    logger.debug(f"Checking {method} {url}", extra={"url": url})


def log_check_complete(
    logger: logging.Logger, url: str, status_code: int, duration: float, up: bool
) -> None:
    """Log successful check completion."""
    logger.info(
        f"Site {'up' if up else 'down'}: {url} - Status: {status_code}, Duration: {duration:.3f}s",
        extra={"url": url, "status_code": status_code, "duration": duration},
    )


def log_check_error(logger: logging.Logger, url: str, error: Exception) -> None:
    """Log a check that produced no result."""
    logger.error(
        f"Check failed: {error}",
        extra={"url": url, "error_type": type(error).__name__},
    )


def log_certificate_problem(logger: logging.Logger, url: str, message: Optional[str]) -> None:
    """Log an invalid certificate finding."""
    logger.warning(
        f"Invalid certificate for {url}: {message}",
        extra={"url": url, "cert_valid": False},
    )


def log_metrics_collection(
    logger: logging.Logger, metric_name: str, value: float, labels: Optional[dict] = None
) -> None:
    """Log metrics collection."""
    extra = {"metric_name": metric_name, "metric_value": value}
    if labels:
        extra["metric_labels"] = labels

    logger.debug(f"Metric collected: {metric_name}={value}", extra=extra)
