"""
Human readable rendering of check results.
"""

from typing import List, Optional

from site_monitor.models import CheckResult

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_result(result: CheckResult, up: Optional[bool] = None) -> str:
    """
    Render a check result as a multi-line report.

    Args:
        result: Result to render
        up: Up/down classification, omitted from the report when None
    """
    lines: List[str] = [
        f"Website: {result.url}",
        f"Status: {result.status_code} ({result.status_text})",
    ]
    if up is not None:
        lines.append(f"  State: {'UP' if up else 'DOWN'}")

    lines.extend(
        [
            f"Start: {result.start.strftime(TIME_FORMAT)}",
            f"  End: {result.end.strftime(TIME_FORMAT)}",
            f"Duration: {result.duration.total_seconds():.3f}s",
        ]
    )

    cert = result.cert_info
    if cert is not None:
        lines.append("Certificate Info:")
        lines.append(f"  Valid: {str(cert.is_valid).lower()}")
        if cert.error_msg:
            lines.append(f"  Error: {cert.error_msg}")
        valid_from = cert.valid_from.strftime(TIME_FORMAT) if cert.valid_from else "unknown"
        valid_to = cert.valid_to.strftime(TIME_FORMAT) if cert.valid_to else "unknown"
        lines.append(f"  From {valid_from} to {valid_to}")

    return "\n".join(lines) + "\n"


def render_error(url: str, error: str) -> str:
    """Render a check that produced no result."""
    return f"Website: {url}\nError: {error}\n"
