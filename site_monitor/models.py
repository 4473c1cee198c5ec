"""
Result types produced by site checks.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import httpx


@dataclass(frozen=True)
class CertInfo:
    """Certificate details of the leaf certificate presented by an HTTPS site."""

    subject: str
    issuer: str
    valid_from: Optional[datetime]
    valid_to: Optional[datetime]
    dns_names: Tuple[str, ...] = ()
    is_valid: bool = True
    error_msg: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "dns_names": list(self.dns_names),
            "is_valid": self.is_valid,
            "error_msg": self.error_msg,
        }


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one successful site check."""

    url: str
    status_code: int
    start: datetime
    end: datetime
    cert_info: Optional[CertInfo] = field(default=None)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def status_text(self) -> str:
        return httpx.codes.get_reason_phrase(self.status_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status_code": self.status_code,
            "status_text": self.status_text,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_seconds": self.duration.total_seconds(),
            "cert_info": self.cert_info.to_dict() if self.cert_info else None,
        }

    def __str__(self) -> str:
        from site_monitor.report import render_result

        return render_result(self)
