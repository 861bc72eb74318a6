"""
chatgate/models/quota.py

Quota decision and usage views returned by the quota tracker.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class QuotaStatus(str, Enum):
    """Outcome of a check-and-increment."""
    ALLOWED = "ALLOWED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


@dataclass(frozen=True)
class QuotaDecision:
    status: QuotaStatus
    user_id: str
    window_start: date
    used: int
    limit: Optional[int]  # None = unlimited
    resets_at: datetime

    @property
    def allowed(self) -> bool:
        return self.status == QuotaStatus.ALLOWED

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "window_start": self.window_start.isoformat(),
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining if self.limit is not None else "unlimited",
            "resets_at": self.resets_at.isoformat(),
        }


@dataclass(frozen=True)
class QuotaUsage:
    user_id: str
    window_start: date
    used: int
    limit: Optional[int]
    resets_at: datetime

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict:
        return {
            "window_start": self.window_start.isoformat(),
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining if self.limit is not None else "unlimited",
            "resets_at": self.resets_at.isoformat(),
        }
