"""
Data models for storage layer.

Defines joke log records, daily counters and derived statistics.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class JokeRecord:
    """Immutable record of a generated joke.

    Append-only entries in the joke log. Once written, these records
    must never be modified.
    """
    id: str
    text: str
    created_at: datetime
    keywords: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "joke": self.text,
            "keywords": self.keywords or "",
            "timestamp": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class DailyCounter:
    """Number of jokes generated on one UTC calendar day."""
    day: date
    count: int
    last_updated: datetime

    def __post_init__(self):
        if self.count < 0:
            raise ValueError("count must be >= 0")


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregate usage statistics, derived and never stored."""
    total_requests: int = 0
    today_requests: int = 0
    recent_jokes: List[JokeRecord] = field(default_factory=list)
    available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "todayRequests": self.today_requests,
            "recentJokes": [record.to_dict() for record in self.recent_jokes],
            "storageAvailable": self.available,
        }
