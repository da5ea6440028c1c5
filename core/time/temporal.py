"""
Deal Desk Core Time — Effective-Date Windows
=============================================
Pure functions for validity windows of versioned data.
All functions take explicit date arguments — no hidden clock access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional


def _is_plain_date(value) -> bool:
    # datetime subclasses date but does not compare with it
    return isinstance(value, date) and not isinstance(value, datetime)


# ══════════════════════════════════════════════════════════════
# EFFECTIVE WINDOW: closed interval [start, end], end optional
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EffectiveWindow:
    """
    A closed date interval [start, end]. end=None means open-ended.

    Invariant: start <= end when end is set (enforced at construction).
    """

    start: date
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if not _is_plain_date(self.start):
            raise ValueError("EffectiveWindow start must be a date.")
        if self.end is not None and not _is_plain_date(self.end):
            raise ValueError("EffectiveWindow end must be a date.")
        if self.end is not None and self.start > self.end:
            raise ValueError(
                f"EffectiveWindow start ({self.start}) must be <= end ({self.end})."
            )

    @property
    def is_open_ended(self) -> bool:
        return self.end is None

    def contains(self, day: date) -> bool:
        """Check if day falls within window (inclusive)."""
        if day < self.start:
            return False
        return self.end is None or day <= self.end

    def overlaps(self, other: EffectiveWindow) -> bool:
        """Check if two windows share at least one day."""
        starts_before_other_ends = other.end is None or self.start <= other.end
        other_starts_before_end = self.end is None or other.start <= self.end
        return starts_before_other_ends and other_starts_before_end

    def closed_before(self, day: date) -> EffectiveWindow:
        """Return this window truncated to end the day before `day`."""
        return EffectiveWindow(start=self.start, end=day - timedelta(days=1))


def parse_date(value) -> Optional[date]:
    """Accept date, datetime (its calendar date) or ISO 'YYYY-MM-DD'; None passes through."""
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Cannot interpret {value!r} as a date.")
