"""
Deal Desk Core Time — Public API
=================================
Explicit clock protocol and effective-date helpers.
Doctrine: NO datetime.now() in engine logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    get_default_clock,
    now_utc,
    set_default_clock,
    today,
)
from core.time.temporal import (
    EffectiveWindow,
    parse_date,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "get_default_clock",
    "set_default_clock",
    "now_utc",
    "today",
    "EffectiveWindow",
    "parse_date",
]
