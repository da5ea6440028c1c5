"""
Tests for core.time — Clock protocol and effective-date windows.
"""

import pytest
from datetime import date, datetime, timezone, timedelta

from core.time.clock import (
    FixedClock,
    SystemClock,
    set_default_clock,
    get_default_clock,
    now_utc,
    today,
)
from core.time.temporal import EffectiveWindow, parse_date


# ── Clock Tests ──────────────────────────────────────────────

class TestSystemClock:
    def test_returns_utc_datetime(self):
        clock = SystemClock()
        dt = clock.now_utc()
        assert dt.tzinfo is not None
        assert dt.tzinfo == timezone.utc


class TestFixedClock:
    def test_returns_fixed_time(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        assert clock.now_utc() == fixed
        assert clock.now_utc() == fixed  # Same every time

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2025, 1, 1))

    def test_advance_seconds_and_days(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        clock.advance(60)
        clock.advance(days=2)
        assert clock.now_utc() == fixed + timedelta(days=2, seconds=60)

    def test_today_uses_clock_date(self):
        clock = FixedClock(datetime(2025, 3, 1, 23, 59, tzinfo=timezone.utc))
        assert today(clock) == date(2025, 3, 1)


class TestDefaultClock:
    def test_set_and_get_default(self):
        original = get_default_clock()
        fixed = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        set_default_clock(fixed)
        try:
            assert now_utc() == datetime(2025, 1, 1, tzinfo=timezone.utc)
            assert today() == date(2025, 1, 1)
        finally:
            set_default_clock(original)


# ── EffectiveWindow Tests ────────────────────────────────────

class TestEffectiveWindow:
    def test_contains_is_inclusive(self):
        window = EffectiveWindow(start=date(2025, 1, 1), end=date(2025, 12, 31))

        assert window.contains(date(2025, 6, 15))
        assert window.contains(date(2025, 1, 1))
        assert window.contains(date(2025, 12, 31))
        assert not window.contains(date(2024, 12, 31))
        assert not window.contains(date(2026, 1, 1))

    def test_open_ended_contains_far_future(self):
        window = EffectiveWindow(start=date(2025, 1, 1))
        assert window.is_open_ended
        assert window.contains(date(2099, 1, 1))

    def test_overlaps(self):
        w1 = EffectiveWindow(start=date(2025, 1, 1), end=date(2025, 6, 30))
        w2 = EffectiveWindow(start=date(2025, 3, 1), end=date(2025, 9, 30))
        w3 = EffectiveWindow(start=date(2025, 7, 1), end=date(2025, 12, 31))
        assert w1.overlaps(w2)
        assert not w1.overlaps(w3)

    def test_touching_windows_overlap_on_shared_day(self):
        w1 = EffectiveWindow(start=date(2025, 1, 1), end=date(2025, 6, 30))
        w2 = EffectiveWindow(start=date(2025, 6, 30))
        assert w1.overlaps(w2)

    def test_open_ended_windows_always_overlap(self):
        w1 = EffectiveWindow(start=date(2025, 1, 1))
        w2 = EffectiveWindow(start=date(2030, 1, 1))
        assert w1.overlaps(w2)
        assert w2.overlaps(w1)

    def test_closed_before(self):
        window = EffectiveWindow(start=date(2025, 1, 1))
        closed = window.closed_before(date(2025, 7, 1))
        assert closed.end == date(2025, 6, 30)
        assert not closed.overlaps(EffectiveWindow(start=date(2025, 7, 1)))

    def test_rejects_start_after_end(self):
        with pytest.raises(ValueError, match="start"):
            EffectiveWindow(start=date(2025, 12, 31), end=date(2025, 1, 1))

    def test_rejects_datetime_bounds(self):
        with pytest.raises(ValueError, match="start must be a date"):
            EffectiveWindow(start=datetime(2025, 1, 1, tzinfo=timezone.utc))
        with pytest.raises(ValueError, match="end must be a date"):
            EffectiveWindow(start=date(2025, 1, 1), end=datetime(2025, 6, 30))


class TestParseDate:
    def test_passes_dates_and_none(self):
        assert parse_date(date(2025, 1, 2)) == date(2025, 1, 2)
        assert parse_date(None) is None

    def test_parses_iso_strings(self):
        assert parse_date("2025-01-02") == date(2025, 1, 2)
        assert parse_date("2025-01-02T10:00:00Z") == date(2025, 1, 2)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date(42)

    def test_datetime_becomes_its_calendar_date(self):
        parsed = parse_date(datetime(2025, 1, 2, 23, 30, tzinfo=timezone.utc))
        assert parsed == date(2025, 1, 2)
        assert type(parsed) is date
