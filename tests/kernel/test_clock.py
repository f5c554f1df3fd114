"""Tests for the injected clocks."""

from datetime import date, datetime, timedelta, timezone

from bench_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_frozen_until_moved(self):
        clock = DeterministicClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()
        assert clock.advance(30) == datetime(2024, 3, 4, 9, 0, 30, tzinfo=timezone.utc)
        assert clock.advance_days(31).date() == date(2024, 4, 4)

    def test_naive_start_is_utc(self):
        clock = DeterministicClock(datetime(2024, 12, 31, 23, 30))
        assert clock.now().tzinfo is not None
        assert clock.today() == date(2024, 12, 31)

    def test_today_is_utc_date(self):
        cet = timezone(timedelta(hours=1))
        clock = DeterministicClock(datetime(2025, 1, 1, 0, 30, tzinfo=cet))
        assert clock.today() == date(2024, 12, 31)

    def test_set_time(self):
        clock = DeterministicClock()
        clock.advance_days(3)
        clock.set_time(datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc))
        assert clock.today() == date(2025, 1, 6)


def test_system_clock_is_aware():
    assert SystemClock().now().tzinfo is not None
