"""Tests for datetime helpers used by the scheduler."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cadence.core.datetime_utils import elapsed_ms, round_to_next_hour, to_naive_utc, utc_now


class TestRoundToNextHour:
    """Tests for round_to_next_hour."""

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            (datetime(2024, 1, 15, 10, 15, 30), datetime(2024, 1, 15, 11, 0, 0)),
            (datetime(2024, 1, 15, 10, 0, 0), datetime(2024, 1, 15, 10, 0, 0)),
            (datetime(2024, 1, 15, 10, 59, 59), datetime(2024, 1, 15, 11, 0, 0)),
            (datetime(2024, 1, 15, 10, 0, 1), datetime(2024, 1, 15, 11, 0, 0)),
            (datetime(2024, 1, 15, 23, 30, 0), datetime(2024, 1, 16, 0, 0, 0)),
        ],
    )
    def test_examples(self, requested, expected):
        """Should move partial hours to the next whole hour."""
        assert round_to_next_hour(requested) == expected

    def test_microseconds_alone_do_not_move_slot(self):
        """Should strip sub-second precision without adding an hour."""
        assert round_to_next_hour(datetime(2024, 1, 15, 10, 0, 0, 500_000)) == datetime(
            2024, 1, 15, 10, 0, 0
        )

    def test_result_is_on_the_hour(self):
        """Should always return minute, second and microsecond zero."""
        result = round_to_next_hour(datetime(2024, 3, 1, 7, 42, 13, 999))
        assert (result.minute, result.second, result.microsecond) == (0, 0, 0)


class TestToNaiveUtc:
    """Tests for to_naive_utc."""

    def test_naive_is_unchanged(self):
        dt = datetime(2024, 1, 15, 10, 0)
        assert to_naive_utc(dt) is dt

    def test_aware_is_converted(self):
        """Should convert to UTC before dropping tzinfo."""
        dt = datetime(2024, 1, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(dt) == datetime(2024, 1, 15, 10, 0)


class TestUtcNow:
    def test_is_naive(self):
        assert utc_now().tzinfo is None

    def test_close_to_real_utc(self):
        delta = datetime.now(UTC).replace(tzinfo=None) - utc_now()
        assert abs(delta.total_seconds()) < 5


def test_elapsed_ms():
    assert elapsed_ms(1.0, 1.25) == 250.0
