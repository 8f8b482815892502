"""Unit tests for status classification and elapsed formatting."""

import pytest

from envprobe.models import CheckStatus
from envprobe.status import classify_status, format_elapsed, Stopwatch


class TestClassifyStatus:

    def test_failed_outcome_is_fail_regardless_of_time(self):
        assert classify_status(10, 5000, False) == CheckStatus.FAIL
        assert classify_status(90000, 5000, False) == CheckStatus.FAIL

    def test_within_threshold_passes(self):
        assert classify_status(1200, 5000, True) == CheckStatus.PASS
        assert classify_status(4999, 5000, True) == CheckStatus.PASS

    def test_threshold_is_inclusive(self):
        assert classify_status(5000, 5000, True) == CheckStatus.PASS

    def test_over_threshold_warns(self):
        assert classify_status(5001, 5000, True) == CheckStatus.WARNING
        assert classify_status(3500, 3000, True) == CheckStatus.WARNING
        assert classify_status(3001, 3000, True) == CheckStatus.WARNING


class TestFormatElapsed:

    @pytest.mark.parametrize("elapsed, expected", [
        (None, "-"),
        (0, "0.0s"),
        (1234, "1.2s"),
        (5000, "5.0s"),
        (86, "0.1s"),
    ])
    def test_format(self, elapsed, expected):
        assert format_elapsed(elapsed) == expected


def test_stopwatch_measures():
    watch = Stopwatch()
    assert watch.elapsed_ms == 0.0

    with watch:
        sum(range(1000))

    first = watch.elapsed_ms
    assert first >= 0.0
    # Stopped: reading again does not keep counting
    assert watch.elapsed_ms == first
