"""Latency-based status classification."""

import time
from typing import Optional

from .models import CheckStatus, format_elapsed

__all__ = ["classify_status", "format_elapsed", "Stopwatch"]


def classify_status(elapsed_ms: float, threshold_warn_ms: float, outcome_ok: bool) -> CheckStatus:
    """Map an elapsed duration and outcome to PASS, WARNING or FAIL.

    A failed outcome is FAIL regardless of timing. Otherwise the check passes
    when it finished within the warning threshold (inclusive).
    """
    if not outcome_ok:
        return CheckStatus.FAIL
    if elapsed_ms <= threshold_warn_ms:
        return CheckStatus.PASS
    return CheckStatus.WARNING


class Stopwatch:
    """Measures one timed operation in milliseconds."""

    def __init__(self):
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        if self._start is None:
            return 0.0
        end = self._stop if self._stop is not None else time.perf_counter()
        return (end - self._start) * 1000.0
