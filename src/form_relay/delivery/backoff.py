"""Cumulative backoff schedule anchored to job creation time."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta

DEFAULT_MAX_RETRIES = 6
# Minutes since creation before a job with retry_count=<index> may be attempted.
DEFAULT_SCHEDULE_MINUTES: tuple[int, ...] = (5, 5, 30, 120, 720, 1440)


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """Map retry_count to the minimum age a job needs to become eligible.

    Thresholds are measured from `created_at`, not from the last attempt, so
    the whole schedule fits inside the last threshold (24h by default).
    Counts past the end of the schedule reuse its last entry.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    schedule_minutes: tuple[int, ...] = DEFAULT_SCHEDULE_MINUTES

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if not self.schedule_minutes:
            raise ValueError("schedule_minutes must not be empty")
        if any(minutes < 0 for minutes in self.schedule_minutes):
            raise ValueError("schedule_minutes must be non-negative")

    def threshold(self, retry_count: int) -> timedelta | None:
        """Return minimum job age for `retry_count`, or None when ineligible."""

        if retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {retry_count}")
        if retry_count >= self.max_retries:
            return None
        index = min(retry_count, len(self.schedule_minutes) - 1)
        return timedelta(minutes=self.schedule_minutes[index])

    def windows(self) -> Iterator[tuple[int, timedelta]]:
        """Yield `(retry_count, threshold)` for every still-retryable count."""

        for retry_count in range(self.max_retries):
            threshold = self.threshold(retry_count)
            if threshold is not None:
                yield retry_count, threshold
