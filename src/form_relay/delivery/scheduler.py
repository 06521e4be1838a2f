"""Periodic sweep that re-attempts eligible delivery jobs."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from form_relay.delivery.errors import StorageError
from form_relay.delivery.executor import DeliveryExecutor
from form_relay.delivery.models import DeliveryOutcome
from form_relay.delivery.repository import DeliveryJobRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepSummary:
    """Aggregate sweep counters for CLI reporting."""

    sweeps: int = 0
    eligible: int = 0
    sent: int = 0
    retrying: int = 0
    failed: int = 0
    already_claimed: int = 0
    state_changed: int = 0
    errors: int = 0
    failed_sweeps: int = 0

    def add(self, other: SweepSummary) -> None:
        self.sweeps += other.sweeps
        self.eligible += other.eligible
        self.sent += other.sent
        self.retrying += other.retrying
        self.failed += other.failed
        self.already_claimed += other.already_claimed
        self.state_changed += other.state_changed
        self.errors += other.errors
        self.failed_sweeps += other.failed_sweeps

    def count(self, outcome: DeliveryOutcome) -> None:
        if outcome == DeliveryOutcome.SENT:
            self.sent += 1
        elif outcome == DeliveryOutcome.RETRYING:
            self.retrying += 1
        elif outcome == DeliveryOutcome.FAILED:
            self.failed += 1
        elif outcome == DeliveryOutcome.ALREADY_CLAIMED:
            self.already_claimed += 1
        else:
            self.state_changed += 1


class RetryScheduler:
    """Finds eligible jobs and hands each to the executor.

    Exclusivity comes from `claim_job`, so several schedulers may sweep the
    same environment at once.
    """

    def __init__(
        self,
        *,
        repository: DeliveryJobRepository,
        executor: DeliveryExecutor,
        environment: str,
        interval_seconds: float = 300.0,
    ) -> None:
        self.repository = repository
        self.executor = executor
        self.environment = environment
        self.interval_seconds = interval_seconds
        self._stop_requested = False

    def run_once(self, *, now: datetime | None = None) -> SweepSummary:
        """Run one sweep; never raises for per-job or lookup failures."""

        summary = SweepSummary(sweeps=1)
        try:
            jobs = self.repository.find_eligible(environment=self.environment, now=now)
        except StorageError:
            logger.exception("Sweep lookup failed; waiting for next tick")
            summary.failed_sweeps = 1
            return summary

        summary.eligible = len(jobs)
        logger.info(
            "Sweep found %d eligible job(s) environment=%s",
            len(jobs),
            self.environment,
        )
        for job in jobs:
            if self._stop_requested:
                break
            try:
                outcome = self.executor.execute(job.job_id)
            except Exception:  # noqa: BLE001
                logger.exception("Sweep failed to process job %s", job.job_id)
                summary.errors += 1
                continue
            summary.count(outcome)
        return summary

    def run_loop(self, *, max_sweeps: int | None = None) -> SweepSummary:
        """Sweep immediately, then every `interval_seconds` until stopped."""

        aggregate = SweepSummary()
        with self._signal_handlers():
            while not self._stop_requested:
                aggregate.add(self.run_once())
                if max_sweeps is not None and aggregate.sweeps >= max_sweeps:
                    break
                self._sleep_with_stop(self.interval_seconds)
        return aggregate

    def request_stop(self) -> None:
        self._stop_requested = True

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stop_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.info("Received %s; stopping after current job", name)
            self.request_stop()

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
