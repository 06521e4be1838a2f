"""Controllers for delivery CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from form_relay.config import Settings
from form_relay.delivery.backoff import BackoffPolicy
from form_relay.delivery.errors import JobNotFoundError
from form_relay.delivery.executor import DeliveryExecutor
from form_relay.delivery.models import (
    ClinicListingRequest,
    DeliveryJob,
    DeliveryStatus,
    RequestKind,
)
from form_relay.delivery.notifier import EchoNotifier, SendGridNotifier, build_notifier
from form_relay.delivery.repository import DeliveryJobRepository
from form_relay.delivery.scheduler import RetryScheduler
from form_relay.delivery.services import DeliveryService
from form_relay.delivery.validation import validate_job_id


@dataclass(slots=True)
class SubmitCommand:
    """CLI input for one form submission."""

    db_path: Path | None
    payload: dict[str, object]
    kind: RequestKind = RequestKind.CONSULTATION


@dataclass(slots=True)
class ReprocessCommand:
    """CLI input for manual job reprocessing."""

    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class WorkerCommand:
    """CLI input for the retry sweep loop."""

    db_path: Path | None
    once: bool
    max_sweeps: int | None
    interval_seconds: float | None = None


@dataclass(slots=True)
class ListJobsCommand:
    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class InspectJobCommand:
    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class StatsCommand:
    db_path: Path | None


class DeliveryCliController:
    """Coordinates intake, worker and inspection CLI operations."""

    def submit(self, command: SubmitCommand) -> list[str]:
        settings = _delivery_settings(command.db_path)
        with _service(settings) as service:
            result = service.submit(command.payload, kind=command.kind)
        return [
            "Request received: "
            f"job_id={result.job_id} status={result.status.value} "
            f"created_at={result.created_at.isoformat()}",
        ]

    def reprocess(self, command: ReprocessCommand) -> list[str]:
        settings = _delivery_settings(command.db_path)
        with _service(settings) as service:
            result = service.reprocess(command.job_id)
        return [
            "Job reprocessed: "
            f"job_id={result.job_id} outcome={result.outcome.value} "
            f"status={result.job.status.value} retry_count={result.job.retry_count}",
        ]

    def run_worker(self, command: WorkerCommand) -> list[str]:
        settings = _delivery_settings(command.db_path)
        interval = command.interval_seconds or settings.delivery.sweep_interval_seconds
        with _repository(settings) as repository, _notifier(settings) as notifier:
            scheduler = RetryScheduler(
                repository=repository,
                executor=DeliveryExecutor(
                    repository=repository,
                    notifier=notifier,
                    environment=settings.environment,
                ),
                environment=settings.environment,
                interval_seconds=interval,
            )
            summary = (
                scheduler.run_once()
                if command.once
                else scheduler.run_loop(max_sweeps=command.max_sweeps)
            )

        return [
            "Worker summary: "
            f"environment={settings.environment} sweeps={summary.sweeps} "
            f"eligible={summary.eligible} sent={summary.sent} "
            f"retrying={summary.retrying} failed={summary.failed} "
            f"already_claimed={summary.already_claimed} "
            f"state_changed={summary.state_changed} errors={summary.errors} "
            f"failed_sweeps={summary.failed_sweeps}",
        ]

    def list_jobs(self, command: ListJobsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter = _parse_status(command.status)
        with _repository(settings) as repository:
            jobs = repository.list_jobs(
                environment=settings.environment,
                status=status_filter,
                limit=command.limit,
            )

        lines = [f"Jobs: {len(jobs)} (environment={settings.environment})"]
        for job in jobs:
            lines.append(
                f"  {job.job_id} status={job.status.value} "
                f"retry_count={job.retry_count} created_at={job.created_at.isoformat()} "
                f"kind={job.kind.value} clinic={job.request.clinic_name}",
            )
        return lines

    def inspect_job(self, command: InspectJobCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        job_id = validate_job_id(command.job_id)
        with _repository(settings) as repository:
            job = repository.get_job(job_id=job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return _job_lines(job)

    def stats(self, command: StatsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            counts = repository.count_jobs_by_status(environment=settings.environment)
        lines = [f"Delivery jobs (environment={settings.environment}):"]
        for status in DeliveryStatus:
            lines.append(f"  {status.value}: {counts[status]}")
        lines.append(f"  total: {sum(counts.values())}")
        return lines


def _job_lines(job: DeliveryJob) -> list[str]:
    lines = [
        f"Job: {job.job_id}",
        f"Kind: {job.kind.value}",
        f"Environment: {job.environment}",
        f"Status: {job.status.value}",
        f"Retry count: {job.retry_count}",
        f"Created: {job.created_at.isoformat()}",
        f"Last retry: {job.last_retry_at.isoformat() if job.last_retry_at else '-'}",
        f"Error: {job.error_message or '-'}",
    ]
    request = job.request
    if isinstance(request, ClinicListingRequest):
        lines.extend(
            [
                f"Contact: {request.primary_contact_name or '-'} <{request.email}>",
                f"Clinic: {request.clinic_name} ({request.address}, {request.city}, "
                f"{request.state})",
                f"Request type: {request.request_type.value}",
            ],
        )
        return lines

    lines.extend(
        [
            f"Contact: {request.first_name} {request.last_name} <{request.email}>",
            f"Clinic: {request.clinic_name} ({request.clinic_id})",
            f"Procedures: {len(request.selected_procedures)}",
        ],
    )
    for procedure in request.selected_procedures:
        price = procedure.price if procedure.price is not None else "-"
        lines.append(f"  {procedure.id or '-'} {procedure.name or '-'} price={price}")
    return lines


def _parse_status(value: str | None) -> DeliveryStatus | None:
    if value is None:
        return None
    return DeliveryStatus(value.strip().lower())


def _delivery_settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate_for_delivery()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[DeliveryJobRepository]:
    repository = DeliveryJobRepository(
        settings.db_path,
        backoff=BackoffPolicy(
            max_retries=settings.delivery.max_retries,
            schedule_minutes=settings.delivery.schedule_minutes,
        ),
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()


@contextmanager
def _notifier(settings: Settings) -> Iterator[EchoNotifier | SendGridNotifier]:
    notifier = build_notifier(settings.notifier)
    try:
        yield notifier
    finally:
        notifier.close()


@contextmanager
def _service(settings: Settings) -> Iterator[DeliveryService]:
    with _repository(settings) as repository, _notifier(settings) as notifier:
        yield DeliveryService(
            repository=repository,
            executor=DeliveryExecutor(
                repository=repository,
                notifier=notifier,
                environment=settings.environment,
            ),
            environment=settings.environment,
        )
