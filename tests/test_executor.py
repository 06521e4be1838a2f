from __future__ import annotations

from collections.abc import Callable
from typing import Any

import allure
from sqlalchemy import text

from form_relay.delivery.executor import DEFAULT_FAILURE_MESSAGE, DeliveryExecutor
from form_relay.delivery.models import (
    ConsultationRequest,
    DeliveryOutcome,
    DeliveryStatus,
    Notification,
)
from form_relay.delivery.notifier import NotifierResult
from form_relay.delivery.repository import DeliveryJobRepository

pytestmark = [
    allure.epic("Delivery Engine"),
    allure.feature("Delivery Executor"),
]


def _executor(repository: DeliveryJobRepository, notifier: object) -> DeliveryExecutor:
    return DeliveryExecutor(repository=repository, notifier=notifier, environment="production")


def test_successful_send_marks_job_sent(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier()
    job = repository.create_job(consultation_request, environment="production")

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.SENT
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.status == DeliveryStatus.SENT
    assert stored.retry_count == 0
    assert [sent.job_id for sent in notifier.sent] == [job.job_id]
    assert notifier.sent[0].request == consultation_request
    assert notifier.sent[0].created_at == job.created_at


def test_notifier_exception_is_recorded_as_failure(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier(ConnectionError("connection reset by peer"))
    job = repository.create_job(consultation_request, environment="production")

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.RETRYING
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.status == DeliveryStatus.RETRYING
    assert stored.retry_count == 1
    assert stored.error_message == "connection reset by peer"


def test_failure_without_message_uses_default(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier(NotifierResult(success=False, error=None))
    job = repository.create_job(consultation_request, environment="production")

    _executor(repository, notifier).execute(job.job_id)

    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.error_message == DEFAULT_FAILURE_MESSAGE


def test_final_failure_reports_failed(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier(*[NotifierResult.failure("HTTP 503")] * 6)
    executor = _executor(repository, notifier)
    job = repository.create_job(consultation_request, environment="production")

    outcomes = [executor.execute(job.job_id) for _ in range(7)]

    assert outcomes == [DeliveryOutcome.RETRYING] * 5 + [
        DeliveryOutcome.FAILED,
        DeliveryOutcome.ALREADY_CLAIMED,
    ]
    assert len(notifier.sent) == 6
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.status == DeliveryStatus.FAILED
    assert stored.retry_count == 6
    assert stored.error_message == "HTTP 503"


def test_job_held_by_another_worker_is_not_sent(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier()
    job = repository.create_job(consultation_request, environment="production")
    assert repository.claim_job(job_id=job.job_id, environment="production")

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.ALREADY_CLAIMED
    assert notifier.sent == []
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.status == DeliveryStatus.PROCESSING


def test_other_environment_jobs_are_not_claimed(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier()
    job = repository.create_job(consultation_request, environment="staging")

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.ALREADY_CLAIMED
    assert notifier.sent == []


class _ResettingNotifier:
    """Simulates an operator reset landing while the send is in flight."""

    def __init__(self, repository: DeliveryJobRepository, result: NotifierResult) -> None:
        self.repository = repository
        self.result = result

    def send(self, notification: Notification) -> NotifierResult:
        self.repository.reset_job(job_id=notification.job_id, environment="production")
        return self.result


def test_reset_during_send_leaves_reset_state(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
) -> None:
    job = repository.create_job(consultation_request, environment="production")
    notifier = _ResettingNotifier(repository, NotifierResult.ok())

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.STATE_CHANGED
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.status == DeliveryStatus.RETRYING
    assert stored.retry_count == 0


def test_reset_during_failed_send_is_not_counted(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
) -> None:
    job = repository.create_job(consultation_request, environment="production")
    notifier = _ResettingNotifier(repository, NotifierResult.failure("timeout"))

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.STATE_CHANGED
    stored = repository.get_job(job_id=job.job_id)
    assert stored is not None
    assert stored.retry_count == 0
    assert stored.error_message is None


def test_unloadable_claimed_job_records_failure(
    repository: DeliveryJobRepository,
    consultation_request: ConsultationRequest,
    scripted_notifier: Callable[..., Any],
) -> None:
    notifier = scripted_notifier()
    job = repository.create_job(consultation_request, environment="production")
    with repository.engine.begin() as connection:
        connection.execute(
            text("UPDATE delivery_jobs SET selected_procedures_json = '{' WHERE job_id = :job_id"),
            {"job_id": job.job_id},
        )

    outcome = _executor(repository, notifier).execute(job.job_id)

    assert outcome == DeliveryOutcome.RETRYING
    assert notifier.sent == []
    with repository.engine.connect() as connection:
        status, retry_count, error_message = connection.execute(
            text(
                "SELECT status, retry_count, error_message FROM delivery_jobs "
                "WHERE job_id = :job_id",
            ),
            {"job_id": job.job_id},
        ).one()
    assert status == DeliveryStatus.RETRYING.value
    assert retry_count == 1
    assert error_message.startswith("Job could not be loaded:")
