"""One delivery attempt: claim, notify, record outcome."""

from __future__ import annotations

import logging

from form_relay.delivery.errors import JobNotFoundError, StorageError
from form_relay.delivery.models import DeliveryOutcome, DeliveryStatus, Notification
from form_relay.delivery.notifier import Notifier, NotifierResult
from form_relay.delivery.repository import DeliveryJobRepository

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "Notification delivery failed"


class DeliveryExecutor:
    """Drives a single job through processing to its next state.

    Notifier exceptions and reported failures share one channel: both become
    a recorded failure on the job, never an exception for the caller.
    A claimed job that cannot be loaded is recorded as a failed attempt too.
    Other storage errors propagate.
    """

    def __init__(
        self,
        *,
        repository: DeliveryJobRepository,
        notifier: Notifier,
        environment: str,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.environment = environment

    def execute(self, job_id: str) -> DeliveryOutcome:
        if not self.repository.claim_job(job_id=job_id, environment=self.environment):
            logger.info("Job %s already claimed or not claimable; skipping", job_id)
            return DeliveryOutcome.ALREADY_CLAIMED

        try:
            job = self.repository.get_job(job_id=job_id)
        except StorageError as error:
            logger.error("Job %s claimed but could not be loaded: %s", job_id, error)
            return self._record_failure(job_id, f"Job could not be loaded: {error}")
        if job is None:
            raise JobNotFoundError(job_id)

        result = self._send(Notification.from_job(job))
        if result.success:
            if not self.repository.record_success(job_id=job_id):
                logger.warning("Job %s left processing while sending; success not recorded", job_id)
                return DeliveryOutcome.STATE_CHANGED
            logger.info("Job %s sent", job_id)
            return DeliveryOutcome.SENT
        return self._record_failure(job_id, result.error or DEFAULT_FAILURE_MESSAGE)

    def _record_failure(self, job_id: str, error_message: str) -> DeliveryOutcome:
        try:
            status = self.repository.record_failure(job_id=job_id, error_message=error_message)
        except StorageError:
            logger.error("Job %s left in processing; reprocess it once storage recovers", job_id)
            raise
        if status is None:
            logger.warning("Job %s left processing while sending; failure not recorded", job_id)
            return DeliveryOutcome.STATE_CHANGED
        if status == DeliveryStatus.FAILED:
            logger.error("Job %s failed permanently: %s", job_id, error_message)
            return DeliveryOutcome.FAILED
        logger.warning("Job %s attempt failed, will retry: %s", job_id, error_message)
        return DeliveryOutcome.RETRYING

    def _send(self, notification: Notification) -> NotifierResult:
        try:
            return self.notifier.send(notification)
        except Exception as error:  # noqa: BLE001
            logger.warning(
                "Notifier raised for job %s: %s",
                notification.job_id,
                error,
                exc_info=True,
            )
            return NotifierResult.failure(str(error) or type(error).__name__)
