"""Use-case services for intake and operator reprocessing."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from form_relay.delivery.errors import JobNotFoundError
from form_relay.delivery.executor import DeliveryExecutor
from form_relay.delivery.models import (
    DeliveryJob,
    DeliveryOutcome,
    DeliveryStatus,
    RelayRequest,
    RequestKind,
)
from form_relay.delivery.repository import DeliveryJobRepository
from form_relay.delivery.validation import (
    validate_clinic_listing_request,
    validate_consultation_request,
    validate_job_id,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubmitResult:
    """Intake outcome returned to the submitter."""

    job_id: str
    status: DeliveryStatus
    created_at: datetime


@dataclass(slots=True)
class ReprocessResult:
    """Manual override outcome for the operator."""

    job_id: str
    outcome: DeliveryOutcome
    job: DeliveryJob


class DeliveryService:
    """Coordinates validation, job creation and out-of-band attempts.

    Every job created here is stamped with this service's environment, and
    only that environment's jobs are claimed by its executor.
    """

    def __init__(
        self,
        *,
        repository: DeliveryJobRepository,
        executor: DeliveryExecutor,
        environment: str,
    ) -> None:
        self.repository = repository
        self.executor = executor
        self.environment = environment

    def submit(
        self,
        raw_payload: Mapping[str, object],
        *,
        kind: RequestKind = RequestKind.CONSULTATION,
    ) -> SubmitResult:
        """Validate and persist a submission, then try delivering it once.

        Raises ValidationError or StorageError; a failing inline attempt is
        logged and left to the retry sweep.
        """

        request: RelayRequest
        if kind == RequestKind.CLINIC_LISTING:
            request = validate_clinic_listing_request(raw_payload)
        else:
            request = validate_consultation_request(raw_payload)
        job = self.repository.create_job(request, environment=self.environment)

        status = job.status
        try:
            self.executor.execute(job.job_id)
            refreshed = self.repository.get_job(job_id=job.job_id)
            if refreshed is not None:
                status = refreshed.status
        except Exception:  # noqa: BLE001
            logger.exception("Inline delivery attempt failed for job %s", job.job_id)
        return SubmitResult(job_id=job.job_id, status=status, created_at=job.created_at)

    def reprocess(self, job_id: str) -> ReprocessResult:
        """Reset a job regardless of state and attempt it immediately."""

        canonical_id = validate_job_id(job_id)
        existing = self.repository.get_job(job_id=canonical_id)
        if existing is None or existing.environment != self.environment:
            raise JobNotFoundError(canonical_id)

        self.repository.reset_job(job_id=canonical_id, environment=self.environment)
        outcome = self.executor.execute(canonical_id)
        job = self.repository.get_job(job_id=canonical_id)
        if job is None:
            raise JobNotFoundError(canonical_id)
        logger.info(
            "Reprocessed job %s outcome=%s status=%s",
            canonical_id,
            outcome.value,
            job.status.value,
        )
        return ReprocessResult(job_id=canonical_id, outcome=outcome, job=job)
