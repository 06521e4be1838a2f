"""Persistent delivery job store with the atomic claim primitive."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, case, func, or_
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from form_relay.delivery.backoff import BackoffPolicy
from form_relay.delivery.codec import decode_procedures, encode_procedures
from form_relay.delivery.errors import JobNotFoundError, StorageError
from form_relay.delivery.models import (
    CLAIMABLE_STATUSES,
    ClinicListingRequest,
    ConsultationRequest,
    DeliveryJob,
    DeliveryStatus,
    ListingRequestType,
    RelayRequest,
    RequestKind,
    request_kind,
)
from form_relay.storage.alembic_runner import upgrade_head
from form_relay.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from form_relay.storage.sqlmodel_models import DeliveryJobRow

logger = logging.getLogger(__name__)

_CLAIMABLE_VALUES = tuple(status.value for status in CLAIMABLE_STATUSES)


class DeliveryJobRepository:
    """Delivery job persistence facade backed by SQLModel + SQLite.

    The only synchronization primitive is `claim_job`: a single conditional
    UPDATE that moves a job to `processing`. Holding `processing` is the
    exclusion token for the subsequent `record_success` / `record_failure`.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        backoff: BackoffPolicy | None = None,
        sqlite_busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.backoff = backoff or BackoffPolicy()
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    @property
    def max_retries(self) -> int:
        return self.backoff.max_retries

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        with _storage_errors("init_schema"):
            upgrade_head(self.db_path)

    def create_job(self, request: RelayRequest, *, environment: str) -> DeliveryJob:
        """Persist a new pending job in one transaction."""

        job_id = str(uuid4())
        with _storage_errors("create_job"), Session(self.engine) as session:
            row = DeliveryJobRow(
                job_id=job_id,
                status=DeliveryStatus.PENDING.value,
                retry_count=0,
                created_at=to_db_datetime(utc_now()),
                last_retry_at=None,
                error_message=None,
                environment=environment,
                **_payload_columns(request),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            job = _to_job(row)
        logger.info(
            "Created %s delivery job %s environment=%s",
            job.kind.value,
            job_id,
            environment,
        )
        return job

    def claim_job(self, *, job_id: str, environment: str) -> bool:
        """Atomically move a claimable job to processing; True only for the winner."""

        with _storage_errors("claim_job"), Session(self.engine) as session:
            result = session.exec(
                sa_update(DeliveryJobRow)
                .where(
                    col(DeliveryJobRow.job_id) == job_id,
                    col(DeliveryJobRow.environment) == environment,
                    col(DeliveryJobRow.status).in_(_CLAIMABLE_VALUES),
                    col(DeliveryJobRow.retry_count) < self.max_retries,
                )
                .values(status=DeliveryStatus.PROCESSING.value),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def record_success(self, *, job_id: str) -> bool:
        """Mark a processing job as sent."""

        with _storage_errors("record_success"), Session(self.engine) as session:
            result = session.exec(
                sa_update(DeliveryJobRow)
                .where(
                    col(DeliveryJobRow.job_id) == job_id,
                    col(DeliveryJobRow.status) == DeliveryStatus.PROCESSING.value,
                )
                .values(status=DeliveryStatus.SENT.value),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def record_failure(self, *, job_id: str, error_message: str) -> DeliveryStatus | None:
        """Count one failed attempt and return the resulting status.

        Returns None when the job is no longer in processing, for example
        after an operator reset while the attempt was in flight.
        """

        next_count = col(DeliveryJobRow.retry_count) + 1
        with _storage_errors("record_failure"), Session(self.engine) as session:
            result = session.exec(
                sa_update(DeliveryJobRow)
                .where(
                    col(DeliveryJobRow.job_id) == job_id,
                    col(DeliveryJobRow.status) == DeliveryStatus.PROCESSING.value,
                )
                .values(
                    retry_count=next_count,
                    last_retry_at=to_db_datetime(utc_now()),
                    error_message=error_message,
                    status=case(
                        (next_count >= self.max_retries, DeliveryStatus.FAILED.value),
                        else_=DeliveryStatus.RETRYING.value,
                    ),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            status = session.exec(
                select(DeliveryJobRow.status).where(DeliveryJobRow.job_id == job_id),
            ).one()
            session.commit()
        return DeliveryStatus(status)

    def find_eligible(
        self,
        *,
        environment: str,
        now: datetime | None = None,
    ) -> list[DeliveryJob]:
        """Return retry-eligible jobs, oldest first. Jobs are not claimed.

        Rows whose payload cannot be decoded are logged and left out, so one
        corrupt job does not hide the rest of the environment.
        """

        effective_now = now or utc_now()
        backoff_windows = [
            and_(
                col(DeliveryJobRow.retry_count) == retry_count,
                col(DeliveryJobRow.created_at) <= to_db_datetime(effective_now - threshold),
            )
            for retry_count, threshold in self.backoff.windows()
        ]
        with _storage_errors("find_eligible"), Session(self.engine) as session:
            rows = session.exec(
                select(DeliveryJobRow)
                .where(
                    DeliveryJobRow.environment == environment,
                    col(DeliveryJobRow.status).in_(_CLAIMABLE_VALUES),
                    col(DeliveryJobRow.retry_count) < self.max_retries,
                    or_(*backoff_windows),
                )
                .order_by(
                    col(DeliveryJobRow.created_at).asc(),
                    col(DeliveryJobRow.job_id).asc(),
                ),
            ).all()

        jobs: list[DeliveryJob] = []
        for row in rows:
            try:
                jobs.append(_to_job(row))
            except StorageError as error:
                logger.error("Skipping unreadable delivery job %s: %s", row.job_id, error)
        return jobs

    def reset_job(self, *, job_id: str, environment: str) -> DeliveryJob:
        """Operator override: back to retrying with a zero retry count, from any state.

        Jobs of other environments are treated as missing.
        """

        with _storage_errors("reset_job"), Session(self.engine) as session:
            row = session.exec(
                select(DeliveryJobRow).where(
                    DeliveryJobRow.job_id == job_id,
                    DeliveryJobRow.environment == environment,
                ),
            ).one_or_none()
            if row is None:
                raise JobNotFoundError(job_id)
            previous = row.status
            row.status = DeliveryStatus.RETRYING.value
            row.retry_count = 0
            row.last_retry_at = None
            row.error_message = None
            session.add(row)
            session.commit()
            session.refresh(row)
            job = _to_job(row)
        logger.info("Reset delivery job %s from status=%s", job_id, previous)
        return job

    def get_job(self, *, job_id: str) -> DeliveryJob | None:
        with _storage_errors("get_job"), Session(self.engine) as session:
            row = session.exec(
                select(DeliveryJobRow).where(DeliveryJobRow.job_id == job_id),
            ).one_or_none()
            return _to_job(row) if row is not None else None

    def list_jobs(
        self,
        *,
        environment: str,
        status: DeliveryStatus | None = None,
        limit: int = 50,
    ) -> list[DeliveryJob]:
        """List recent jobs of one environment, optionally filtered by status."""

        with _storage_errors("list_jobs"), Session(self.engine) as session:
            statement = (
                select(DeliveryJobRow)
                .where(DeliveryJobRow.environment == environment)
                .order_by(col(DeliveryJobRow.created_at).desc())
                .limit(limit)
            )
            if status is not None:
                statement = statement.where(DeliveryJobRow.status == status.value)
            rows = session.exec(statement).all()
            return [_to_job(row) for row in rows]

    def count_jobs_by_status(self, *, environment: str) -> dict[DeliveryStatus, int]:
        with _storage_errors("count_jobs_by_status"), Session(self.engine) as session:
            rows = session.exec(
                select(DeliveryJobRow.status, func.count())
                .where(DeliveryJobRow.environment == environment)
                .group_by(DeliveryJobRow.status),
            ).all()
        counts = dict.fromkeys(DeliveryStatus, 0)
        for status, count in rows:
            counts[DeliveryStatus(status)] = int(count)
        return counts


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as error:
        raise StorageError(f"Storage failure during {operation}: {error}") from error


def _payload_columns(request: RelayRequest) -> dict[str, Any]:
    columns: dict[str, Any] = {
        "kind": request_kind(request).value,
        "email": request.email,
        "phone": request.phone,
        "message": request.message,
        "clinic_name": request.clinic_name,
    }
    if isinstance(request, ClinicListingRequest):
        columns.update(
            city=request.city,
            state=request.state,
            address=request.address,
            website=request.website,
            clinic_category=request.clinic_category,
            primary_contact_name=request.primary_contact_name,
            additional_details=request.additional_details,
            request_type=request.request_type.value,
        )
    else:
        columns.update(
            first_name=request.first_name,
            last_name=request.last_name,
            clinic_id=request.clinic_id,
            selected_procedures_json=encode_procedures(request.selected_procedures),
        )
    return columns


def _to_request(row: DeliveryJobRow) -> RelayRequest:
    if RequestKind(row.kind) == RequestKind.CLINIC_LISTING:
        if row.city is None or row.state is None or row.address is None:
            raise ValueError("clinic listing row is missing its location")
        return ClinicListingRequest(
            clinic_name=row.clinic_name,
            city=row.city,
            state=row.state,
            address=row.address,
            email=row.email,
            request_type=ListingRequestType(row.request_type),
            website=row.website,
            clinic_category=row.clinic_category,
            primary_contact_name=row.primary_contact_name,
            phone=row.phone,
            additional_details=row.additional_details,
            message=row.message,
        )
    if row.first_name is None or row.last_name is None or row.clinic_id is None:
        raise ValueError("consultation row is missing contact fields")
    return ConsultationRequest(
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        phone=row.phone,
        message=row.message,
        clinic_id=row.clinic_id,
        clinic_name=row.clinic_name,
        selected_procedures=decode_procedures(row.selected_procedures_json),
    )


def _to_job(row: DeliveryJobRow) -> DeliveryJob:
    try:
        request = _to_request(row)
        status = DeliveryStatus(row.status)
    except ValueError as error:
        raise StorageError(f"Corrupt delivery job row {row.job_id}: {error}") from error
    return DeliveryJob(
        job_id=row.job_id,
        status=status,
        retry_count=row.retry_count,
        created_at=to_utc_aware_datetime(row.created_at),
        last_retry_at=(
            to_utc_aware_datetime(row.last_retry_at) if row.last_retry_at is not None else None
        ),
        error_message=row.error_message,
        environment=row.environment,
        request=request,
    )
