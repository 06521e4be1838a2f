"""Domain models for delivery jobs and their lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DeliveryStatus(str, Enum):
    """Durable delivery job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    RETRYING = "retrying"
    SENT = "sent"
    FAILED = "failed"


CLAIMABLE_STATUSES: tuple[DeliveryStatus, ...] = (
    DeliveryStatus.PENDING,
    DeliveryStatus.RETRYING,
    DeliveryStatus.FAILED,
)
TERMINAL_STATUSES: frozenset[DeliveryStatus] = frozenset(
    {DeliveryStatus.SENT, DeliveryStatus.FAILED},
)


class RequestKind(str, Enum):
    """Form that produced a delivery job."""

    CONSULTATION = "consultation"
    CLINIC_LISTING = "clinic_listing"


class ListingRequestType(str, Enum):
    NEW = "new"
    ADJUSTMENT = "adjustment"


class DeliveryOutcome(str, Enum):
    """Result of one execute call on a job."""

    SENT = "sent"
    RETRYING = "retrying"
    FAILED = "failed"
    ALREADY_CLAIMED = "already_claimed"
    STATE_CHANGED = "state_changed"


@dataclass(slots=True, frozen=True)
class SelectedProcedure:
    """One procedure picked on the consultation form."""

    id: str | None
    name: str | None
    price: float | int | None = None


@dataclass(slots=True, frozen=True)
class ConsultationRequest:
    """Validated form submission carried by a delivery job."""

    first_name: str
    last_name: str
    email: str
    clinic_id: str
    clinic_name: str
    phone: str | None = None
    message: str | None = None
    selected_procedures: tuple[SelectedProcedure, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class ClinicListingRequest:
    """Validated request to add a clinic listing or adjust an existing one."""

    clinic_name: str
    city: str
    state: str
    address: str
    email: str
    request_type: ListingRequestType
    website: str | None = None
    clinic_category: str | None = None
    primary_contact_name: str | None = None
    phone: str | None = None
    additional_details: str | None = None
    message: str | None = None


RelayRequest = ConsultationRequest | ClinicListingRequest


@dataclass(slots=True)
class DeliveryJob:
    """Readable job view for executor, scheduler and CLI logic."""

    job_id: str
    status: DeliveryStatus
    retry_count: int
    created_at: datetime
    last_retry_at: datetime | None
    error_message: str | None
    environment: str
    request: RelayRequest

    @property
    def kind(self) -> RequestKind:
        return request_kind(self.request)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(slots=True, frozen=True)
class Notification:
    """Everything a notifier needs to announce one submission."""

    job_id: str
    created_at: datetime
    request: RelayRequest

    @classmethod
    def from_job(cls, job: DeliveryJob) -> Notification:
        return cls(job_id=job.job_id, created_at=job.created_at, request=job.request)


def request_kind(request: RelayRequest) -> RequestKind:
    if isinstance(request, ClinicListingRequest):
        return RequestKind.CLINIC_LISTING
    return RequestKind.CONSULTATION
