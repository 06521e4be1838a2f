"""Errors that cross the intake and override boundaries."""

from __future__ import annotations


class DeliveryError(RuntimeError):
    """Base class for delivery relay errors."""


class ValidationError(DeliveryError, ValueError):
    """Submission or identifier rejected before touching the store."""

    def __init__(self, message: str, *, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.details = dict(details or {})


class StorageError(DeliveryError):
    """Persistence layer is unavailable or rejected the operation."""


class JobNotFoundError(DeliveryError):
    """No delivery job exists with the requested id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Delivery job not found: {job_id}")
        self.job_id = job_id
