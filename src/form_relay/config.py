"""Runtime configuration for the delivery relay."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from form_relay.delivery.backoff import DEFAULT_MAX_RETRIES, DEFAULT_SCHEDULE_MINUTES

SUPPORTED_NOTIFIER_BACKENDS = ("sendgrid", "echo")


@dataclass(slots=True)
class DeliverySettings:
    """Retry ceiling, backoff schedule and sweep cadence."""

    max_retries: int = DEFAULT_MAX_RETRIES
    schedule_minutes: tuple[int, ...] = DEFAULT_SCHEDULE_MINUTES
    sweep_interval_seconds: float = 300.0


@dataclass(slots=True)
class NotifierSettings:
    """Outbound email transport settings."""

    backend: str = "sendgrid"
    sendgrid_api_key: str = ""
    sendgrid_base_url: str = "https://api.sendgrid.com"
    email_to: str = "csrequestforwarding@glowra.com"
    listing_email_to: str = "list@glowra.com"
    email_from: str = "noreply@glowra.com"
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".form_relay.db")
    environment: str = "development"
    sqlite_busy_timeout_ms: int = 5000
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    notifier: NotifierSettings = field(default_factory=NotifierSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("FORM_RELAY_DB_PATH", ".form_relay.db")),
            environment=os.getenv("FORM_RELAY_ENVIRONMENT", "development").strip(),
            sqlite_busy_timeout_ms=int(os.getenv("FORM_RELAY_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            delivery=DeliverySettings(
                max_retries=int(
                    os.getenv("FORM_RELAY_MAX_RETRIES", str(DEFAULT_MAX_RETRIES)),
                ),
                schedule_minutes=_parse_schedule(os.getenv("FORM_RELAY_BACKOFF_MINUTES")),
                sweep_interval_seconds=float(
                    os.getenv("FORM_RELAY_SWEEP_INTERVAL_SECONDS", "300"),
                ),
            ),
            notifier=NotifierSettings(
                backend=os.getenv("FORM_RELAY_NOTIFIER_BACKEND", "sendgrid").strip().lower(),
                sendgrid_api_key=os.getenv("FORM_RELAY_SENDGRID_API_KEY", ""),
                sendgrid_base_url=os.getenv(
                    "FORM_RELAY_SENDGRID_BASE_URL",
                    "https://api.sendgrid.com",
                ),
                email_to=os.getenv("FORM_RELAY_EMAIL_TO", "csrequestforwarding@glowra.com"),
                listing_email_to=os.getenv("FORM_RELAY_LISTING_EMAIL_TO", "list@glowra.com"),
                email_from=os.getenv("FORM_RELAY_EMAIL_FROM", "noreply@glowra.com"),
                timeout_seconds=float(os.getenv("FORM_RELAY_NOTIFIER_TIMEOUT_SECONDS", "30")),
            ),
        )

    def validate_for_delivery(self) -> None:
        """Raise configuration error if delivery settings are unusable."""

        if not self.environment:
            raise ValueError("FORM_RELAY_ENVIRONMENT must not be empty.")
        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("FORM_RELAY_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.delivery.max_retries < 1:
            raise ValueError("FORM_RELAY_MAX_RETRIES must be >= 1.")
        if self.delivery.sweep_interval_seconds <= 0:
            raise ValueError("FORM_RELAY_SWEEP_INTERVAL_SECONDS must be > 0.")

        notifier = self.notifier
        if notifier.backend not in SUPPORTED_NOTIFIER_BACKENDS:
            raise ValueError(
                f"Unsupported FORM_RELAY_NOTIFIER_BACKEND: {notifier.backend!r}. "
                f"Expected one of: {', '.join(SUPPORTED_NOTIFIER_BACKENDS)}.",
            )
        if notifier.timeout_seconds <= 0:
            raise ValueError("FORM_RELAY_NOTIFIER_TIMEOUT_SECONDS must be > 0.")
        if notifier.backend == "sendgrid":
            if not notifier.sendgrid_api_key.strip():
                raise ValueError(
                    "FORM_RELAY_SENDGRID_API_KEY is required for the sendgrid notifier. "
                    "Set it or use FORM_RELAY_NOTIFIER_BACKEND=echo.",
                )
            _validate_base_url(notifier.sendgrid_base_url)


def _parse_schedule(raw: str | None) -> tuple[int, ...]:
    if raw is None or not raw.strip():
        return DEFAULT_SCHEDULE_MINUTES
    values: list[int] = []
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        try:
            minutes = int(token)
        except ValueError as error:
            raise ValueError(f"Invalid FORM_RELAY_BACKOFF_MINUTES entry: {token!r}") from error
        if minutes < 0:
            raise ValueError(f"FORM_RELAY_BACKOFF_MINUTES entries must be >= 0, got {minutes}")
        values.append(minutes)
    if not values:
        raise ValueError("FORM_RELAY_BACKOFF_MINUTES must list at least one threshold.")
    return tuple(values)


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid FORM_RELAY_SENDGRID_BASE_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
