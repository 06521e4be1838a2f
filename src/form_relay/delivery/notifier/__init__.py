"""Notification transports."""

from __future__ import annotations

from form_relay.config import NotifierSettings
from form_relay.delivery.notifier.base import Notifier, NotifierResult
from form_relay.delivery.notifier.echo import EchoNotifier
from form_relay.delivery.notifier.sendgrid import SendGridNotifier


def build_notifier(settings: NotifierSettings) -> EchoNotifier | SendGridNotifier:
    """Instantiate the configured transport."""

    if settings.backend == "echo":
        return EchoNotifier()
    if settings.backend == "sendgrid":
        return SendGridNotifier(
            api_key=settings.sendgrid_api_key,
            email_to=settings.email_to,
            email_from=settings.email_from,
            listing_email_to=settings.listing_email_to,
            base_url=settings.sendgrid_base_url,
            timeout_seconds=settings.timeout_seconds,
        )
    raise ValueError(f"Unsupported notifier backend: {settings.backend!r}")


__all__ = [
    "EchoNotifier",
    "Notifier",
    "NotifierResult",
    "SendGridNotifier",
    "build_notifier",
]
