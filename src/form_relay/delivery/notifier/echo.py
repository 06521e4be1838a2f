"""Notifier that only logs the rendered email; used for local runs."""

from __future__ import annotations

import logging

from form_relay.delivery.models import Notification
from form_relay.delivery.notifier.base import NotifierResult, format_email_body, format_subject

logger = logging.getLogger(__name__)


class EchoNotifier:
    def send(self, notification: Notification) -> NotifierResult:
        logger.info(
            "Echo notification for job %s\nSubject: %s\n%s",
            notification.job_id,
            format_subject(notification),
            format_email_body(notification),
        )
        return NotifierResult.ok()

    def close(self) -> None:
        return None
