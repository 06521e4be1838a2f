"""SendGrid v3 mail API notifier."""

from __future__ import annotations

import logging

import httpx

from form_relay.delivery.models import Notification, RequestKind, request_kind
from form_relay.delivery.notifier.base import NotifierResult, format_email_body, format_subject

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.sendgrid.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
GENERIC_SEND_ERROR = "Email sending failed"


class SendGridNotifier:
    """Send relay emails through SendGrid's `/v3/mail/send` endpoint."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        api_key: str,
        email_to: str,
        email_from: str,
        listing_email_to: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.email_to = email_to
        self.listing_email_to = listing_email_to or email_to
        self.email_from = email_from
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    def send(self, notification: Notification) -> NotifierResult:
        message = {
            "personalizations": [{"to": [{"email": self.recipient_for(notification)}]}],
            "from": {"email": self.email_from},
            "subject": format_subject(notification),
            "content": [{"type": "text/plain", "value": format_email_body(notification)}],
        }
        try:
            response = self._client.post("/v3/mail/send", json=message)
        except httpx.TimeoutException:
            logger.warning("Timeout sending email for job %s", notification.job_id)
            return NotifierResult.failure("timeout")
        except httpx.HTTPError as exc:
            logger.warning("HTTP error sending email for job %s: %s", notification.job_id, exc)
            return NotifierResult.failure(str(exc) or GENERIC_SEND_ERROR)

        if response.is_success:
            return NotifierResult.ok()
        error = _api_error_message(response)
        logger.warning(
            "SendGrid rejected email for job %s: status=%s error=%s",
            notification.job_id,
            response.status_code,
            error,
        )
        return NotifierResult.failure(error)

    def recipient_for(self, notification: Notification) -> str:
        if request_kind(notification.request) == RequestKind.CLINIC_LISTING:
            return self.listing_email_to
        return self.email_to

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SendGridNotifier:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _api_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
    return f"HTTP {response.status_code}"
