"""Notifier interface and shared email formatting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from form_relay.delivery.models import (
    ClinicListingRequest,
    ConsultationRequest,
    ListingRequestType,
    Notification,
)


@dataclass(slots=True, frozen=True)
class NotifierResult:
    """Outcome reported by a notifier for one send."""

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> NotifierResult:
        return cls(success=True)

    @classmethod
    def failure(cls, error: str | None = None) -> NotifierResult:
        return cls(success=False, error=error)


class Notifier(Protocol):
    """Protocol implemented by notification transports."""

    def send(self, notification: Notification) -> NotifierResult:
        """Deliver one notification and report success or a diagnostic."""


def format_subject(notification: Notification) -> str:
    request = notification.request
    if isinstance(request, ClinicListingRequest):
        label = "New Listing" if request.request_type == ListingRequestType.NEW else "Adjustment"
        return (
            f"New Clinic Listing Request - {label} - {request.clinic_name} - {notification.job_id}"
        )
    return f"New Consultation Request - {request.clinic_name} - {notification.job_id}"


def format_email_body(notification: Notification) -> str:
    """Render the plain-text notification email for either form."""

    request = notification.request
    if isinstance(request, ClinicListingRequest):
        lines = _listing_lines(request)
    else:
        lines = _consultation_lines(request)

    submitted = notification.created_at.strftime("%Y-%m-%d %H:%M:%S")
    lines.extend(
        [
            "---",
            f"Request ID: {notification.job_id}",
            f"Submitted: {submitted} UTC",
        ],
    )
    return "\n".join(lines) + "\n"


def _consultation_lines(request: ConsultationRequest) -> list[str]:
    lines = [
        "A new consultation request has been received:",
        "",
        "CONTACT INFORMATION:",
        f"- Name: {request.first_name} {request.last_name}",
        f"- Email: {request.email}",
        f"- Phone: {request.phone or '(not provided)'}",
        "",
        "CLINIC INFORMATION:",
        f"- Clinic ID: {request.clinic_id}",
        f"- Clinic Name: {request.clinic_name}",
        "",
    ]

    if request.selected_procedures:
        lines.append("SELECTED PROCEDURES:")
        total = 0.0
        for index, procedure in enumerate(request.selected_procedures, start=1):
            price = float(procedure.price or 0)
            total += price
            lines.append(f"{index}. {procedure.name} - ${price:.2f}")
        lines.extend(["", f"Total Estimate: ${total:.2f}", ""])

    if request.message:
        lines.extend(["MESSAGE:", request.message, ""])
    return lines


def _listing_lines(request: ClinicListingRequest) -> list[str]:
    if request.request_type == ListingRequestType.NEW:
        label = "New Clinic Listing"
    else:
        label = "Clinic Listing Adjustment"
    lines = [
        "A new clinic listing request has been received:",
        "",
        f"REQUEST TYPE: {label}",
        "",
        "CLINIC INFORMATION:",
        f"- Clinic Name: {request.clinic_name}",
        f"- Address: {request.address}",
        f"- City: {request.city}",
        f"- State: {request.state}",
    ]
    if request.website:
        lines.append(f"- Website: {request.website}")
    if request.clinic_category:
        lines.append(f"- Category: {request.clinic_category}")
    lines.extend(["", "CONTACT INFORMATION:", f"- Email: {request.email}"])
    if request.primary_contact_name:
        lines.append(f"- Primary Contact Name: {request.primary_contact_name}")
    if request.phone:
        lines.append(f"- Phone: {request.phone}")
    lines.append("")

    if request.additional_details:
        lines.extend(["ADDITIONAL DETAILS:", request.additional_details, ""])
    if request.message:
        lines.extend(["MESSAGE TO GLOWRA:", request.message, ""])
    return lines
