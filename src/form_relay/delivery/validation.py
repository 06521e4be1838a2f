"""Field-level validation of raw form submissions."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from uuid import UUID

from form_relay.delivery.errors import ValidationError
from form_relay.delivery.models import (
    ClinicListingRequest,
    ConsultationRequest,
    ListingRequestType,
    SelectedProcedure,
)

NAME_MAX_CHARS = 255
PHONE_MAX_CHARS = 50
MESSAGE_MAX_CHARS = 5000

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NUMERIC_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def validate_consultation_request(raw: Mapping[str, object]) -> ConsultationRequest:
    """Build a request from a camelCase form payload or raise ValidationError.

    All field errors are collected; `details` maps field path to the first
    message for that field.
    """

    if not isinstance(raw, Mapping):
        raise ValidationError("Validation failed", details={"body": "Payload must be an object"})

    errors: dict[str, str] = {}
    first_name = _required_text(raw, "firstName", "First name", errors)
    last_name = _required_text(raw, "lastName", "Last name", errors)
    email = _email(raw, errors)
    phone = _optional_text(raw, "phone", "Phone", PHONE_MAX_CHARS, errors)
    message = _optional_text(raw, "message", "Message", MESSAGE_MAX_CHARS, errors)
    clinic_id = _required_text(raw, "clinicId", "Clinic ID", errors)
    clinic_name = _required_text(raw, "clinicName", "Clinic name", errors)
    procedures = _procedures(raw.get("selectedProcedures"), errors)

    if errors:
        raise ValidationError("Validation failed", details=errors)
    return ConsultationRequest(
        first_name=first_name or "",
        last_name=last_name or "",
        email=email or "",
        phone=phone,
        message=message,
        clinic_id=clinic_id or "",
        clinic_name=clinic_name or "",
        selected_procedures=procedures,
    )


def validate_clinic_listing_request(raw: Mapping[str, object]) -> ClinicListingRequest:
    """Build a clinic listing request from a camelCase payload or raise ValidationError."""

    if not isinstance(raw, Mapping):
        raise ValidationError("Validation failed", details={"body": "Payload must be an object"})

    errors: dict[str, str] = {}
    clinic_name = _required_text(raw, "clinicName", "Clinic name", errors)
    city = _required_text(raw, "city", "City", errors)
    state = _required_text(raw, "state", "State", errors)
    address = _required_text(raw, "address", "Address", errors)
    email = _email(raw, errors)
    request_type = _listing_request_type(raw.get("requestType"), errors)
    website = _optional_text(raw, "website", "Website", NAME_MAX_CHARS, errors)
    category = _optional_text(raw, "clinicCategory", "Clinic category", NAME_MAX_CHARS, errors)
    contact = _optional_text(
        raw,
        "primaryContactName",
        "Primary contact name",
        NAME_MAX_CHARS,
        errors,
    )
    phone = _optional_text(raw, "phone", "Phone", PHONE_MAX_CHARS, errors)
    details = _optional_text(
        raw,
        "additionalDetails",
        "Additional details",
        MESSAGE_MAX_CHARS,
        errors,
    )
    message = _optional_text(raw, "message", "Message", MESSAGE_MAX_CHARS, errors)

    if errors or request_type is None:
        raise ValidationError("Validation failed", details=errors)
    return ClinicListingRequest(
        clinic_name=clinic_name or "",
        city=city or "",
        state=state or "",
        address=address or "",
        email=email or "",
        request_type=request_type,
        website=website,
        clinic_category=category,
        primary_contact_name=contact,
        phone=phone,
        additional_details=details,
        message=message,
    )


def validate_job_id(value: str) -> str:
    """Return the canonical lowercase UUID string or raise ValidationError."""

    candidate = value.strip()
    try:
        parsed = UUID(candidate)
    except ValueError as error:
        raise ValidationError(
            "Invalid request ID format",
            details={"requestId": "Must be a UUID"},
        ) from error
    if str(parsed) != candidate.lower():
        raise ValidationError(
            "Invalid request ID format",
            details={"requestId": "Must be a hyphenated UUID"},
        )
    return str(parsed)


def _required_text(
    raw: Mapping[str, object],
    key: str,
    label: str,
    errors: dict[str, str],
    *,
    max_chars: int = NAME_MAX_CHARS,
) -> str | None:
    value = raw.get(key)
    if value is None:
        errors.setdefault(key, f"{label} is required")
        return None
    if not isinstance(value, str):
        errors.setdefault(key, f"{label} must be a string")
        return None
    normalized = value.strip()
    if not normalized:
        errors.setdefault(key, f"{label} is required")
        return None
    if len(normalized) > max_chars:
        errors.setdefault(key, f"{label} must be less than {max_chars} characters")
        return None
    return normalized


def _optional_text(
    raw: Mapping[str, object],
    key: str,
    label: str,
    max_chars: int,
    errors: dict[str, str],
    *,
    error_key: str | None = None,
) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.setdefault(error_key or key, f"{label} must be a string")
        return None
    normalized = value.strip()
    if len(normalized) > max_chars:
        errors.setdefault(error_key or key, f"{label} must be less than {max_chars} characters")
        return None
    return normalized or None


def _email(raw: Mapping[str, object], errors: dict[str, str]) -> str | None:
    value = _required_text(raw, "email", "Email", errors)
    if value is None:
        return None
    if not _EMAIL_PATTERN.match(value):
        errors.setdefault("email", "Invalid email format")
        return None
    return value.lower()


def _procedures(value: object, errors: dict[str, str]) -> tuple[SelectedProcedure, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        errors.setdefault("selectedProcedures", "Selected procedures must be an array")
        return ()

    procedures: list[SelectedProcedure] = []
    for index, item in enumerate(value):
        path = f"selectedProcedures[{index}]"
        if not isinstance(item, Mapping):
            errors.setdefault(path, "Procedure must be an object")
            continue
        procedure_id = _optional_text(
            item,
            "id",
            "Procedure ID",
            NAME_MAX_CHARS,
            errors,
            error_key=f"{path}.id",
        )
        name = _optional_text(
            item,
            "name",
            "Procedure name",
            NAME_MAX_CHARS,
            errors,
            error_key=f"{path}.name",
        )
        price = _price(item.get("price"), f"{path}.price", errors)
        procedures.append(SelectedProcedure(id=procedure_id, name=name, price=price))
    return tuple(procedures)


def _price(value: object, path: str, errors: dict[str, str]) -> float | int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        errors.setdefault(path, "Procedure price must be a number")
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            errors.setdefault(path, "Procedure price must be a number")
            return None
        return value
    if isinstance(value, str) and _NUMERIC_PATTERN.match(value.strip()):
        token = value.strip()
        return float(token) if "." in token else int(token)
    errors.setdefault(path, "Procedure price must be a number")
    return None


def _listing_request_type(value: object, errors: dict[str, str]) -> ListingRequestType | None:
    if value is None:
        errors.setdefault("requestType", "Request type is required")
        return None
    token = value.strip().lower() if isinstance(value, str) else ""
    try:
        return ListingRequestType(token)
    except ValueError:
        errors.setdefault("requestType", "Request type must be 'new' or 'adjustment'")
        return None
