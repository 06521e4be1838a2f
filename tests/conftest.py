"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest

from form_relay.delivery.backoff import BackoffPolicy
from form_relay.delivery.models import (
    ClinicListingRequest,
    ConsultationRequest,
    ListingRequestType,
    Notification,
    SelectedProcedure,
)
from form_relay.delivery.notifier import NotifierResult
from form_relay.delivery.repository import DeliveryJobRepository


class ScriptedNotifier:
    """Replays scripted results, then keeps succeeding."""

    def __init__(self, script: Sequence[NotifierResult | Exception] = ()) -> None:
        self._script = list(script)
        self.sent: list[Notification] = []

    def send(self, notification: Notification) -> NotifierResult:
        self.sent.append(notification)
        if not self._script:
            return NotifierResult.ok()
        step = self._script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "delivery.db"


@pytest.fixture()
def repository(db_path: Path) -> Iterator[DeliveryJobRepository]:
    repo = DeliveryJobRepository(db_path)
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def immediate_repository(tmp_path: Path) -> Iterator[DeliveryJobRepository]:
    """Repository whose jobs are eligible right after creation."""

    repo = DeliveryJobRepository(
        tmp_path / "immediate.db",
        backoff=BackoffPolicy(schedule_minutes=(0,)),
    )
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def consultation_request() -> ConsultationRequest:
    return ConsultationRequest(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="+1 555 0100",
        message="Looking for a consultation next week.",
        clinic_id="clinic-42",
        clinic_name="Harbor Dermatology",
        selected_procedures=(
            SelectedProcedure(id="botox", name="Botox", price=350.0),
            SelectedProcedure(id="peel", name="Chemical Peel", price=129.99),
        ),
    )


@pytest.fixture()
def raw_payload() -> dict[str, object]:
    return {
        "firstName": "  Ada ",
        "lastName": "Lovelace",
        "email": "Ada@Example.com",
        "phone": "+1 555 0100",
        "message": "Looking for a consultation next week.",
        "clinicId": "clinic-42",
        "clinicName": "Harbor Dermatology",
        "selectedProcedures": [
            {"id": "botox", "name": "Botox", "price": 350},
            {"id": "peel", "name": "Chemical Peel", "price": 129.99},
        ],
    }


@pytest.fixture()
def listing_request() -> ClinicListingRequest:
    return ClinicListingRequest(
        clinic_name="Harbor Dermatology",
        city="Portland",
        state="OR",
        address="12 Harbor Way",
        email="owner@harbor.example",
        request_type=ListingRequestType.NEW,
        website="https://harbor.example",
        clinic_category="Dermatology",
        primary_contact_name="Mary Shelley",
        phone="+1 555 0199",
        additional_details="Open on Saturdays.",
        message="Please list us under skin care.",
    )


@pytest.fixture()
def raw_listing_payload() -> dict[str, object]:
    return {
        "clinicName": " Harbor Dermatology ",
        "city": "Portland",
        "state": "OR",
        "address": "12 Harbor Way",
        "website": "https://harbor.example",
        "clinicCategory": "Dermatology",
        "primaryContactName": "Mary Shelley",
        "email": "Owner@Harbor.example",
        "phone": "+1 555 0199",
        "additionalDetails": "Open on Saturdays.",
        "message": "Please list us under skin care.",
        "requestType": "new",
    }


@pytest.fixture()
def scripted_notifier() -> Callable[..., ScriptedNotifier]:
    def _factory(*script: NotifierResult | Exception) -> ScriptedNotifier:
        return ScriptedNotifier(script)

    return _factory
