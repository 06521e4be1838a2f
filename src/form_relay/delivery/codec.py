"""Text encoding of the selected-procedures list stored with each job.

Storage format: a JSON array of objects with exactly the keys ``id``,
``name`` and ``price``, written in list order. Numbers are emitted with
Python's shortest round-trip ``repr`` so ints stay ints and floats decode to
the identical value. ``NULL`` or empty text decodes to an empty list.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

from form_relay.delivery.models import SelectedProcedure

_PROCEDURE_KEYS = ("id", "name", "price")


def encode_procedures(procedures: Iterable[SelectedProcedure]) -> str:
    """Serialize procedures to the stored JSON text."""

    return json.dumps(
        [
            {"id": procedure.id, "name": procedure.name, "price": procedure.price}
            for procedure in procedures
        ],
        ensure_ascii=False,
        allow_nan=False,
    )


def decode_procedures(raw: str | None) -> tuple[SelectedProcedure, ...]:
    """Parse stored JSON text back into procedures, preserving order."""

    if raw is None or not raw.strip():
        return ()
    parsed = json.loads(raw)
    if not isinstance(parsed, list):
        raise ValueError(f"Stored procedures must be a JSON array, got {type(parsed).__name__}")

    procedures: list[SelectedProcedure] = []
    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise ValueError(f"Stored procedure #{index} must be a JSON object")
        unknown = set(item) - set(_PROCEDURE_KEYS)
        if unknown:
            raise ValueError(
                f"Stored procedure #{index} has unknown keys: {', '.join(sorted(unknown))}",
            )
        price = item.get("price")
        if price is not None and (isinstance(price, bool) or not isinstance(price, int | float)):
            raise ValueError(f"Stored procedure #{index} has non-numeric price: {price!r}")
        procedures.append(
            SelectedProcedure(id=item.get("id"), name=item.get("name"), price=price),
        )
    return tuple(procedures)
