"""
Crew actuals payload — declared shape and validating parser.

The crew app posts a camelCase JSON object. ``parse_actuals`` turns it into
an immutable ``Actuals`` record or raises ValidationError listing every bad
field; nothing downstream ever sees an unvalidated quantity.

Accepted keys:
    openCellSets     number >= 0           (omitted → nothing drawn)
    closedCellSets   number >= 0           (omitted → nothing drawn)
    laborHours       number >= 0           (omitted → P&L uses planned manHours)
    inventory        [{"id": int, "quantity": number >= 0}, ...]
    equipment        [int | {"id": int}, ...]   (omit to use the job's planned list)
    completedBy      str                   (crew member name)
    notes            str

Quantities are capped at MAX_QUANTITY, the largest value a Numeric(12, 2)
column holds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from foamops.core.exceptions import ValidationError

ALLOWED_KEYS = frozenset({
    "openCellSets", "closedCellSets", "laborHours",
    "inventory", "equipment", "completedBy", "notes",
})

MAX_TEXT_LEN = 200
MAX_NOTES_LEN = 2000
MAX_QUANTITY = Decimal("9999999999.99")
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class InventoryUsage:
    """One consumed inventory item."""
    item_id: int
    quantity: Decimal


@dataclass(frozen=True)
class Actuals:
    """Validated crew-reported consumption for one job.

    Quantity fields are None when the crew did not report them.
    """
    open_cell_sets: Decimal | None = None
    closed_cell_sets: Decimal | None = None
    labor_hours: Decimal | None = None
    inventory: tuple[InventoryUsage, ...] = field(default_factory=tuple)
    equipment_ids: tuple[int, ...] | None = None
    completed_by: str | None = None
    notes: str | None = None

    def to_payload(self) -> dict:
        """camelCase form stored on ``Job.actuals``; unreported fields stay absent."""
        payload = {}
        for key, value in (
            ("openCellSets", self.open_cell_sets),
            ("closedCellSets", self.closed_cell_sets),
            ("laborHours", self.labor_hours),
        ):
            if value is not None:
                payload[key] = float(value)
        payload["inventory"] = [
            {"id": u.item_id, "quantity": float(u.quantity)} for u in self.inventory
        ]
        if self.equipment_ids is not None:
            payload["equipment"] = list(self.equipment_ids)
        if self.completed_by:
            payload["completedBy"] = self.completed_by
        if self.notes:
            payload["notes"] = self.notes
        return payload


def parse_quantity(value) -> Decimal:
    """Parse a finite, non-negative amount with at most two decimal places.

    Raises:
        ValueError: with the reason, for bools, non-numbers, non-finite,
                    negative, over-large or over-precise values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError("must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("must be a finite number")
    try:
        qty = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError("must be a number") from None
    if not qty.is_finite():
        raise ValueError("must be a finite number")
    if qty < 0:
        raise ValueError("must be >= 0")
    if qty > MAX_QUANTITY:
        raise ValueError(f"must be <= {MAX_QUANTITY}")
    try:
        exact = qty == qty.quantize(_CENT)
    except InvalidOperation:
        exact = False
    if not exact:
        raise ValueError("at most two decimal places")
    return qty


def _quantity(value, name: str, errors: dict) -> Decimal | None:
    if value is None:
        return None
    try:
        return parse_quantity(value)
    except ValueError as exc:
        errors[name] = str(exc)
        return None


def _identifier(value, name: str, errors: dict) -> int | None:
    if isinstance(value, bool):
        errors[name] = "must be a positive integer id"
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        errors[name] = "must be a positive integer id"
        return None
    return value


def _text(value, name: str, limit: int, errors: dict) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        errors[name] = "must be a string"
        return None
    value = value.strip()
    if len(value) > limit:
        errors[name] = f"must be <= {limit} characters"
        return None
    return value or None


def _parse_inventory(raw, errors: dict) -> tuple[InventoryUsage, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        errors["inventory"] = "must be a list of {id, quantity} objects"
        return ()

    # Duplicate ids are merged so each item gets exactly one log entry.
    merged: dict[int, Decimal] = {}
    for idx, entry in enumerate(raw):
        prefix = f"inventory[{idx}]"
        if not isinstance(entry, dict):
            errors[prefix] = "must be an object"
            continue
        unknown = set(entry) - {"id", "quantity"}
        if unknown:
            errors[prefix] = f"unknown keys: {', '.join(sorted(unknown))}"
            continue
        if "id" not in entry:
            errors[f"{prefix}.id"] = "is required"
            continue
        item_id = _identifier(entry["id"], f"{prefix}.id", errors)
        qty = _quantity(entry.get("quantity"), f"{prefix}.quantity", errors)
        if item_id is None or qty is None:
            continue
        merged[item_id] = merged.get(item_id, Decimal("0")) + qty

    for item_id, qty in merged.items():
        if qty > MAX_QUANTITY:
            errors[f"inventory.{item_id}"] = f"total quantity must be <= {MAX_QUANTITY}"

    return tuple(
        InventoryUsage(item_id=item_id, quantity=qty)
        for item_id, qty in merged.items()
        if qty > 0
    )


def _parse_equipment(raw, errors: dict) -> tuple[int, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        errors["equipment"] = "must be a list of equipment ids"
        return None
    ids: list[int] = []
    for idx, entry in enumerate(raw):
        value = entry.get("id") if isinstance(entry, dict) else entry
        eq_id = _identifier(value, f"equipment[{idx}]", errors)
        if eq_id is not None and eq_id not in ids:
            ids.append(eq_id)
    return tuple(ids)


def parse_actuals(payload) -> Actuals:
    """Validate a crew submission and return an ``Actuals`` record.

    Raises:
        ValidationError: payload is not an object, carries undeclared keys, or
                         any quantity/id is malformed. ``details`` maps every
                         offending field to a reason.
    """
    if not isinstance(payload, dict):
        raise ValidationError("actuals must be a JSON object")

    errors: dict[str, str] = {}
    for key in sorted(set(payload) - ALLOWED_KEYS):
        errors[key] = "unknown field"

    actuals = Actuals(
        open_cell_sets=_quantity(payload.get("openCellSets"), "openCellSets", errors),
        closed_cell_sets=_quantity(payload.get("closedCellSets"), "closedCellSets", errors),
        labor_hours=_quantity(payload.get("laborHours"), "laborHours", errors),
        inventory=_parse_inventory(payload.get("inventory"), errors),
        equipment_ids=_parse_equipment(payload.get("equipment"), errors),
        completed_by=_text(payload.get("completedBy"), "completedBy", MAX_TEXT_LEN, errors),
        notes=_text(payload.get("notes"), "notes", MAX_NOTES_LEN, errors),
    )

    if errors:
        raise ValidationError("Invalid actuals", details=errors)
    return actuals
