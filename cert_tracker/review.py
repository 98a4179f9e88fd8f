"""
Manual-review edits.

Records are frozen: an edit returns a new record plus one Change entry per
field that actually changed. Edited collections go to the scoring engine
exactly like freshly imported ones.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Iterable, Mapping

from cert_tracker.normalization import cell_text, parse_date, parse_value
from cert_tracker.shared import AREAS, CATEGORIES, PARTNERS, Change, SalesRecord

logger = logging.getLogger(__name__)


def _gross_value(value: Any) -> float:
    number = parse_value(value, strict=True)
    if number < 0:
        raise ValueError(f"gross_value must be non-negative, got {value!r}")
    return number


def _choice(options: tuple[str, ...], field_name: str) -> Callable[[Any], str]:
    def convert(value: Any) -> str:
        text = cell_text(value).upper()
        if text not in options:
            raise ValueError(f"{field_name} must be one of {', '.join(options)}, got {value!r}")
        return text

    return convert


def _required_text(field_name: str) -> Callable[[Any], str]:
    def convert(value: Any) -> str:
        text = cell_text(value)
        if not text:
            raise ValueError(f"{field_name} cannot be empty")
        return text

    return convert


EDITABLE_FIELDS: dict[str, Callable[[Any], Any]] = {
    "gross_value": _gross_value,
    "activation_date": parse_date,
    "category": _choice(CATEGORIES, "category"),
    "partner": _choice(PARTNERS, "partner"),
    "area": _choice(AREAS, "area"),
    "product": _required_text("product"),
    "order_number": _required_text("order_number"),
    "network": cell_text,
}


def edit_record(
    record: SalesRecord,
    changes: Mapping[str, Any],
    *,
    reason: str,
) -> tuple[SalesRecord, list[Change]]:
    """
    Apply reviewer edits to one record.

    Raises ValueError for a field outside EDITABLE_FIELDS or a value that
    fails validation; nothing is applied in that case.
    """
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(unknown)}")

    updates: dict[str, Any] = {}
    audit: list[Change] = []
    for field_name, raw in changes.items():
        value = EDITABLE_FIELDS[field_name](raw)
        original = getattr(record, field_name)
        if value == original:
            continue
        updates[field_name] = value
        audit.append(
            Change(
                record_id=record.id,
                field_name=field_name,
                original_value=original,
                new_value=value,
                reason=reason,
            )
        )

    if not updates:
        return record, []
    logger.info("Record %s edited: %s", record.id, ", ".join(sorted(updates)))
    return dataclasses.replace(record, **updates), audit


def edit_records(
    records: Iterable[SalesRecord],
    edits: Mapping[str, Mapping[str, Any]],
    *,
    reason: str,
) -> tuple[list[SalesRecord], list[Change]]:
    """Apply ``edits`` (record id → field changes) across a collection."""
    records = list(records)
    missing = set(edits) - {record.id for record in records}
    if missing:
        raise ValueError(f"Unknown record id(s): {', '.join(sorted(missing))}")

    edited: list[SalesRecord] = []
    log: list[Change] = []
    for record in records:
        if record.id in edits:
            record, audit = edit_record(record, edits[record.id], reason=reason)
            log.extend(audit)
        edited.append(record)
    return edited, log
