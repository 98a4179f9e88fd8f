from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from cert_tracker.config import HEADER_VARIANTS, SOURCE_COLUMNS, validate_source
from cert_tracker.normalization import fold_text


def header_key(value: Any) -> str:
    """Comparison key for a header: no accents, no punctuation, lowercase."""
    return re.sub(r"[^a-z0-9]+", "", fold_text(str(value or "")))


def resolve_header(
    headers: Iterable[Any],
    field: str,
    variants: Mapping[str, tuple[str, ...]] = HEADER_VARIANTS,
) -> str | None:
    """Return the raw header that supplies ``field``, or None."""
    headers = list(headers)
    if field in headers:
        return field
    by_key: dict[str, Any] = {}
    for header in headers:
        by_key.setdefault(header_key(header), header)
    for variant in variants.get(field, ()):
        match = by_key.get(header_key(variant))
        if match is not None:
            return match
    return None


def build_header_map(
    headers: Iterable[Any],
    variants: Mapping[str, tuple[str, ...]] = HEADER_VARIANTS,
) -> dict[str, Any]:
    """Map every resolvable canonical field to the raw header that supplies it."""
    headers = list(headers)
    mapping: dict[str, Any] = {}
    for field in variants:
        header = resolve_header(headers, field, variants)
        if header is not None:
            mapping[field] = header
    return mapping


def resolve_columns(
    row: Mapping[Any, Any],
    variants: Mapping[str, tuple[str, ...]] = HEADER_VARIANTS,
    header_map: Mapping[str, Any] | None = None,
) -> dict[Any, Any]:
    """
    Return a copy of ``row`` with canonical field names added.

    A canonical key already in the row is left alone. Unresolved fields are
    absent. Pass a prebuilt ``header_map`` to skip matching per row.
    """
    resolved = dict(row)
    mapping = header_map if header_map is not None else build_header_map(row.keys(), variants)
    for field, header in mapping.items():
        if field in resolved:
            continue
        resolved[field] = row.get(header)
    return resolved


def missing_columns(headers: Iterable[Any], source: str) -> list[str]:
    """Canonical fields the source's export should carry but the headers lack."""
    mapping = build_header_map(headers)
    return [field for field in SOURCE_COLUMNS[validate_source(source)] if field not in mapping]
