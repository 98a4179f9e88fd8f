"""
Import pipeline: spreadsheet rows → SalesRecord collection.

Per batch:
  1. resolve variant headers onto canonical fields
  2. skip rows that cannot be attributed (no product / no order number)
  3. apply the sale-type filter (migration markers always win)
  4. normalize value, date, tax id, partner, area; classify the product
  5. fold dedicated-IP satellites into their primary order
  6. emit one record per remaining row

Cell-level problems never abort the batch: they degrade to a default and
are reported in ImportResult.warnings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from cert_tracker.bundles import absorbed_indices, find_bundles
from cert_tracker.classifier import classify_product
from cert_tracker.columns import build_header_map, missing_columns, resolve_columns
from cert_tracker.config import ImportSettings, validate_source
from cert_tracker.errors import InvalidCellValue, InvalidDate
from cert_tracker.loader import load_rows
from cert_tracker.normalization import (
    area_of,
    cell_text,
    normalize_tax_id,
    parse_date,
    parse_value,
    partner_of,
    sale_type_of,
)
from cert_tracker.shared import MIGRACAO, VENDA, ImportResult, SalesRecord, SkippedRow

logger = logging.getLogger(__name__)

BATCH_STAMP_ENV = "CERT_TRACKER_BATCH_STAMP"
UNKNOWN_CUSTOMER = "Cliente não especificado"

SKIP_MISSING_PRODUCT = "missing product"
SKIP_MISSING_ORDER = "missing order number"
SKIP_NOT_A_SALE = "not a sale"
SKIP_MIGRATION = "migration"
SKIP_INVALID_DATE = "invalid date"
SKIP_MALFORMED_LINE = "malformed line"


@dataclass
class _PreparedRow:
    index: int
    row_number: int
    order_number: str
    product: str
    sale_type: str
    activation_date: datetime
    gross_value: float
    tax_id: str
    customer_name: str
    partner: str
    network: str
    area: str


def batch_stamp(now: datetime) -> str:
    override = os.environ.get(BATCH_STAMP_ENV)
    if override:
        return override
    return now.strftime("%Y%m%dT%H%M%S")


def record_id(source: str, stamp: str, row_number: int) -> str:
    return f"{source}-{stamp}-{row_number}"


def _ordered_headers(rows: Iterable[Mapping[Any, Any]]) -> list[Any]:
    seen: dict[Any, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


class _Batch:
    def __init__(self, source: str, settings: ImportSettings, now: datetime, stamp: Optional[str] = None) -> None:
        self.source = source
        self.settings = settings
        self.now = now
        self.stamp = stamp or batch_stamp(now)
        self.warnings: list[str] = []
        self.skipped: list[SkippedRow] = []

    def warn(self, row_number: int, message: str) -> None:
        text = f"Row {row_number}: {message}"
        logger.warning("%s [%s]", text, self.source)
        self.warnings.append(text)

    def skip(self, row_number: int, reason: str, order_number: str = "") -> None:
        logger.debug("Row %d skipped: %s", row_number, reason)
        self.skipped.append(SkippedRow(row_number=row_number, reason=reason, order_number=order_number))

    def prepare(self, index: int, row_number: int, cells: Mapping[str, Any]) -> Optional[_PreparedRow]:
        product = cell_text(cells.get("product"))
        order_number = cell_text(cells.get("order_number"))
        if not product:
            self.skip(row_number, SKIP_MISSING_PRODUCT, order_number)
            return None
        if not order_number:
            self.skip(row_number, SKIP_MISSING_ORDER)
            return None

        sale_type = sale_type_of(cells.get("sale_type"))
        if sale_type is None:
            self.skip(row_number, SKIP_NOT_A_SALE, order_number)
            return None
        if sale_type == MIGRACAO and self.settings.migration_policy == "skip":
            self.skip(row_number, SKIP_MIGRATION, order_number)
            return None

        try:
            activation_date = parse_date(cells.get("activation_date"))
        except InvalidDate as exc:
            if self.settings.date_fallback == "skip":
                self.warn(row_number, f"{exc}; row skipped")
                self.skip(row_number, SKIP_INVALID_DATE, order_number)
                return None
            self.warn(row_number, f"{exc}; using batch date {self.now:%Y-%m-%d}")
            activation_date = self.now

        raw_value = cells.get("gross_value")
        try:
            gross_value = parse_value(raw_value, scale=self.settings.numeric_scale, strict=True)
        except InvalidCellValue as exc:
            self.warn(row_number, f"{exc}; value set to 0")
            gross_value = 0.0
        if gross_value < 0:
            self.warn(row_number, f"Negative value {raw_value!r}; value set to 0")
            gross_value = 0.0

        raw_tax_id = cells.get("tax_id")
        tax_id = normalize_tax_id(raw_tax_id)
        if not tax_id and cell_text(raw_tax_id):
            self.warn(row_number, f"Tax id {raw_tax_id!r} has no digits")

        network = cell_text(cells.get("partner"))
        return _PreparedRow(
            index=index,
            row_number=row_number,
            order_number=order_number,
            product=product,
            sale_type=sale_type,
            activation_date=activation_date,
            gross_value=gross_value,
            tax_id=tax_id,
            customer_name=cell_text(cells.get("customer_name")) or UNKNOWN_CUSTOMER,
            partner=partner_of(network),
            network=network,
            area=area_of(cells.get("area")),
        )

    def build(self, row: _PreparedRow, satellites: Sequence[_PreparedRow] = ()) -> SalesRecord:
        return SalesRecord(
            id=record_id(self.source, self.stamp, row.row_number),
            order_number=row.order_number,
            activation_date=row.activation_date,
            gross_value=row.gross_value + sum(satellite.gross_value for satellite in satellites),
            sale_type=row.sale_type,
            partner=row.partner,
            category=classify_product(row.product),
            product=row.product,
            tax_id=row.tax_id,
            customer_name=row.customer_name,
            source=self.source,
            absorbed_orders=tuple(satellite.order_number for satellite in satellites),
            area=row.area,
            network=row.network,
        )


def import_rows(
    rows: Sequence[Mapping[Any, Any]],
    source: str,
    *,
    row_numbers: Optional[Sequence[int]] = None,
    settings: Optional[ImportSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
    stamp: Optional[str] = None,
) -> ImportResult:
    """
    Turn an in-memory row buffer into SalesRecords.

    Args:
        rows:        one mapping per spreadsheet row, keyed by raw header.
        source:      source-sheet tag (AVANCADOS, TI_GUD, TECH).
        row_numbers: spreadsheet row number per row; defaults to index + 2.
        settings:    import policies; ImportSettings() when omitted.
        clock:       batch clock used for ids and the date fallback.
        stamp:       explicit batch stamp for ids; derived from the clock
                     (or $CERT_TRACKER_BATCH_STAMP) when omitted.
    """
    source = validate_source(source)
    batch = _Batch(source, settings or ImportSettings(), (clock or datetime.now)(), stamp)

    headers = _ordered_headers(rows)
    header_map = build_header_map(headers)
    missing = missing_columns(headers, source)
    for field in missing:
        message = f"Expected column '{field}' not found for source {source}"
        logger.warning(message)
        batch.warnings.append(message)

    prepared: list[_PreparedRow] = []
    for index, row in enumerate(rows):
        row_number = row_numbers[index] if row_numbers is not None else index + 2
        entry = batch.prepare(index, row_number, resolve_columns(row, header_map=header_map))
        if entry is not None:
            prepared.append(entry)

    bundles = find_bundles(
        (entry.index, entry.product, entry.tax_id) for entry in prepared if entry.sale_type == VENDA
    )
    absorbed = absorbed_indices(bundles)
    by_index = {entry.index: entry for entry in prepared}
    satellites_of = {bundle.primary: [by_index[i] for i in bundle.satellites] for bundle in bundles}

    records = [
        batch.build(entry, satellites_of.get(entry.index, ()))
        for entry in prepared
        if entry.index not in absorbed
    ]

    logger.info(
        "Imported %d record(s) from %d row(s) for %s: %d skipped, %d bundle(s), %d warning(s)",
        len(records), len(rows), source, len(batch.skipped), len(bundles), len(batch.warnings),
    )
    return ImportResult(
        records=records,
        skipped=batch.skipped,
        warnings=batch.warnings,
        source=source,
        batch_stamp=batch.stamp,
        rows_total=len(rows),
        missing_columns=missing,
    )


def import_file(
    file: Any,
    source: str,
    *,
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
    settings: Optional[ImportSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
    stamp: Optional[str] = None,
) -> ImportResult:
    """
    Read one spreadsheet export and import its rows.

    Text lines the loader could not align with the header are reported as
    skipped rows. Raises FileReadError / SheetImportError for file-level
    failures.
    """
    loaded = load_rows(file, filename=filename, sheet_name=sheet_name)
    result = import_rows(
        loaded["rows"],
        source,
        row_numbers=loaded["row_numbers"],
        settings=settings,
        clock=clock,
        stamp=stamp,
    )
    result.warnings = list(loaded["warnings"]) + result.warnings
    malformed = loaded.get("malformed_lines") or []
    if malformed:
        result.skipped.extend(SkippedRow(row_number=line, reason=SKIP_MALFORMED_LINE) for line in malformed)
        result.skipped.sort(key=lambda row: row.row_number)
        result.rows_total += len(malformed)
    return result


def merge_imports(*results: ImportResult) -> list[SalesRecord]:
    """Concatenate the records of several imports, keeping ids unique."""
    merged: list[SalesRecord] = []
    seen: set[str] = set()
    for result in results:
        for record in result.records:
            if record.id in seen:
                raise ValueError(f"Duplicate record id across imports: {record.id}")
            seen.add(record.id)
            merged.append(record)
    return merged
