"""
loader.py — File reading boundary for cert-tracker

Supports: .csv .tsv .txt .xlsx .xlsm .xls .ods

Public API:
    loaded = load_rows("path/to/export.xlsx")
    loaded = load_rows(raw_bytes, filename="export.xlsx")
    rows   = loaded["rows"]

Result dict keys:
    rows              — list of {header: cell} dicts, cells are int/float/str/datetime/None
    row_numbers       — spreadsheet row number of each entry in rows (header row = 1)
    headers           — header strings in sheet order
    dataframe         — the pandas DataFrame the rows came from
    detected_format   — "csv", "xlsx", ...
    detected_encoding — encoding name for text files; None for workbooks
    delimiter         — delimiter char for text files; None otherwise
    sheet_name        — sheet read for workbooks; None otherwise
    sheet_names       — all sheets for workbooks; None otherwise
    warnings          — list of warning strings
    malformed_lines   — text line numbers left out for having extra fields; [] otherwise
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd

from cert_tracker.errors import FileReadError, SheetImportError

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS

ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0"

MIN_ENCODING_CONFIDENCE = 0.5
LATIN_ENCODINGS = {
    "utf-8", "utf-8-sig", "iso-8859-1", "latin-1", "iso-8859-15", "windows-1252", "cp1252",
}


# ══════════════════════════════════════════════════════════════════════════════
# CELL CONVERSION
# ══════════════════════════════════════════════════════════════════════════════

def normalize_scalar(value: Any) -> Any:
    """Narrow a pandas cell to int / float / str / datetime / None."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, bool):
        return str(value)
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (int, float)):
        return value
    return str(value).replace("\x00", "")


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    """
    Guess the file encoding with chardet.

    A low-confidence guess or one outside the Latin family falls back to
    CP1252; chardet labels short latin-1 files as EBCDIC or Hebrew pages.
    """
    result = chardet.detect(raw[:200_000])
    detected = (result.get("encoding") or "utf-8").lower()
    confidence = result.get("confidence") or 0.0
    if detected == "ascii":
        return "utf-8"
    if confidence < MIN_ENCODING_CONFIDENCE or detected not in LATIN_ENCODINGS:
        logger.debug("Ignoring encoding guess %s (confidence %.2f); using cp1252", detected, confidence)
        return "cp1252"
    return detected


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line: UTF-8, then the detected encoding, then CP1252,
    then latin-1. Null bytes are dropped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "cp1252", "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


def _detect_delimiter(text: str) -> str:
    """Sniff the delimiter; Brazilian exports are usually ';'."""
    sample_lines = [line for line in text.splitlines() if line.strip()][:25]
    sample = "\n".join(sample_lines)
    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass
    header = sample_lines[0] if sample_lines else ""
    counts = {delim: header.count(delim) for delim in (";", ",", "\t", "|")}
    best = max(counts, key=counts.get)
    return best if counts[best] else ","


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _header_names(fields: list[str]) -> list[str]:
    """Blank headers become 'Unnamed: i'; repeats get a '.n' suffix."""
    names: list[str] = []
    seen: dict[str, int] = {}
    for position, field_value in enumerate(fields):
        name = field_value.strip() or f"Unnamed: {position}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def _load_text(raw: bytes, suffix: str) -> dict:
    """
    Parse delimited text with csv.reader, keeping physical line numbers.

    Quoted fields may span lines; a record is numbered by the line it starts
    on. Short records are padded with empty cells. A record with extra
    non-empty fields cannot be aligned with the header: it is left out and
    reported in ``malformed_lines``.
    """
    enc = _detect_encoding(raw)
    text = _read_text_safely(raw, enc)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    headers: Optional[list[str]] = None
    records: list[list[str]] = []
    line_numbers: list[int] = []
    malformed_lines: list[int] = []
    warnings: list[str] = []
    previous_end = 0
    try:
        for fields in reader:
            start = previous_end + 1
            previous_end = reader.line_num
            if headers is None:
                if any(value.strip() for value in fields):
                    headers = _header_names(fields)
                continue
            width = len(headers)
            if len(fields) > width:
                if any(value.strip() for value in fields[width:]):
                    malformed_lines.append(start)
                    warnings.append(
                        f"Line {start}: expected {width} fields, found {len(fields)}; line skipped"
                    )
                    continue
                fields = fields[:width]
            records.append(fields + [""] * (width - len(fields)))
            line_numbers.append(start)
    except csv.Error as exc:
        raise SheetImportError(f"Could not parse {suffix} file: {exc}") from exc

    if headers is None:
        raise SheetImportError("No header row found")
    for message in warnings:
        logger.warning(message)

    return {
        "dataframe":         pd.DataFrame(records, columns=headers, dtype=object),
        "line_numbers":      line_numbers,
        "malformed_lines":   malformed_lines,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": enc,
        "delimiter":         delimiter,
        "sheet_name":        None,
        "sheet_names":       None,
        "warnings":          warnings,
    }


def _load_workbook(raw: bytes, suffix: str, sheet_name: Optional[str]) -> dict:
    engine = "odf" if suffix in ODS_FORMATS else None
    warnings: list[str] = []
    try:
        with pd.ExcelFile(io.BytesIO(raw), engine=engine) as xf:
            all_sheets = list(xf.sheet_names)
            if not all_sheets:
                raise SheetImportError("Workbook has no sheets")
            if sheet_name is None:
                chosen = all_sheets[0]
                if len(all_sheets) > 1:
                    warnings.append(
                        f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. "
                        f"Ignored: {all_sheets[1:]}"
                    )
            elif sheet_name in all_sheets:
                chosen = sheet_name
            else:
                raise SheetImportError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
            df = xf.parse(chosen, dtype=object)
    except SheetImportError:
        raise
    except ImportError as exc:
        raise SheetImportError(f"Missing spreadsheet engine for {suffix} files: {exc}") from exc
    except Exception as exc:
        raise SheetImportError(f"Could not read workbook: {exc}") from exc

    return {
        "dataframe":         df,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": None,
        "delimiter":         None,
        "sheet_name":        chosen,
        "sheet_names":       all_sheets,
        "warnings":          warnings,
        "malformed_lines":   [],
    }


def _sniff_suffix(raw: bytes) -> str:
    if raw.startswith(ZIP_MAGIC):
        return ".xlsx"
    if raw.startswith(OLE_MAGIC):
        return ".xls"
    return ".csv"


def _read_source(source: Any) -> tuple[bytes, Optional[str]]:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), None
    if hasattr(source, "read"):
        try:
            data = source.read()
        except OSError as exc:
            raise FileReadError(f"Could not read uploaded file: {exc}") from exc
        if isinstance(data, str):
            data = data.encode("utf-8")
        return data, getattr(source, "name", None)
    path = Path(source)
    try:
        return path.read_bytes(), path.name
    except FileNotFoundError as exc:
        raise FileReadError(f"File not found: {path}") from exc
    except OSError as exc:
        raise FileReadError(f"Could not read {path}: {exc}") from exc


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_rows(
    source: "str | Path | bytes | Any",
    *,
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
) -> dict:
    """
    Read a spreadsheet export into a row buffer.

    Args:
        source:     path, raw bytes, or a binary file-like object.
        filename:   name used for format detection when ``source`` is bytes;
                    the format is sniffed from the content otherwise.
        sheet_name: workbook sheet to read; the first sheet by default.

    Raises:
        FileReadError     if the bytes cannot be obtained.
        SheetImportError  if the format is unsupported, the content cannot
                          be parsed, or there are no data rows.
    """
    raw, source_name = _read_source(source)
    name = filename or source_name
    suffix = Path(name).suffix.lower() if name else ""
    if not suffix:
        suffix = _sniff_suffix(raw)
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise SheetImportError(f"Unsupported format '{suffix}'. Supported: {supported}")
    if not raw.strip():
        raise SheetImportError("File is empty")

    if suffix in TEXT_FORMATS:
        loaded = _load_text(raw, suffix)
    else:
        loaded = _load_workbook(raw, suffix, sheet_name)

    df = loaded["dataframe"]
    df = df.loc[:, [not str(column).startswith("Unnamed:") or df[column].notna().any() for column in df.columns]]
    headers = [str(column).strip() for column in df.columns]
    line_numbers = loaded.pop("line_numbers", None) or [position + 2 for position in range(len(df))]
    rows: list[dict] = []
    row_numbers: list[int] = []
    for line_number, values in zip(line_numbers, df.itertuples(index=False, name=None)):
        cells = [normalize_scalar(value) for value in values]
        if all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in cells):
            continue
        rows.append(dict(zip(headers, cells)))
        row_numbers.append(line_number)

    if not rows:
        raise SheetImportError("No data rows found")

    logger.info("Loaded %d row(s) from %s", len(rows), name or f"<{suffix.lstrip('.')} bytes>")
    return {
        **loaded,
        "dataframe":   df,
        "rows":        rows,
        "row_numbers": row_numbers,
        "headers":     headers,
    }
