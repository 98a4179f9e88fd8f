from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, timedelta, timezone
from numbers import Real
from typing import Any, Union

import pandas as pd

from cert_tracker.errors import InvalidCellValue, InvalidDate
from cert_tracker.shared import DEFAULT_PARTNER, DENTRO, FORA, JLC_TECH, MIGRACAO, SAFE_TI, VENDA

# A raw cell after loading: number, text, date, or empty.
Cell = Union[int, float, str, datetime, None]

SENTINEL_NULLS = {"", "null", "nan", "nulo", "none", "n/a", "na", "-", "nat"}

SCIENTIFIC_RE = re.compile(r"^[+-]?\d+(?:\.\d+)?[eE][+-]?\d+$")
INTEGRAL_FLOAT_RE = re.compile(r"^\d+\.0+$")
AMOUNT_RE = re.compile(r"^\d+(?:\.\d*)?$")
SERIAL_TEXT_RE = re.compile(r"^\d{5}(?:\.\d+)?$")

BR_DATE_RE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
ISO_DATE_RE = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2})"
    r"(?:[ T](\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?$"
)

EXCEL_EPOCH = datetime(1899, 12, 30)
# Serials below 61 predate the phantom 1900-02-29 and sit one day later.
EXCEL_LEAP_BUG_SERIAL = 61
MAX_SERIAL = 2_958_465

SALE_MARKERS = ("venda", "ganho")
MIGRATION_MARKERS = ("migra",)


def fold_text(value: str) -> str:
    """Lowercase and strip diacritics: 'MIGRAÇÃO' -> 'migracao'."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str):
        return value.strip().lower() in SENTINEL_NULLS
    return False


def cell_text(value: Any) -> str:
    """Render a cell as trimmed single-spaced text; integral floats lose their '.0'."""
    if is_empty(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return " ".join(str(value).replace("\x00", "").split())


# ── Values ─────────────────────────────────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def parse_value(value: Any, *, scale: float = 1.0, strict: bool = False) -> float:
    """
    Parse a currency-like cell into a float.

    Native numbers come back multiplied by ``scale`` (1.0 unless the caller
    says the export stores cents). Text is read with locale detection: the
    rightmost of ',' / '.' is the decimal separator unless more than two
    digits follow it, in which case it is a thousands separator too.

    Empty and sentinel cells are 0.0. Unparsable text is 0.0, or raises
    InvalidCellValue when ``strict`` is set.
    """
    if is_empty(value):
        return 0.0
    if _is_number(value):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            if strict:
                raise InvalidCellValue(f"Non-finite number {value!r}", value)
            return 0.0
        return number * scale

    text = str(value).strip().replace("\u00a0", " ")
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()

    compact = text.replace(" ", "")
    if SCIENTIFIC_RE.fullmatch(compact):
        number = float(compact)
        return -number if negative else number

    text = re.sub(r"[^0-9,.\-]", "", text)
    if text.startswith("-"):
        negative = not negative
        text = text.lstrip("-")

    number = _parse_separated_digits(text)
    if number is None:
        if strict:
            raise InvalidCellValue(f"Could not parse value {value!r}", value)
        return 0.0
    return -number if negative else number


def _parse_separated_digits(text: str) -> float | None:
    position = max(text.rfind(","), text.rfind("."))
    if position == -1:
        digits = text
    else:
        fraction = text[position + 1:]
        if len(fraction) > 2:
            digits = re.sub(r"[,.]", "", text)
        else:
            integer = re.sub(r"[,.]", "", text[:position])
            digits = f"{integer or '0'}.{fraction}"
    if not AMOUNT_RE.fullmatch(digits):
        return None
    return float(digits)


# ── Dates ──────────────────────────────────────────────────────────────────────

def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _build_date(year: int, month: int, day: int, hour, minute, second, raw: Any) -> datetime:
    try:
        return datetime(year, month, day, int(hour or 0), int(minute or 0), int(second or 0))
    except ValueError as exc:
        raise InvalidDate(f"Impossible date {raw!r}: {exc}", raw) from exc


def serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet serial day count (1899-12-30 epoch) to a datetime."""
    if math.isnan(serial) or serial < 0 or serial > MAX_SERIAL:
        raise InvalidDate(f"Serial date out of range: {serial!r}", serial)
    epoch = EXCEL_EPOCH if serial >= EXCEL_LEAP_BUG_SERIAL else EXCEL_EPOCH + timedelta(days=1)
    return epoch + timedelta(days=serial)


def parse_date(value: Any) -> datetime:
    """
    Parse a date cell.

    Native dates pass through and numbers are serial day counts. Text is
    tried as DD/MM/YYYY[ HH:MM[:SS]], YYYY-MM-DD[THH:MM[:SS]], 5-digit
    serial, then free-form (day-first). Raises InvalidDate when nothing
    matches.
    """
    if value is None or value is pd.NaT:
        raise InvalidDate("Empty date", value)
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            raise InvalidDate("Empty date", value)
        return _naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if _is_number(value):
        return serial_to_datetime(float(value))

    text = str(value).strip()
    if not text or text.lower() in SENTINEL_NULLS:
        raise InvalidDate("Empty date", value)

    m = BR_DATE_RE.fullmatch(text)
    if m:
        day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        return _build_date(year, month, day, m.group(4), m.group(5), m.group(6), value)

    m = ISO_DATE_RE.fullmatch(text)
    if m:
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
        return _build_date(year, month, day, m.group(4), m.group(5), m.group(6), value)

    if SERIAL_TEXT_RE.fullmatch(text):
        return serial_to_datetime(float(text))

    try:
        parsed = pd.to_datetime(text, dayfirst=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        parsed = pd.NaT
    if isinstance(parsed, pd.Timestamp) and not pd.isna(parsed):
        return _naive(parsed.to_pydatetime())
    raise InvalidDate(f"Unrecognised date {value!r}", value)


# ── Identifiers ────────────────────────────────────────────────────────────────

def normalize_tax_id(value: Any) -> str:
    """Digits-only tax id left-padded to 14; '' when the cell is empty."""
    if is_empty(value):
        return ""
    if isinstance(value, int) and not isinstance(value, bool):
        text = str(value)
    elif _is_number(value):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            return ""
        text = f"{number:.0f}"
    else:
        text = str(value).strip()
        compact = text.replace(",", ".").replace(" ", "")
        if SCIENTIFIC_RE.fullmatch(compact):
            text = f"{float(compact):.0f}"
        elif INTEGRAL_FLOAT_RE.fullmatch(compact):
            text = compact.split(".", 1)[0]
    digits = re.sub(r"\D", "", text)
    if not digits:
        return ""
    return digits.zfill(14)


# ── Labels ─────────────────────────────────────────────────────────────────────

def sale_type_of(value: Any) -> str | None:
    """
    MIGRACAO when any migration marker is present (even alongside a sale
    marker), VENDA when only a sale marker is present, otherwise None.
    """
    text = fold_text(cell_text(value))
    if any(marker in text for marker in MIGRATION_MARKERS):
        return MIGRACAO
    if any(marker in text for marker in SALE_MARKERS):
        return VENDA
    return None


def partner_of(value: Any) -> str:
    text = fold_text(cell_text(value))
    if "safe" in text:
        return SAFE_TI
    if "jl" in text or "tech" in text:
        return JLC_TECH
    return DEFAULT_PARTNER


def area_of(value: Any) -> str:
    text = fold_text(cell_text(value))
    if "fora" in text or "externa" in text:
        return FORA
    return DENTRO
