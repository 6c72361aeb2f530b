"""
Shared utilities for data ingestion: month-key and amount normalisation,
row-collection checks, header detection.

The warehouse delivers the same logical column in several physical shapes
(plain scalars, pt-BR formatted strings, boxed {"value": ...} objects,
native dates), so every consumer goes through normalise_month() and
normalise_amount() instead of reading fields directly.
"""

import logging
import math
import numbers
import re
import unicodedata
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

from ..config import MAX_BOX_DEPTH, MONTH_FIELDS

logger = logging.getLogger(__name__)

_YEAR_MONTH = re.compile(r"^\d{4}-\d{2}$")
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_PLAIN_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_NON_NUMERIC = re.compile(r"[^\d.,-]")


def _month_key(year: int, month: int) -> str | None:
    if not 1 <= month <= 12:
        return None
    return f"{year:04d}-{month:02d}"


def _unbox(val: Any, depth: int) -> tuple[bool, Any]:
    """Return (is_boxed, inner) for the recognised boxed-scalar shape.

    Only a Mapping carrying a "value" key counts as a box; any other object
    is left to the caller to treat as opaque.
    """
    if isinstance(val, Mapping):
        if "value" in val and depth < MAX_BOX_DEPTH:
            return True, val["value"]
        return True, None
    return False, val


def normalise_month(val: Any, _depth: int = 0) -> str | None:
    """Convert a raw warehouse month to a canonical 'YYYY-MM' key.

    Shapes are tried in order: 'YYYY-MM', 'YYYY-MM-DD...' prefix, any other
    date string, boxed {"value": ...}, native date/datetime. Returns None when
    nothing matches; the owning row must then be left out of aggregation.
    """
    if val is None or isinstance(val, bool):
        return None

    boxed, inner = _unbox(val, _depth)
    if boxed:
        if inner is None:
            return None
        return normalise_month(inner, _depth + 1)

    if isinstance(val, str):
        text = val.strip()
        if not text:
            return None
        if _YEAR_MONTH.match(text) or _ISO_DATE_PREFIX.match(text):
            return _month_key(int(text[:4]), int(text[5:7]))
        try:
            parsed = pd.Timestamp(text)
        except (ValueError, TypeError, OverflowError):
            logger.debug("Could not parse month value: %r", val)
            return None
        return _datetime_key(parsed)

    if isinstance(val, np.datetime64):
        return _datetime_key(pd.Timestamp(val))

    if isinstance(val, datetime):
        return _datetime_key(val)

    if isinstance(val, date):
        return _month_key(val.year, val.month)

    logger.debug("Unrecognised month shape %s: %r", type(val).__name__, val)
    return None


def _datetime_key(val: datetime) -> str | None:
    if val is pd.NaT:
        return None
    # Aware datetimes are keyed in UTC, like the warehouse timestamps.
    if val.tzinfo is not None:
        val = val.astimezone(timezone.utc)
    return _month_key(val.year, val.month)


def _parse_amount_text(text: str) -> float | None:
    """Parse a numeric string that may be pt-BR formatted ('R$ 1.234,56').

    Plain machine numbers ('1234.56', '1e3') are read as-is. Anything else
    is pt-BR: every '.' groups thousands and the last ',' is the decimal
    mark, so 'R$ 500.000' is five hundred thousand.
    """
    text = text.strip()
    if _PLAIN_NUMBER.match(text):
        return float(text)

    cleaned = _NON_NUMERIC.sub("", text)
    negative = cleaned.startswith("-")
    digits = cleaned.replace("-", "").replace(".", "")
    if not any(ch.isdigit() for ch in digits):
        return None

    if "," in digits:
        whole, _, frac = digits.rpartition(",")
        digits = whole.replace(",", "") + "." + frac

    try:
        number = float(digits)
    except ValueError:
        return None
    return -number if negative else number


def normalise_amount(val: Any, _depth: int = 0) -> float:
    """Coerce a raw warehouse amount to float.

    Never returns None: amounts are summed, so anything unparseable becomes
    0.0 and the row still contributes its other fields.
    """
    if val is None or isinstance(val, (bool, np.bool_)):
        return 0.0

    boxed, inner = _unbox(val, _depth)
    if boxed:
        if inner is None:
            return 0.0
        return normalise_amount(inner, _depth + 1)

    number: float | None = None
    if isinstance(val, str):
        number = _parse_amount_text(val)
    elif isinstance(val, numbers.Number):
        try:
            number = float(val)
        except (TypeError, ValueError, OverflowError):
            number = None

    if number is None or not math.isfinite(number):
        logger.debug("Unparseable amount %r treated as 0", val)
        return 0.0
    return number


def get_row_month(row: Mapping) -> Any:
    """Return the raw month of a row, whichever month column it carries."""
    for field in MONTH_FIELDS:
        if field in row:
            return row[field]
    return None


def as_records(rows: Any, name: str = "rows") -> list[Mapping]:
    """Return rows as a list of mappings.

    Accepts a sequence of mappings or a DataFrame. Anything else is a caller
    bug and raises TypeError; malformed values inside the rows are not.
    """
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict("records")
    if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
        raise TypeError(f"{name} must be a sequence of mappings, got {type(rows).__name__}")

    records = list(rows)
    for record in records:
        if not isinstance(record, Mapping):
            raise TypeError(
                f"{name} must contain mappings, found {type(record).__name__}"
            )
    return records


def to_snake_case(name: str) -> str:
    """Convert a header label to snake_case.

    Strips accents and punctuation, splits CamelCase.
    """
    s = unicodedata.normalize("NFKD", str(name).strip())
    s = s.encode("ascii", "ignore").decode("ascii")
    s = s.replace("%", "pct").replace("/", "_").replace("(", "").replace(")", "")
    s = re.sub(r"([a-z])([A-Z])", r"\1_\2", s)
    s = re.sub(r"[^a-zA-Z0-9]+", "_", s)
    s = s.lower().strip("_")
    return re.sub(r"_+", "_", s)


def find_header_row(
    sheet,
    signature: set[str],
    max_rows: int = 20,
) -> int | None:
    """Scan an openpyxl sheet for the row containing signature column names.

    Cells are compared after to_snake_case(). Returns the 1-based row index
    where at least two cells match, or None if not found within `max_rows`.
    """
    for row_idx in range(1, max_rows + 1):
        matches = 0
        for cell in sheet[row_idx]:
            if cell.value is not None and to_snake_case(cell.value) in signature:
                matches += 1
        if matches >= 2:
            return row_idx
    return None
