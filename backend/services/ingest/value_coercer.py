"""
Raw spreadsheet cell -> typed value.

Every function here is total: bad input becomes None, never an exception.
Zero is a real value and is never used to mean "could not parse".
"""

import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import pandas as pd

EXCEL_EPOCH = datetime(1899, 12, 30)


class FieldType(str, Enum):
    DATE = "date"
    DATETIME = "datetime"
    DECIMAL = "decimal"
    INTEGER = "integer"
    STRING = "string"


FIELD_TYPES: dict[str, FieldType] = {
    "order_date": FieldType.DATE,
    "channel_order_date": FieldType.DATETIME,
    "added_on": FieldType.DATETIME,
    "delivered_date": FieldType.DATETIME,
    "rts_date": FieldType.DATETIME,
    "quantity": FieldType.INTEGER,
    "product_value": FieldType.DECIMAL,
    "order_value": FieldType.DECIMAL,
    "extra_charges": FieldType.DECIMAL,
    "total_amount": FieldType.DECIMAL,
    "cod_amount": FieldType.DECIMAL,
    "weight": FieldType.DECIMAL,
}


def field_type_for(field: str) -> FieldType:
    return FIELD_TYPES.get(field, FieldType.STRING)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


# ---------- DATES ----------

_DIRECT_FORMATS = (
    "%d-%b-%Y",
    "%d-%b-%y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d-%b-%Y %H:%M",
    "%d-%b-%Y %H:%M:%S",
    "%d %b %Y %H:%M",
    "%d %b %Y, %H:%M",
)

_NUMERIC_DATE_RE = re.compile(
    r"^(\d{1,4})[/.\-](\d{1,2})[/.\-](\d{1,4})"
    r"(?:[ T]+(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?)?$"
)


def _from_excel_serial(serial: float) -> datetime | None:
    if not math.isfinite(serial) or serial < 0:
        return None
    try:
        return EXCEL_EPOCH + timedelta(days=serial)
    except OverflowError:
        return None


def _direct_parse(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    except ValueError:
        pass

    for fmt in _DIRECT_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _expand_year(year: int) -> int:
    return 2000 + year if year < 100 else year


def _build(year: int, month: int, day: int, clock: tuple[int, int, int]) -> datetime | None:
    try:
        return datetime(_expand_year(year), month, day, *clock)
    except ValueError:
        return None


def _day_first_parse(text: str) -> datetime | None:
    match = _NUMERIC_DATE_RE.match(text)
    if not match:
        return None

    a, b, c = (int(match.group(i)) for i in (1, 2, 3))
    hour = int(match.group(4) or 0)
    minute = int(match.group(5) or 0)
    second = int(match.group(6) or 0)
    meridiem = (match.group(7) or "").lower()
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23:
        return None
    clock = (hour, minute, second)

    if len(match.group(1)) == 4:
        # YYYY/MM/DD
        return _build(a, b, c, clock)

    # DD/MM/YYYY first, then MM/DD/YYYY
    return _build(c, b, a, clock) or _build(c, a, b, clock)


def parse_datetime(value: Any) -> datetime | None:
    if _is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime().replace(tzinfo=None)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, (int, float, Decimal)):
        try:
            return _from_excel_serial(float(value))
        except (ValueError, OverflowError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_excel_serial(float(text))

    return _direct_parse(text) or _day_first_parse(text)


def parse_date(value: Any) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


# ---------- NUMBERS ----------

_CURRENCY_RE = re.compile(r"(₹|\$|€|£|\bRs\.?|\bINR\b|,|\s)", re.IGNORECASE)


def parse_decimal(value: Any) -> Decimal | None:
    if _is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None

    cleaned = _CURRENCY_RE.sub("", str(value))
    if not cleaned:
        return None
    try:
        parsed = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_integer(value: Any) -> int | None:
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    try:
        return int(parsed)
    except (ValueError, OverflowError):
        return None


# ---------- STRINGS ----------

def clean_string(value: Any) -> str | None:
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # 560001.0 from a numeric spreadsheet cell
        value = int(value)
    elif isinstance(value, (pd.Timestamp, datetime, date)):
        value = value.isoformat()
    text = str(value).strip()
    return text or None


_COERCERS = {
    FieldType.DATE: parse_date,
    FieldType.DATETIME: parse_datetime,
    FieldType.DECIMAL: parse_decimal,
    FieldType.INTEGER: parse_integer,
    FieldType.STRING: clean_string,
}


def coerce_value(value: Any, field_type: FieldType):
    try:
        return _COERCERS[field_type](value)
    except Exception:
        # unexpected cell object types degrade to "no value"
        return None
