import logging
from io import BytesIO
from typing import Any, Iterable

import pandas as pd

from services.ingest.field_normalizer import CANONICAL_FIELDS, normalize_column_name
from services.ingest.value_coercer import clean_string, coerce_value, field_type_for

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")


class SpreadsheetReadError(ValueError):
    """The uploaded file could not be turned into rows."""


def read_spreadsheet(content: bytes, filename: str) -> list[dict[str, Any]]:
    """
    Load the first sheet of an Excel workbook (or a CSV file) into raw row
    dicts keyed by the original header text. Row 1 is the header row.
    """
    name = (filename or "").lower()
    if not content:
        raise SpreadsheetReadError("Empty file")

    buf = BytesIO(content)
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(buf, dtype=str, keep_default_na=False)
        elif name.endswith(".xlsx") or name.endswith(".xls"):
            df = pd.read_excel(buf, sheet_name=0)
        else:
            raise SpreadsheetReadError("Only .csv, .xls, and .xlsx are supported")
    except SpreadsheetReadError:
        raise
    except Exception as exc:
        raise SpreadsheetReadError(f"Failed to parse file: {exc}") from exc

    # drop pandas junk columns and fully blank rows
    df = df.loc[:, ~df.columns.astype(str).str.lower().str.startswith("unnamed")]
    df = df.astype(object).where(pd.notnull(df), None)
    rows = [
        row
        for row in df.to_dict(orient="records")
        if any(clean_string(value) is not None for value in row.values())
    ]
    if not rows:
        raise SpreadsheetReadError("No data found in file")

    logger.info("Read %s rows with %s columns from %s", len(rows), len(df.columns), filename)
    return rows


def assemble_record(row: dict[str, Any], header_map: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Build one canonical order record from a raw row.

    Every canonical field is present (None when the file lacks it). Unknown
    headers are kept under their slug. When two headers resolve to the same
    field, the first non-null value wins. Rows are never rejected here; a
    missing order_date is reported by the store.
    """
    record: dict[str, Any] = {field: None for field in CANONICAL_FIELDS}

    for header, raw in row.items():
        field = header_map[header] if header_map and header in header_map else normalize_column_name(header)
        value = coerce_value(raw, field_type_for(field))
        if record.get(field) is None:
            record[field] = value

    if record["quantity"] is None:
        record["quantity"] = 1

    return record


def assemble_records(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    header_map: dict[str, str] = {}
    out = []
    for row in rows:
        for header in row.keys():
            if header not in header_map:
                header_map[header] = normalize_column_name(header)
        out.append(assemble_record(row, header_map))
    return out
