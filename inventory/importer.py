"""
Row parsing for bulk raw-material imports (CSV or Excel).

The expected header is the one written by the materials export, so an
exported sheet can be edited and loaded back. Numbers may use a decimal
comma ("12,5").
"""

import csv
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional

from openpyxl import load_workbook

from inventory.validation import (
    ValidationResult, validate_length, validate_multiple, validate_positive_number, validate_required,
)

COLUMN_MAP = {
    "Name": "name",
    "Supplier": "supplier",
    "Stock": "stock_quantity",
    "Unit": "stock_unit",
    "Min Stock": "min_stock_quantity",
    "Unit Price (TRY)": "unit_price_try",
    "Lead Time (days)": "lead_time_days",
    "Price Date": "price_date",
    "Notes": "notes",
}
NUMERIC_FIELDS = ("stock_quantity", "min_stock_quantity", "unit_price_try")


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(value):
    if value is None or isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." in text:
        text = text.replace(".", "")     # 1.234,50
    return text.replace(",", ".")


def _date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    text = str(value).strip()
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {text}")


def parse_material_row(raw: dict) -> tuple[dict, ValidationResult]:
    """Map one sheet row (header -> cell) to RawMaterial fields plus supplier name."""
    row = {field: raw.get(header) for header, field in COLUMN_MAP.items()}
    values = {
        "name": _text(row["name"]),
        "supplier": _text(row["supplier"]),
        "stock_unit": _text(row["stock_unit"]),
        "min_stock_unit": _text(row["stock_unit"]),
        "notes": _text(row["notes"]),
    }

    checks = [
        validate_required(values["name"], "Name"),
        validate_length(values["name"], field_name="Name"),
    ]
    for field in NUMERIC_FIELDS:
        number = _number(row[field])
        if number is None:
            values[field] = None
            continue
        check = validate_positive_number(number, field)
        checks.append(check)
        values[field] = float(number) if check.is_valid else None

    lead_time = _number(row["lead_time_days"])
    if lead_time is not None:
        check = validate_positive_number(lead_time, "lead_time_days")
        checks.append(check)
        values["lead_time_days"] = int(float(lead_time)) if check.is_valid else None
    else:
        values["lead_time_days"] = None

    try:
        values["price_date"] = _date(row["price_date"])
    except ValueError as exc:
        values["price_date"] = None
        checks.append(ValidationResult(is_valid=False, errors=[str(exc)]))

    return values, validate_multiple(checks)


def read_rows(path: Path) -> Iterator[dict]:
    """Yield header -> value dicts from a .csv or .xlsx file."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        # utf-8-sig strips the BOM the export writes
        with open(path, newline="", encoding="utf-8-sig") as f:
            yield from csv.DictReader(f)
    elif suffix in (".xlsx", ".xlsm"):
        wb = load_workbook(path, read_only=True, data_only=True)
        try:
            rows = wb.active.iter_rows(values_only=True)
            header = [str(c).strip() if c is not None else "" for c in next(rows, [])]
            for values in rows:
                if values and any(v is not None for v in values):
                    yield dict(zip(header, values))
        finally:
            # read-only workbooks hold the file open until closed
            wb.close()
    else:
        raise ValueError(f"Unsupported file type: {path.suffix}")
