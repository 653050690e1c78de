"""
Bulk import loader. Raw spreadsheet row (column name -> cell) -> booking payload dict.
Cells arrive as parsed by the browser: strings, numbers (Excel serials / day fractions) or None.
"""

import re
from datetime import date, timedelta
from typing import Any

# Excel day 0 with the 1900 leap-year bug folded in
_EXCEL_EPOCH = date(1899, 12, 30)
_DMY_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?$")


def _is_excel_serial(value: float) -> bool:
    # Modern dates only; small numbers are more likely typos than 1900s dates
    return 30000 < value < 60000


def excel_serial_to_iso(serial: float) -> str:
    return (_EXCEL_EPOCH + timedelta(days=int(serial))).isoformat()


def to_iso_date_from_cell(value: Any) -> str:
    """ISO, d/m/y, d-m-yy or an Excel serial -> 'YYYY-MM-DD'. Unknown text is returned trimmed."""
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if _is_excel_serial(value):
            return excel_serial_to_iso(value)

    raw = str(value).strip()
    if not raw:
        return ""
    if _ISO_RE.match(raw):
        return raw
    try:
        as_num = float(raw)
    except ValueError:
        as_num = None
    if as_num is not None and _is_excel_serial(as_num):
        return excel_serial_to_iso(as_num)

    m = _DMY_RE.match(raw)
    if m:
        d, mo, y = m.groups()
        if len(y) == 2:
            y = "20" + y
        return f"{y.zfill(4)}-{mo.zfill(2)}-{d.zfill(2)}"
    return raw


def to_time_from_cell(value: Any) -> str:
    """'8' -> '08:00', '8:30' -> '08:30', 0.3333 (day fraction) -> '08:00'."""
    if value is None or value == "":
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        total = round(value * 24 * 60) % (24 * 60)
        return f"{total // 60:02d}:{total % 60:02d}"

    s = str(value).strip()
    if not s:
        return ""
    m = _TIME_RE.match(s)
    if m:
        hh = int(m.group(1)) % 24
        mm = int(m.group(2)) % 60 if m.group(2) is not None else 0
        return f"{hh:02d}:{mm:02d}"
    return s


def is_example_row(row: dict) -> bool:
    """Template rows shipped in the spreadsheet start with 'EXAMPLE' in WardName."""
    ward = row.get("WardName")
    return ward is not None and str(ward).strip().lower().startswith("example")


def _text(row: dict, *keys: str) -> str:
    for key in keys:
        v = row.get(key)
        if v is not None and str(v).strip():
            return str(v).strip()
    return ""


def map_bulk_row(row: dict) -> dict:
    """
    One spreadsheet row -> create-booking payload (without coordinates).
    Bulk import is always one-way.
    """
    shift_type = "finish" if _text(row, "ShiftType").lower() == "finish" else "start"
    pickup_text = _text(row, "PickupText", "PickupAddress")
    dest_text = _text(row, "DestText", "DestinationText", "DestAddress")
    return {
        "ward_name": _text(row, "WardName"),
        "ward_phone": _text(row, "WardPhone"),
        "staff_name": _text(row, "StaffName"),
        "staff_phone": _text(row, "StaffPhone"),
        "shift_type": shift_type,
        "pickup_date_iso": to_iso_date_from_cell(row.get("PickupDate")),
        "on_off_duty_time": to_time_from_cell(row.get("OnOffDutyTime")),
        "pickup": {"formatted": pickup_text, "text": pickup_text, "post_code": _text(row, "PickupPostCode")},
        "destination": {
            "formatted": dest_text,
            "text": dest_text,
            "post_code": _text(row, "DestPostCode", "DestinationPostCode"),
        },
        "require_return": False,
        "reason_code": _text(row, "ReasonCode"),
        "budget_number": _text(row, "BudgetNumber"),
        "budget_holder_name": _text(row, "BudgetHolderName"),
    }
