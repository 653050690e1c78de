"""
Booking rules. Pure domain: validation, references, formatting.
Raise BookingValidationError with the message shown to staff.
"""

import math
import re
from typing import Any, Optional

from staffcab.domain.errors import BookingValidationError
from staffcab.domain.geo import is_within_m
from staffcab.domain.models import SHIFT_FINISH, SHIFT_START, Address, Booking, Coordinates, Zone

REQUIRED_TEXT_FIELDS = (
    "ward_name",
    "ward_phone",
    "staff_name",
    "staff_phone",
    "shift_type",
    "on_off_duty_time",
    "pickup_date_iso",
    "reason_code",
    "budget_number",
    "budget_holder_name",
)

_REASON_CODE_RE = re.compile(r"^[A-Z0-9]{2}$")
_BUDGET_NUMBER_RE = re.compile(r"^\d{6}$")
_SIGNATURE_PREFIX = "data:image/png;base64,"
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def make_reference(reason_code: str, budget_number: str, budget_holder_name: str) -> str:
    return f"{reason_code}/{budget_number}/{budget_holder_name}".strip()


def format_short_ref(prefix: str, seq: int) -> str:
    """NAC001, NAC002, ... NAC1000 (zero-padded to at least 3 digits)."""
    return f"{prefix}{seq:03d}"


def to_ddmmyy(iso: Optional[str]) -> str:
    """'2025-12-24' -> '24-12-25'. Anything else is returned unchanged."""
    if not iso or not _ISO_DATE_RE.match(iso):
        return iso or ""
    y, m, d = iso.split("-")
    return f"{d}-{m}-{y[2:]}"


def normalize_uk_mobile(raw: Optional[str]) -> str:
    """07xxxxxxxxx / 7xxxxxxxxx / 00447xxxxxxxxx -> +447xxxxxxxxx."""
    if not raw:
        return raw or ""
    p = re.sub(r"[\s()\-]", "", str(raw))
    if re.fullmatch(r"07\d{9}", p):
        return "+44" + p[1:]
    if re.fullmatch(r"7\d{9}", p):
        return "+44" + p
    if re.fullmatch(r"00447\d{9}", p):
        return "+" + p[2:]
    return p


def to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def zone_from_raw(raw: Any) -> Optional[Zone]:
    if isinstance(raw, Zone):
        return raw
    if isinstance(raw, dict) and (raw.get("id") is not None or raw.get("name") is not None):
        return Zone(id=str(raw.get("id") or ""), name=str(raw.get("name") or ""))
    return None


def normalize_address(raw: Optional[dict], default_town: str = "Plymouth") -> Optional[Address]:
    """
    Raw address dict from the frontend -> Address. Supports placeId-only
    payloads as long as lat/lng are present. None if lat/lng are not numbers.
    """
    if not raw:
        return None
    lat = to_float(raw.get("lat"))
    lng = to_float(raw.get("lng"))
    if lat is None or lng is None:
        return None

    formatted = (
        raw.get("formatted") or raw.get("text") or raw.get("description")
        or raw.get("street") or raw.get("place_id") or raw.get("placeId") or ""
    )
    return Address(
        formatted=str(formatted),
        text=str(raw.get("text") or raw.get("description") or formatted),
        place_id=raw.get("place_id") or raw.get("placeId") or None,
        house_number=str(raw.get("house_number") or raw.get("houseNumber") or ""),
        street=str(raw.get("street") or ""),
        town=str(raw.get("town") or default_town),
        post_code=str(raw.get("post_code") or raw.get("postCode") or ""),
        lat=lat,
        lng=lng,
        zone=zone_from_raw(raw.get("zone")),
    )


def validate_required_fields(values: dict) -> None:
    for key in REQUIRED_TEXT_FIELDS:
        v = values.get(key)
        if v is None or str(v).strip() == "":
            raise BookingValidationError(f"Missing required field: {key}")


def normalize_reason_code(reason_code: str) -> str:
    code = str(reason_code).strip().upper()
    if not _REASON_CODE_RE.match(code):
        raise BookingValidationError("Reason Code must be exactly 2 alphanumeric characters (e.g., P1).")
    return code


def validate_budget_number(budget_number: str) -> None:
    if not _BUDGET_NUMBER_RE.match(str(budget_number).strip()):
        raise BookingValidationError("Budget number must be 6 digits.")


def validate_signature(data_url: Optional[str]) -> None:
    if data_url and not str(data_url).startswith(_SIGNATURE_PREFIX):
        raise BookingValidationError("Invalid signature format (must be PNG data URL) or leave blank.")


def validate_shift_type(shift_type: str) -> None:
    if shift_type not in (SHIFT_START, SHIFT_FINISH):
        raise BookingValidationError("Shift type must be 'start' or 'finish'.")


def is_hospital(point: Coordinates, hospital: Coordinates, radius_m: float) -> bool:
    return is_within_m(point, hospital, radius_m)


def check_hospital_rule(
    shift_type: str,
    pickup: Address,
    destination: Address,
    hospital: Coordinates,
    radius_m: float,
    context: str = "",
) -> None:
    """Shift start must drop at the hospital; shift finish must pick up there."""
    if shift_type == SHIFT_START:
        if not is_hospital(destination.coordinates, hospital, radius_m):
            msg = "For Shift Start, the drop-off must be Derriford Hospital."
            if context == "return":
                msg = "Auto-return (Shift Start) must drop at Derriford Hospital."
            raise BookingValidationError(msg)
    else:
        if not is_hospital(pickup.coordinates, hospital, radius_m):
            msg = "For Shift Finish, the pickup must be Derriford Hospital."
            if context == "return":
                msg = "Auto-return (Shift Finish) must pick up at Derriford Hospital."
            raise BookingValidationError(msg)


def _has_location(address: Optional[Address]) -> bool:
    return (
        address is not None
        and to_float(address.lat) is not None
        and to_float(address.lng) is not None
    )


def validate_booking(
    booking: Booking,
    hospital: Coordinates,
    radius_m: float,
    check_budget_number: bool = True,
) -> None:
    """
    Full check of an edited booking before it is saved. Upper-cases the
    reason code in place.
    """
    validate_required_fields(booking.__dict__)
    validate_shift_type(booking.shift_type)
    booking.reason_code = normalize_reason_code(booking.reason_code)
    if check_budget_number:
        validate_budget_number(booking.budget_number)
    if not _has_location(booking.pickup):
        raise BookingValidationError("Booking pickup address is invalid, cannot update.")
    if not _has_location(booking.destination):
        raise BookingValidationError("Booking destination address is invalid, cannot update.")
    check_hospital_rule(booking.shift_type, booking.pickup, booking.destination, hospital, radius_m)


_PLACEHOLDER_RE = re.compile(r"{{\s*(\w+)\s*}}")


def render_template(template: str, booking: Booking, reason: Optional[str] = None) -> str:
    """Fill {{date}} {{time}} {{pickup}} {{destination}} {{staff}} {{ref}} {{reason}}."""
    values = {
        "date": to_ddmmyy(booking.pickup_date_iso),
        "time": booking.on_off_duty_time,
        "pickup": booking.pickup.formatted if booking.pickup else "",
        "destination": booking.destination.formatted if booking.destination else "",
        "staff": booking.staff_name or "",
        "ref": booking.short_ref or booking.reference or "",
        "reason": reason if reason is not None else (booking.decline_reason or ""),
    }
    return _PLACEHOLDER_RE.sub(lambda m: str(values.get(m.group(1), "")), str(template or ""))
