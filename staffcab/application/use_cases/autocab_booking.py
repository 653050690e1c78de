"""
Smart Pack route group -> one multi-drop Autocab booking.

Start shift: first stop is the pickup, the rest are vias, the hospital is
the destination. Finish shift: the hospital is the pickup, all stops but the
last are vias, the last stop is the destination. Unknown shift type: first
and last stops, vias in between.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from staffcab.application.config import (
    DEFAULT_TOWN,
    HOSPITAL_LAT,
    HOSPITAL_LNG,
    HOSPITAL_POSTCODE,
    HOSPITAL_STREET,
    HOSPITAL_TEXT,
    Settings,
)
from staffcab.domain.errors import BookingValidationError
from staffcab.domain.models import SHIFT_FINISH, SHIFT_START

LOCAL_TZ = ZoneInfo("Europe/London")

# Vehicle seats -> Autocab capability id
CAPABILITY_BY_CAPACITY = {4: 27, 5: 22, 6: 4, 7: 20, 8: 5}
DEFAULT_CAPABILITY = 27


@dataclass
class SmartPackStop:
    """One stop as sent back by the Smart Pack screen."""
    formatted: str = ""
    text: str = ""
    post_code: str = ""
    town: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    label: str = ""
    note: str = ""
    staff_name: str = ""
    staff_phone: str = ""


@dataclass
class SmartPackBookingRequest:
    date: str
    time: str
    stops: List[SmartPackStop]
    passengers: Optional[int] = None
    vehicle_capacity: Optional[int] = None
    shift_type: str = ""
    bucket_label: str = ""


def capabilities_for(capacity: Optional[int]) -> List[int]:
    try:
        n = int(capacity) if capacity else 4
    except (TypeError, ValueError):
        n = 4
    return [CAPABILITY_BY_CAPACITY.get(n, DEFAULT_CAPABILITY)]


def stop_note(stop: Optional[SmartPackStop]) -> str:
    """Explicit note, else 'pickup label - staff name · phone'."""
    if stop is None:
        return ""
    if stop.note.strip():
        return stop.note.strip()
    staff = " · ".join(p for p in (stop.staff_name, stop.staff_phone) if p)
    return " - ".join(p for p in (stop.label.strip(), staff) if p)


def stop_address(stop: SmartPackStop) -> dict:
    base = stop.formatted or stop.text or ""
    label = stop.label.strip()
    text = base
    if label and label.lower() not in base.lower():
        text = f"{label} - {base}" if base else label
    has_coords = stop.lat is not None and stop.lng is not None
    return {
        "bookingPriority": 9,
        "coordinate": {"latitude": stop.lat, "longitude": stop.lng} if has_coords else None,
        "id": "-1",
        "isCustom": True,
        "postCode": stop.post_code or "",
        "source": "Custom",
        "street": text,
        "text": text,
        "town": stop.town or DEFAULT_TOWN,
        "zoneId": None,
    }


def hospital_address() -> dict:
    return {
        "bookingPriority": 0,
        "coordinate": {"latitude": HOSPITAL_LAT, "longitude": HOSPITAL_LNG},
        "id": "-1",
        "isCustom": False,
        "postCode": HOSPITAL_POSTCODE,
        "source": "Custom",
        "street": HOSPITAL_STREET,
        "text": HOSPITAL_TEXT,
        "town": DEFAULT_TOWN,
        "zoneId": None,
    }


def pickup_due_time_utc(date: str, time: str) -> str:
    """Local Plymouth wall-clock time -> UTC ISO timestamp."""
    try:
        local = datetime.strptime(f"{date} {time}", "%Y-%m-%d %H:%M").replace(tzinfo=LOCAL_TZ)
    except ValueError as e:
        raise BookingValidationError("Invalid date/time") from e
    return local.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _leg(address: dict, note: str, type: str) -> dict:
    return {"address": address, "note": note, "passengerDetailsIndex": None, "type": type}


def build_booking_payload(req: SmartPackBookingRequest, settings: Settings) -> dict:
    if not req.date or not req.time or not req.stops:
        raise BookingValidationError("Missing date, time or stops")
    due = pickup_due_time_utc(req.date, req.time)
    shift_type = (req.shift_type or "").lower()
    stops = req.stops

    pickup_stop: Optional[SmartPackStop] = None
    dest_stop: Optional[SmartPackStop] = None
    if shift_type == SHIFT_START:
        pickup_stop, vias = stops[0], stops[1:]
        pickup_addr, dest_addr = stop_address(pickup_stop), hospital_address()
    elif shift_type == SHIFT_FINISH:
        dest_stop, vias = stops[-1], stops[:-1]
        pickup_addr, dest_addr = hospital_address(), stop_address(dest_stop)
    else:
        pickup_stop, dest_stop, vias = stops[0], stops[-1], stops[1:-1]
        pickup_addr, dest_addr = stop_address(pickup_stop), stop_address(dest_stop)

    try:
        company_id: Any = int(settings.autocab_company_id)
    except ValueError:
        company_id = settings.autocab_company_id

    return {
        "capabilities": capabilities_for(req.vehicle_capacity),
        "companyId": company_id,
        "customerId": settings.hospital_customer_id,
        "customerEmail": "",
        "driverConstraints": {"forbiddenDrivers": [], "requestedDrivers": []},
        "vehicleConstraints": {"forbiddenVehicles": [], "requestedVehicles": []},
        "driverNote": f"SmartPack {req.bucket_label}" if req.bucket_label else "SmartPack booking",
        "officeNote": f"Shift type: {req.shift_type}" if req.shift_type else "",
        "name": "Derriford Staff Taxi",
        "passengers": str(req.passengers or len(stops)),
        "luggage": 0,
        "telephoneNumber": "",
        "ourReference": req.bucket_label or "",
        "pickup": _leg(pickup_addr, stop_note(pickup_stop), "Pickup"),
        "vias": [_leg(stop_address(v), stop_note(v), "Via") for v in vias],
        "destination": _leg(dest_addr, stop_note(dest_stop), "Destination"),
        "pickupDueTime": due,
        "pickupDueTimeUtc": due,
        "priority": 9,
        "priorityOverride": True,
        "yourReferences": {"yourReference1": shift_type, "yourReference2": ""},
        "hold": False,
    }


def book_smart_pack(req: SmartPackBookingRequest, settings: Settings, autocab) -> Any:
    """Build and send the booking. Raises AutocabBookingError on rejection."""
    payload = build_booking_payload(req, settings)
    return autocab.create_booking(payload)
