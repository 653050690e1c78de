"""
Booking use cases: create, query, export, admin actions, staff self-service.
Orchestrates domain rules and the store. No FastAPI.

Every edit works on a copy from the store and is saved only after it passes
validation, so a rejected edit leaves the stored booking untouched.
"""

import csv
import dataclasses
import io
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from staffcab.application.config import (
    DEFAULT_TOWN,
    EXPORT_MAX_ROWS,
    HOSPITAL,
    HOSPITAL_RADIUS_M,
    MAX_PAGE_LIMIT,
)
from staffcab.domain import booking_rules
from staffcab.domain.errors import BookingValidationError
from staffcab.domain.models import (
    BOOKING_STATUSES,
    SHIFT_FINISH,
    SHIFT_START,
    Address,
    AuditEntry,
    Booking,
    BookingPage,
    GeocodeResult,
    Zone,
    flip_shift,
)
from staffcab.infrastructure.booking_store import BookingStore, utc_now_iso

logger = logging.getLogger(__name__)

ZoneLookup = Callable[[float, float], Optional[Zone]]
Geocode = Callable[[str, str], GeocodeResult]

ADMIN_EDITABLE_FIELDS = (
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

SORTABLE_FIELDS = {
    "pickup_date_iso", "on_off_duty_time", "shift_type", "ward_name", "staff_name",
    "reference", "short_ref", "status", "created_at", "budget_number",
}
# Camel-case aliases sent by the dashboard
_SORT_ALIASES = {
    "pickupDateISO": "pickup_date_iso",
    "onOffDutyTime": "on_off_duty_time",
    "shiftType": "shift_type",
    "wardName": "ward_name",
    "staffName": "staff_name",
    "shortRef": "short_ref",
    "createdAt": "created_at",
    "budgetNumber": "budget_number",
}


def _audit(
    store: BookingStore,
    booking_id: str,
    actor_type: str,
    source: str,
    action: str,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
    details: Optional[dict] = None,
) -> None:
    store.append_audit(
        booking_id,
        AuditEntry(
            at=utc_now_iso(),
            actor_type=actor_type,
            source=source,
            action=action,
            old_status=old_status,
            new_status=new_status,
            details=details,
        ),
    )


def _fill_zone(address: Address, zone_lookup: ZoneLookup) -> None:
    if address.zone is None:
        address.zone = zone_lookup(address.lat, address.lng)


# --- Create ---


def _new_booking(values: dict, pickup: Address, destination: Address, reference: str) -> Booking:
    return Booking(
        id="",
        ward_name=str(values["ward_name"]).strip(),
        ward_phone=str(values["ward_phone"]).strip(),
        staff_name=str(values["staff_name"]).strip(),
        staff_phone=str(values["staff_phone"]).strip(),
        shift_type=values["shift_type"],
        on_off_duty_time=str(values["on_off_duty_time"]).strip(),
        pickup_date_iso=str(values["pickup_date_iso"]).strip(),
        pickup=pickup,
        destination=destination,
        reason_code=values["reason_code"],
        budget_number=str(values["budget_number"]).strip(),
        budget_holder_name=str(values["budget_holder_name"]).strip(),
        reference=reference,
        budget_holder_signature_data_url=values.get("budget_holder_signature_data_url") or None,
    )


def create_booking(
    payload: dict,
    store: BookingStore,
    zone_lookup: ZoneLookup,
    source: str = "staff-booker",
) -> Tuple[Booking, Optional[Booking]]:
    """
    New pending booking plus, when require_return is set, its return leg.
    Both legs are validated before either is stored.
    """
    values = dict(payload)
    booking_rules.validate_required_fields(values)
    booking_rules.validate_shift_type(values["shift_type"])
    values["reason_code"] = booking_rules.normalize_reason_code(values["reason_code"])
    booking_rules.validate_budget_number(values["budget_number"])
    booking_rules.validate_signature(values.get("budget_holder_signature_data_url"))

    pickup = booking_rules.normalize_address(values.get("pickup"), DEFAULT_TOWN)
    if pickup is None:
        raise BookingValidationError("Invalid pickup address. Please select from suggestions.")
    destination = booking_rules.normalize_address(values.get("destination"), DEFAULT_TOWN)
    if destination is None:
        raise BookingValidationError("Invalid destination address. Please select from suggestions.")
    booking_rules.check_hospital_rule(values["shift_type"], pickup, destination, HOSPITAL, HOSPITAL_RADIUS_M)

    reference = booking_rules.make_reference(
        values["reason_code"], str(values["budget_number"]).strip(), str(values["budget_holder_name"]).strip()
    )
    outbound = _new_booking(values, pickup, destination, reference)
    outbound.require_return = bool(values.get("require_return"))

    return_leg: Optional[Booking] = None
    if outbound.require_return:
        return_date = str(values.get("return_date_iso") or "").strip()
        if not return_date:
            raise BookingValidationError("Return date is required when return booking is requested.")
        return_time = str(values.get("return_on_off_duty_time") or "").strip() or outbound.on_off_duty_time
        outbound.return_date_iso = return_date

        return_leg = _new_booking(
            values,
            pickup=dataclasses.replace(destination),
            destination=dataclasses.replace(pickup),
            reference=reference,
        )
        return_leg.shift_type = flip_shift(outbound.shift_type)
        return_leg.on_off_duty_time = return_time
        return_leg.pickup_date_iso = return_date
        return_leg.is_return = True
        booking_rules.check_hospital_rule(
            return_leg.shift_type,
            return_leg.pickup,
            return_leg.destination,
            HOSPITAL,
            HOSPITAL_RADIUS_M,
            context="return",
        )

    for leg in (outbound, return_leg):
        if leg is None:
            continue
        _fill_zone(leg.pickup, zone_lookup)
        _fill_zone(leg.destination, zone_lookup)
        leg.short_ref = store.next_short_ref()

    saved = store.insert(outbound)
    _audit(store, saved.id, "staff", source, "booking-created", details={"via": "/api/bookings", "is_return": False})
    saved_return = None
    if return_leg is not None:
        saved_return = store.insert(return_leg)
        _audit(
            store, saved_return.id, "staff", source, "booking-created",
            details={"via": "/api/bookings", "is_return": True},
        )
    logger.info("Booking %s created (return: %s)", saved.short_ref, saved_return.short_ref if saved_return else "-")
    return store.get(saved.id), (store.get(saved_return.id) if saved_return else None)


# --- Query / export ---


@dataclass
class BookingQuery:
    date_from: str = ""
    date_to: str = ""
    shift_type: str = ""
    time: str = ""
    zone: str = ""
    ward: str = ""
    staff: str = ""
    reference: str = ""
    require_return: Optional[bool] = None
    is_return: Optional[bool] = None
    status: str = ""
    budget_number: str = ""
    sort: str = ""
    page: int = 1
    limit: int = 50


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def _zone_name(address: Optional[Address]) -> str:
    return address.zone.name if address is not None and address.zone is not None else ""


def matches(booking: Booking, q: BookingQuery) -> bool:
    if q.date_from and booking.pickup_date_iso < q.date_from:
        return False
    if q.date_to and booking.pickup_date_iso > q.date_to:
        return False
    if q.shift_type in (SHIFT_START, SHIFT_FINISH) and booking.shift_type != q.shift_type:
        return False
    if q.time and booking.on_off_duty_time != q.time:
        return False
    zone = q.zone.strip()
    if zone:
        if q.shift_type == SHIFT_START:
            ok = _contains(_zone_name(booking.pickup), zone)
        elif q.shift_type == SHIFT_FINISH:
            ok = _contains(_zone_name(booking.destination), zone)
        else:
            ok = _contains(_zone_name(booking.pickup), zone) or _contains(_zone_name(booking.destination), zone)
        if not ok:
            return False
    if q.ward.strip() and not _contains(booking.ward_name, q.ward.strip()):
        return False
    if q.staff.strip() and not _contains(booking.staff_name, q.staff.strip()):
        return False
    if q.reference.strip() and not _contains(booking.reference, q.reference.strip()):
        return False
    if q.require_return is not None and booking.require_return != q.require_return:
        return False
    if q.is_return is not None and booking.is_return != q.is_return:
        return False
    if q.status in BOOKING_STATUSES and booking.status != q.status:
        return False
    if q.budget_number and booking.budget_number != q.budget_number:
        return False
    return True


def parse_sort(sort: str) -> List[Tuple[str, bool]]:
    """'pickupDateISO:desc,staffName' -> [(field, descending), ...]. Unknown fields are ignored."""
    keys: List[Tuple[str, bool]] = []
    for part in (sort or "").split(","):
        name, _, direction = part.strip().partition(":")
        name = _SORT_ALIASES.get(name, name)
        if name in SORTABLE_FIELDS:
            keys.append((name, direction.strip().lower() == "desc"))
    return keys or [("pickup_date_iso", False), ("on_off_duty_time", False)]


def sort_bookings(bookings: List[Booking], sort: str) -> List[Booking]:
    out = list(bookings)
    # Stable sorts applied from the last key to the first
    for name, desc in reversed(parse_sort(sort)):
        out.sort(key=lambda b: str(getattr(b, name) or ""), reverse=desc)
    return out


def query_bookings(store: BookingStore, q: BookingQuery, max_limit: int = MAX_PAGE_LIMIT) -> BookingPage:
    page = max(1, int(q.page or 1))
    limit = min(max_limit, max(1, int(q.limit or 50)))
    selected = sort_bookings([b for b in store.all() if matches(b, q)], q.sort)
    start = (page - 1) * limit
    return BookingPage(total=len(selected), page=page, limit=limit, items=selected[start:start + limit])


EXPORT_HEADER = [
    "pickupDateISO",
    "onOffDutyTime",
    "shiftType",
    "wardName",
    "staffName",
    "staffPhone",
    "pickup.formatted",
    "pickup.zone.name",
    "destination.formatted",
    "destination.zone.name",
    "reference",
    "requireReturn",
    "isReturn",
    "status",
    "shortRef",
    "declineReason",
]


def export_bookings_csv(store: BookingStore, q: BookingQuery) -> str:
    """Same filters and sort as the list, first page of up to 5000 rows."""
    page = query_bookings(store, dataclasses.replace(q, page=1, limit=EXPORT_MAX_ROWS), max_limit=EXPORT_MAX_ROWS)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for b in page.items:
        writer.writerow([
            booking_rules.to_ddmmyy(b.pickup_date_iso),
            b.on_off_duty_time,
            b.shift_type,
            b.ward_name,
            b.staff_name,
            b.staff_phone,
            b.pickup.formatted if b.pickup else "",
            _zone_name(b.pickup),
            b.destination.formatted if b.destination else "",
            _zone_name(b.destination),
            b.reference,
            "TRUE" if b.require_return else "FALSE",
            "TRUE" if b.is_return else "FALSE",
            b.status,
            b.short_ref or "",
            b.decline_reason,
        ])
    return buf.getvalue()


# --- Admin actions ---


def _merge_address(current: Address, patch: dict) -> Address:
    """Field-by-field merge; keys not sent keep their value."""
    fields = {f.name for f in dataclasses.fields(Address)}
    aliases = {"postCode": "post_code", "placeId": "place_id", "houseNumber": "house_number"}
    changes = {}
    for key, value in patch.items():
        name = aliases.get(key, key)
        if name not in fields:
            continue
        if name == "zone":
            value = booking_rules.zone_from_raw(value) if value is not None else None
        elif name in ("lat", "lng"):
            value = booking_rules.to_float(value)
        changes[name] = value
    return dataclasses.replace(current, **changes)


def update_booking(store: BookingStore, booking_id: str, payload: dict) -> Booking:
    """
    Dashboard edit. Only manual flags -> saved as is. Core fields, status or
    addresses -> full re-validation and reference rebuild.
    """
    b = store.get(booking_id)
    previous_status = b.status

    if "manual_flag_label" in payload:
        v = payload["manual_flag_label"]
        b.manual_flag_label = None if v is None else str(v).strip()
    if "manual_flag_reason" in payload:
        v = payload["manual_flag_reason"]
        b.manual_flag_reason = None if v is None else str(v).strip()

    is_core = (
        any(payload.get(f) is not None for f in ADMIN_EDITABLE_FIELDS)
        or payload.get("status") is not None
        or bool(payload.get("pickup"))
        or bool(payload.get("destination"))
    )
    if not is_core:
        return store.save(b)

    for name in ADMIN_EDITABLE_FIELDS:
        value = payload.get(name)
        if value is not None:
            setattr(b, name, value.strip() if isinstance(value, str) else value)
    if payload.get("status") is not None:
        status = str(payload["status"]).strip().lower()
        if not status:
            b.status = "pending"
        elif status in BOOKING_STATUSES:
            b.status = status
    if payload.get("pickup"):
        b.pickup = _merge_address(b.pickup, payload["pickup"])
    if payload.get("destination"):
        b.destination = _merge_address(b.destination, payload["destination"])

    booking_rules.validate_booking(b, HOSPITAL, HOSPITAL_RADIUS_M)
    b.reference = booking_rules.make_reference(b.reason_code, b.budget_number, b.budget_holder_name)
    saved = store.save(b)

    if previous_status != saved.status:
        _audit(
            store, saved.id, "admin", "admin-dashboard", "status-changed",
            old_status=previous_status, new_status=saved.status,
            details={"via": "PUT /api/bookings/:id"},
        )
    return store.get(saved.id)


def set_status(
    store: BookingStore,
    booking_id: str,
    new_status: str,
    actor_type: str = "admin",
    source: str = "admin-dashboard",
    reason: Optional[str] = None,
    details: Optional[dict] = None,
    audit_unchanged: bool = False,
) -> Booking:
    """
    approve / decline / clear. Decline stores the reason (may be empty),
    clear wipes it. Audited when the status changes, or always with audit_unchanged.
    """
    b = store.get(booking_id)
    previous = b.status
    b.status = new_status
    if new_status == "declined":
        b.decline_reason = (reason or "").strip()
    elif new_status == "pending":
        b.decline_reason = ""
    saved = store.save(b)

    if previous != new_status or audit_unchanged:
        audit_details = dict(details or {})
        if new_status == "declined":
            audit_details["reason"] = saved.decline_reason
        _audit(
            store, saved.id, actor_type, source, "status-changed",
            old_status=previous, new_status=new_status, details=audit_details,
        )
    return store.get(saved.id)


def delete_booking(store: BookingStore, booking_id: str) -> str:
    b = store.get(booking_id)
    store.delete(booking_id)
    logger.info("Booking %s (%s) deleted, status was %s", b.id, b.short_ref, b.status)
    return booking_id


# --- Staff self-service link ---


def customer_confirm(store: BookingStore, booking_id: str) -> Booking:
    b = store.get(booking_id)
    now = utc_now_iso()
    b.confirmed_by_staff_at = now
    b.confirmed_by_staff_source = "staff-link"
    b.last_customer_action = "confirmed"
    b.last_customer_action_at = now
    b.last_customer_action_source = "sms-link"
    b.last_customer_action_summary = "Confirmed via staff link"
    b.status = "approved"
    store.save(b)
    _audit(store, b.id, "staff", "sms-link", "customer-confirmed", details={})
    return store.get(b.id)


def customer_cancel(store: BookingStore, booking_id: str, reason: Optional[str] = None) -> Booking:
    b = store.get(booking_id)
    now = utc_now_iso()
    reason = (reason or "").strip() or None
    default_reason = "Cancelled by staff via update link"
    b.status = "declined"
    b.decline_reason = reason or default_reason
    b.cancelled_by_staff_at = now
    b.cancelled_by_staff_reason = reason
    b.cancelled = True
    b.cancelled_by = "staff-link"
    b.cancelled_at = now
    b.cancel_reason = reason or default_reason
    b.last_customer_action = "cancelled"
    b.last_customer_action_at = now
    b.last_customer_action_source = "sms-link"
    b.last_customer_action_summary = "Cancelled via staff link"
    store.save(b)
    _audit(store, b.id, "staff", "sms-link", "customer-cancelled", details={"reason": reason})
    return store.get(b.id)


def _update_side(
    current: Address,
    structured: Optional[dict],
    text: Optional[str],
    post_code: Optional[str],
    label: str,
    zone_lookup: ZoneLookup,
    geocode: Geocode,
) -> Address:
    """One side of a self-service address edit: structured address or text + postcode geocoded."""
    if structured:
        norm = booking_rules.normalize_address(structured, DEFAULT_TOWN)
        if norm is None:
            raise BookingValidationError(f"Invalid {label} address. Please select from suggestions.")
        merged = dataclasses.replace(
            current,
            **{f.name: getattr(norm, f.name) for f in dataclasses.fields(Address) if f.name != "zone"},
        )
        merged.zone = zone_lookup(merged.lat, merged.lng)
        return merged

    base_street = text or current.text or current.formatted or ""
    base_post_code = post_code or current.post_code or ""
    if not base_street and not base_post_code:
        raise BookingValidationError(f"Invalid {label} address. Please enter a full address and postcode.")
    geo = geocode(base_street, base_post_code)
    return dataclasses.replace(
        current,
        formatted=geo.formatted,
        text=geo.formatted,
        post_code=geo.post_code or base_post_code,
        lat=geo.lat,
        lng=geo.lng,
        zone=zone_lookup(geo.lat, geo.lng),
    )


def change_summary(b: Booking, changed: List[str]) -> List[str]:
    parts = []
    if "date" in changed:
        parts.append(f"date to {booking_rules.to_ddmmyy(b.pickup_date_iso)}")
    if "time" in changed:
        parts.append(f"time to {b.on_off_duty_time}")
    if "phone" in changed:
        parts.append("contact number")
    if "pickupAddress" in changed:
        parts.append("pickup address")
    if "destinationAddress" in changed:
        parts.append("destination address")
    return parts


def apply_customer_update(
    b: Booking,
    payload: dict,
    zone_lookup: ZoneLookup,
    geocode: Geocode,
) -> List[str]:
    """
    Date, time, phone and addresses for this booking only (return settings are
    ignored). Mutates b and returns the changed field names. Raises
    BookingValidationError when nothing changed or the result breaks a rule.
    """
    changed: List[str] = []
    date = payload.get("pickup_date_iso")
    if date and date != b.pickup_date_iso:
        b.pickup_date_iso = date
        changed.append("date")
    time = payload.get("on_off_duty_time")
    if time and time != b.on_off_duty_time:
        b.on_off_duty_time = time
        changed.append("time")
    phone = payload.get("staff_phone")
    if phone and phone != b.staff_phone:
        b.staff_phone = phone
        changed.append("phone")

    if payload.get("pickup") or payload.get("pickup_text") or payload.get("pickup_post_code"):
        b.pickup = _update_side(
            b.pickup, payload.get("pickup"), payload.get("pickup_text"), payload.get("pickup_post_code"),
            "pickup", zone_lookup, geocode,
        )
        changed.append("pickupAddress")
    if payload.get("destination") or payload.get("destination_text") or payload.get("destination_post_code"):
        b.destination = _update_side(
            b.destination, payload.get("destination"), payload.get("destination_text"),
            payload.get("destination_post_code"), "destination", zone_lookup, geocode,
        )
        changed.append("destinationAddress")

    if not changed:
        raise BookingValidationError("No update fields provided")
    booking_rules.check_hospital_rule(b.shift_type, b.pickup, b.destination, HOSPITAL, HOSPITAL_RADIUS_M)
    return changed


def customer_update(
    store: BookingStore,
    booking_id: str,
    payload: dict,
    zone_lookup: ZoneLookup,
    geocode: Geocode,
) -> Booking:
    b = store.get(booking_id)
    changed = apply_customer_update(b, payload, zone_lookup, geocode)

    parts = change_summary(b, changed)
    summary = f"Staff updated {', '.join(parts)} via link" if parts else "Staff updated booking via link"
    now = utc_now_iso()
    b.updated_by_staff_at = now
    b.updated_by_staff_source = "staff-link"
    b.updated_by_staff_summary = summary
    b.last_customer_action = "updated"
    b.last_customer_action_at = now
    b.last_customer_action_source = "sms-link"
    b.last_customer_action_summary = summary
    store.save(b)
    _audit(store, b.id, "staff", "sms-link", "customer-updated", details={"changed_fields": changed, "summary": summary})
    return store.get(b.id)
