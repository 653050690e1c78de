"""
Legacy dashboard summaries: bookings by pickup zone and by (shift type, time).
"""

from typing import Iterable, List

from staffcab.domain.booking_rules import to_ddmmyy
from staffcab.domain.models import UNKNOWN_ZONE, Booking


def _pickup_zone(b: Booking) -> str:
    return b.pickup.zone.name if b.pickup is not None and b.pickup.zone is not None else ""


def report_by_zone(bookings: Iterable[Booking], date: str = "") -> List[dict]:
    groups: dict[str, dict] = {}
    for b in bookings:
        if date and b.pickup_date_iso != date:
            continue
        zone = _pickup_zone(b) or UNKNOWN_ZONE
        group = groups.setdefault(zone, {"zone_name": zone, "count": 0, "items": []})
        group["count"] += 1
        group["items"].append({
            "pickup_date": to_ddmmyy(b.pickup_date_iso),
            "ward": b.ward_name,
            "staff": b.staff_name,
            "shift_type": b.shift_type,
            "on_off_duty_time": b.on_off_duty_time,
            "reference": b.reference,
        })
    return [groups[k] for k in sorted(groups)]


def report_by_shift(bookings: Iterable[Booking], date: str = "") -> List[dict]:
    groups: dict[tuple[str, str], dict] = {}
    for b in bookings:
        if date and b.pickup_date_iso != date:
            continue
        key = (b.shift_type, b.on_off_duty_time)
        group = groups.setdefault(
            key, {"shift_type": b.shift_type, "on_off_duty_time": b.on_off_duty_time, "count": 0, "zones": set()}
        )
        group["count"] += 1
        zone = _pickup_zone(b)
        if zone:
            group["zones"].add(zone)
    out = []
    for key in sorted(groups):
        g = groups[key]
        out.append(dict(g, zones=sorted(g["zones"])))
    return out
