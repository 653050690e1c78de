"""
Smart Pack use case. Orchestrates core engines. No FastAPI.

Flow: bookings of one shift type -> stops on the non-hospital side
-> pickup-point labels per original zone -> buckets by (date, time, cluster)
-> nearest-neighbour order per bucket -> route groups.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from staffcab.application.config import HOSPITAL
from staffcab.application.pickup_points import apply_pickup_points
from staffcab.core.smart_pack_engine.bucket_aggregator import aggregate_counted
from staffcab.core.smart_pack_engine.output_assembly import finalize
from staffcab.domain.models import (
    OUTBOUND,
    SHIFT_FINISH,
    SHIFT_START,
    UNKNOWN_ZONE,
    Booking,
    Coordinates,
    RouteGroup,
    Stop,
    direction_for_shift,
)
from staffcab.domain.zone_clusters import ZoneClusterConfig


@dataclass
class ShiftGroups:
    type: str
    direction: str
    groups: List[RouteGroup]
    skipped: int = 0


def booking_to_stop(booking: Booking, use_destination: bool) -> Stop:
    address = booking.destination if use_destination else booking.pickup
    coords: Optional[Coordinates] = None
    if address is not None and address.lat is not None and address.lng is not None:
        coords = (address.lat, address.lng)
    zone_name = ""
    if address is not None and address.zone is not None:
        zone_name = address.zone.name or ""
    return Stop(
        coordinates=coords,
        zone_name=zone_name.strip() or UNKNOWN_ZONE,
        pickup_date_iso=booking.pickup_date_iso,
        on_off_duty_time=booking.on_off_duty_time,
        booking_id=booking.id,
        formatted=(address.formatted or address.text) if address else "",
        post_code=address.post_code if address else "",
        town=address.town if address else "",
        staff_name=booking.staff_name,
        staff_phone=booking.staff_phone,
    )


def build_shift_groups(
    bookings: Iterable[Booking],
    shift_type: str,
    clusters: ZoneClusterConfig,
    zone_pickups: Optional[dict] = None,
    date: str = "",
    hub: Coordinates = HOSPITAL,
) -> ShiftGroups:
    """
    shift_type 'finish' routes away from the hospital (destinations, outbound);
    anything else routes to it (pickups, inbound). Only 'start' and 'finish'
    filter bookings by shift type.
    """
    shift_type = (shift_type or SHIFT_START).lower()
    direction = direction_for_shift(shift_type)
    use_destination = direction == OUTBOUND

    selected = [
        b
        for b in bookings
        if (shift_type not in (SHIFT_START, SHIFT_FINISH) or b.shift_type == shift_type)
        and (not date or b.pickup_date_iso == date)
    ]

    # Pickup points are configured per Autocab zone, so label before clustering
    stops: List[Stop] = []
    for b in selected:
        stop = booking_to_stop(b, use_destination)
        stops.extend(apply_pickup_points([stop], stop.zone_name, zone_pickups or {}))

    buckets, skipped = aggregate_counted(stops, direction, clusters)
    groups = finalize(buckets, hub)
    return ShiftGroups(type=shift_type, direction=direction, groups=groups, skipped=skipped)
