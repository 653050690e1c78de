"""
Domain models. Dataclasses only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

UNKNOWN_ZONE = "(unknown)"

INBOUND = "inbound"
OUTBOUND = "outbound"

SHIFT_START = "start"
SHIFT_FINISH = "finish"

BOOKING_STATUSES = ("pending", "approved", "declined")

# (lat, lng) in decimal degrees
Coordinates = Tuple[float, float]


def direction_for_shift(shift_type: str) -> str:
    """Shift start travels to the hospital, shift finish travels away from it."""
    return OUTBOUND if shift_type == SHIFT_FINISH else INBOUND


def flip_shift(shift_type: str) -> str:
    return SHIFT_FINISH if shift_type == SHIFT_START else SHIFT_START


# --- Smart Pack routing ---


@dataclass(frozen=True)
class Stop:
    """
    One pickup or drop-off location for one booking on one shift.
    coordinates is None when the address has no usable map location.
    """
    coordinates: Optional[Coordinates]
    zone_name: str
    pickup_date_iso: str
    on_off_duty_time: str
    label: Optional[str] = None
    # Display only (route sheet / driver notes)
    booking_id: Optional[str] = None
    formatted: str = ""
    post_code: str = ""
    town: str = ""
    staff_name: str = ""
    staff_phone: str = ""


@dataclass(frozen=True)
class ZoneCluster:
    """Neighbouring zones that can share one vehicle."""
    label: str
    members: Tuple[str, ...]


@dataclass
class Bucket:
    """All stops sharing (date, time, cluster label). Unit handed to the sequencer."""
    date: str
    time: str
    cluster_label: str
    direction: str
    source_zones: set = field(default_factory=set)
    stops: List[Stop] = field(default_factory=list)
    count: int = 0

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.date, self.time, self.cluster_label)


@dataclass(frozen=True)
class RouteGroup:
    date: str
    time: str
    cluster_label: str
    source_zones: Tuple[str, ...]
    stop_count: int
    ordered_stops: Tuple[Stop, ...]


# --- Bookings ---


@dataclass
class Zone:
    id: str
    name: str


@dataclass
class Address:
    formatted: str
    lat: float
    lng: float
    text: str = ""
    place_id: Optional[str] = None
    house_number: str = ""
    street: str = ""
    town: str = "Plymouth"
    post_code: str = ""
    zone: Optional[Zone] = None

    @property
    def coordinates(self) -> Coordinates:
        return (self.lat, self.lng)


@dataclass
class AuditEntry:
    at: str
    actor_type: str  # "staff" | "admin" | "budget" | "system"
    source: str
    action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    details: Optional[dict] = None


@dataclass
class Booking:
    id: str
    ward_name: str
    ward_phone: str
    staff_name: str
    staff_phone: str
    shift_type: str
    on_off_duty_time: str  # "HH:MM"
    pickup_date_iso: str  # "YYYY-MM-DD"
    pickup: Address
    destination: Address
    reason_code: str
    budget_number: str
    budget_holder_name: str
    reference: str
    status: str = "pending"
    short_ref: Optional[str] = None
    require_return: bool = False
    return_date_iso: Optional[str] = None
    is_return: bool = False
    budget_holder_signature_data_url: Optional[str] = None
    decline_reason: str = ""
    manual_flag_label: Optional[str] = None
    manual_flag_reason: Optional[str] = None
    created_at: str = ""
    # Staff self-service link
    confirmed_by_staff_at: Optional[str] = None
    confirmed_by_staff_source: Optional[str] = None
    updated_by_staff_at: Optional[str] = None
    updated_by_staff_source: Optional[str] = None
    updated_by_staff_summary: Optional[str] = None
    cancelled_by_staff_at: Optional[str] = None
    cancelled_by_staff_reason: Optional[str] = None
    cancelled: bool = False
    cancelled_by: str = ""
    cancelled_at: Optional[str] = None
    cancel_reason: Optional[str] = None
    last_customer_action: str = ""
    last_customer_action_at: Optional[str] = None
    last_customer_action_source: Optional[str] = None
    last_customer_action_summary: Optional[str] = None
    # SMS tracking
    last_sms_at: Optional[str] = None
    last_sms_source: Optional[str] = None
    last_sms_purpose: Optional[str] = None
    last_sms_message_preview: Optional[str] = None
    sms_count: int = 0
    audit_log: List[AuditEntry] = field(default_factory=list)

    @property
    def routing_address(self) -> Address:
        """Non-hospital side of the trip: pickup for shift start, destination for finish."""
        return self.destination if self.shift_type == SHIFT_FINISH else self.pickup


@dataclass
class BookingLog:
    """One SMS / link event for a booking."""
    id: str
    booking_id: str
    type: str  # "edit_link_sms" | "generic_sms" | "manual_sms" ...
    phone: str
    message: str
    sms_status: dict
    meta: dict
    created_at: str


@dataclass(frozen=True)
class BudgetHolder:
    budget_number: str
    holder_name: str
    pin: str  # plain text or bcrypt hash
    active: bool = True


@dataclass(frozen=True)
class BudgetSession:
    budget_number: str
    holder_name: str


@dataclass(frozen=True)
class SmsResult:
    ok: bool
    to: str
    method: Optional[str] = None
    status: Optional[int] = None
    body: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    formatted: str
    post_code: str


@dataclass
class BookingPage:
    total: int
    page: int
    limit: int
    items: List[Booking]

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class BulkRowResult:
    index: int
    ok: bool
    skipped: bool = False
    reference: Optional[str] = None
    short_ref: Optional[str] = None
    error: Optional[str] = None
