import pytest

from staffcab.application.config import HOSPITAL, Settings, load_zone_cluster_config
from staffcab.application.use_cases.autocab_booking import (
    SmartPackBookingRequest,
    SmartPackStop,
    book_smart_pack,
    build_booking_payload,
    capabilities_for,
    pickup_due_time_utc,
    stop_note,
)
from staffcab.application.use_cases.smart_pack import build_shift_groups
from staffcab.domain.errors import BookingValidationError
from staffcab.domain.models import INBOUND, OUTBOUND, Address, Booking, Zone, direction_for_shift

CLUSTERS = load_zone_cluster_config("")
SETTINGS = Settings(autocab_company_id="123", hospital_customer_id=2139)


def _address(lat, lng, zone=None, formatted="somewhere", post_code=""):
    return Address(
        formatted=formatted, lat=lat, lng=lng, post_code=post_code,
        zone=Zone(id="1", name=zone) if zone else None,
    )


def _booking(id, shift_type, home, date="2025-12-24", time="07:30"):
    hospital = _address(*HOSPITAL, formatted="Derriford Hospital")
    pickup, destination = (home, hospital) if shift_type == "start" else (hospital, home)
    return Booking(
        id=id, ward_name="Ward 5", ward_phone="01752000000", staff_name=f"Staff {id}",
        staff_phone="07700900123", shift_type=shift_type, on_off_duty_time=time,
        pickup_date_iso=date, pickup=pickup, destination=destination, reason_code="P1",
        budget_number="123456", budget_holder_name="Sam Lee", reference="P1/123456/Sam Lee",
    )


# --- shift groups ---


def test_start_shift_groups_by_cluster_and_orders_inbound():
    bookings = [
        _booking("near", "start", _address(50.43, -4.12, "Mutley", "1 Near Road")),
        _booking("far", "start", _address(50.47, -4.12, "Lipson", "2 Far Road")),
        _booking("other", "start", _address(50.40, -4.05, "Plympton", "3 East Road")),
        _booking("evening", "finish", _address(50.45, -4.12, "Mutley")),
        _booking("no-time", "start", _address(50.44, -4.12, "Mutley"), time=""),
    ]
    result = build_shift_groups(bookings, "start", CLUSTERS)

    assert result.type == "start"
    assert result.direction == INBOUND
    assert result.skipped == 1
    labels = [g.cluster_label for g in result.groups]
    assert labels == ["Mutley / Greenbank / Lipson / St Judes / Mount Gould", "Plympton"]

    shared = result.groups[0]
    assert shared.source_zones == ("Lipson", "Mutley")
    assert [s.booking_id for s in shared.ordered_stops] == ["far", "near"]
    assert shared.ordered_stops[0].staff_name == "Staff far"


def test_finish_shift_uses_destination_side_outbound():
    bookings = [
        _booking("far", "finish", _address(50.47, -4.12, "Mutley")),
        _booking("near", "finish", _address(50.43, -4.12, "Mutley")),
        _booking("morning", "start", _address(50.44, -4.12, "Mutley")),
    ]
    result = build_shift_groups(bookings, "FINISH", CLUSTERS)
    assert result.direction == OUTBOUND
    assert len(result.groups) == 1
    assert [s.booking_id for s in result.groups[0].ordered_stops] == ["near", "far"]


def test_other_type_keeps_all_bookings_and_date_filter():
    bookings = [
        _booking("a", "start", _address(50.43, -4.12, "Mutley")),
        _booking("b", "finish", _address(50.45, -4.12, "Mutley")),
        _booking("c", "start", _address(50.45, -4.12, "Mutley"), date="2025-12-25"),
    ]
    result = build_shift_groups(bookings, "all", CLUSTERS, date="2025-12-24")
    assert result.direction == INBOUND
    assert sorted(s.booking_id for g in result.groups for s in g.ordered_stops) == ["a", "b"]


def test_stop_without_zone_lands_in_unknown_cluster():
    result = build_shift_groups([_booking("a", "start", _address(50.43, -4.12))], "start", CLUSTERS)
    assert result.groups[0].cluster_label == "(unknown)"


def test_pickup_points_label_stops():
    bookings = [
        _booking("a", "start", _address(50.43, -4.12, "Mutley", "12 Mutley Plain", "PL4 6LE")),
        _booking("b", "start", _address(50.44, -4.12, "Lipson", "4 Lipson Road", "PL4 8AA")),
    ]
    pickups = {"mutley": [{"label": "Outside Co-op", "postcodes": ["PL46LE"]}]}
    result = build_shift_groups(bookings, "start", CLUSTERS, zone_pickups=pickups)
    labels = {s.booking_id: s.label for s in result.groups[0].ordered_stops}
    assert labels == {"a": "Outside Co-op", "b": None}


# --- Autocab booking payload ---


def _stops(n):
    return [
        SmartPackStop(formatted=f"{i} Road", post_code="PL4 6LE", lat=50.4 + i / 100, lng=-4.12,
                      label="Outside Co-op" if i == 0 else "", staff_name=f"Staff {i}", staff_phone="077")
        for i in range(n)
    ]


@pytest.mark.parametrize("capacity, expected", [(4, [27]), (5, [22]), (6, [4]), (7, [20]), (8, [5]),
                                                (None, [27]), (9, [27]), ("x", [27])])
def test_capabilities(capacity, expected):
    assert capabilities_for(capacity) == expected


def test_pickup_due_time_is_utc():
    assert pickup_due_time_utc("2025-12-24", "08:00") == "2025-12-24T08:00:00Z"
    assert pickup_due_time_utc("2025-07-01", "08:00") == "2025-07-01T07:00:00Z"
    with pytest.raises(BookingValidationError):
        pickup_due_time_utc("2025-07-01", "8 o'clock")


def test_stop_note():
    assert stop_note(SmartPackStop(label="Outside Co-op", staff_name="Jo", staff_phone="077")) == "Outside Co-op - Jo · 077"
    assert stop_note(SmartPackStop(note=" Gate 3 ", staff_name="Jo")) == "Gate 3"
    assert stop_note(None) == ""


def test_start_shift_payload():
    req = SmartPackBookingRequest(date="2025-12-24", time="07:30", stops=_stops(3), shift_type="start",
                                  bucket_label="Mutley", vehicle_capacity=6)
    payload = build_booking_payload(req, SETTINGS)

    assert payload["companyId"] == 123
    assert payload["customerId"] == 2139
    assert payload["capabilities"] == [4]
    assert payload["passengers"] == "3"
    assert payload["pickup"]["address"]["text"] == "Outside Co-op - 0 Road"
    assert payload["pickup"]["note"] == "Outside Co-op - Staff 0 · 077"
    assert [v["address"]["text"] for v in payload["vias"]] == ["1 Road", "2 Road"]
    assert payload["destination"]["address"]["postCode"] == "PL6 8DH"
    assert payload["destination"]["note"] == ""
    assert payload["driverNote"] == "SmartPack Mutley"
    assert payload["pickupDueTime"] == "2025-12-24T07:30:00Z"


def test_finish_shift_payload():
    req = SmartPackBookingRequest(date="2025-12-24", time="20:00", stops=_stops(3), shift_type="finish", passengers=2)
    payload = build_booking_payload(req, SETTINGS)
    assert payload["pickup"]["address"]["postCode"] == "PL6 8DH"
    assert [v["address"]["text"] for v in payload["vias"]] == ["Outside Co-op - 0 Road", "1 Road"]
    assert payload["destination"]["address"]["text"] == "2 Road"
    assert payload["passengers"] == "2"


def test_unknown_shift_uses_first_and_last_stop():
    payload = build_booking_payload(
        SmartPackBookingRequest(date="2025-12-24", time="20:00", stops=_stops(2)), SETTINGS
    )
    assert payload["pickup"]["address"]["text"] == "Outside Co-op - 0 Road"
    assert payload["vias"] == []
    assert payload["destination"]["address"]["text"] == "1 Road"


def test_payload_requires_stops():
    with pytest.raises(BookingValidationError):
        build_booking_payload(SmartPackBookingRequest(date="2025-12-24", time="07:30", stops=[]), SETTINGS)


def test_book_smart_pack_sends_payload():
    class FakeAutocab:
        def __init__(self):
            self.payloads = []

        def create_booking(self, payload):
            self.payloads.append(payload)
            return {"bookingId": 42}

    autocab = FakeAutocab()
    req = SmartPackBookingRequest(date="2025-12-24", time="07:30", stops=_stops(1), shift_type="start")
    assert book_smart_pack(req, SETTINGS, autocab) == {"bookingId": 42}
    assert autocab.payloads[0]["pickup"]["type"] == "Pickup"


@pytest.mark.parametrize("shift_type, direction, formatted", [
    ("start", INBOUND, ["1 Start Road"]),
    ("Finish", OUTBOUND, ["2 Finish Road"]),
    ("all", INBOUND, ["1 Start Road", "Derriford Hospital"]),
    ("", INBOUND, ["1 Start Road"]),
])
def test_direction_and_side_follow_shift_type(shift_type, direction, formatted):
    bookings = [
        _booking("s", "start", _address(50.43, -4.12, "Mutley", "1 Start Road")),
        _booking("f", "finish", _address(50.44, -4.12, "Mutley", "2 Finish Road")),
    ]
    result = build_shift_groups(bookings, shift_type, CLUSTERS)
    assert result.direction == direction == direction_for_shift(result.type)
    assert sorted(s.formatted for g in result.groups for s in g.ordered_stops) == formatted
