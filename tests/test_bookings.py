import pytest

from staffcab.application.use_cases import bookings
from staffcab.application.use_cases.bookings import BookingQuery
from staffcab.domain.errors import BookingNotFoundError, BookingValidationError
from staffcab.domain.models import Zone


def _create(store, zone_lookup, payload):
    booking, _ = bookings.create_booking(payload, store, zone_lookup)
    return booking


# --- create ---


def test_create_booking(store, zone_lookup, booking_payload):
    booking, return_booking = bookings.create_booking(booking_payload(), store, zone_lookup)

    assert return_booking is None
    assert booking.status == "pending"
    assert booking.short_ref == "NAC001"
    assert booking.reason_code == "P1"
    assert booking.reference == "P1/123456/Sam Lee"
    assert booking.pickup.zone == Zone(id="7", name="Mutley")
    assert booking.created_at
    assert [(a.action, a.actor_type) for a in booking.audit_log] == [("booking-created", "staff")]


def test_create_keeps_zone_sent_by_browser(store, booking_payload):
    payload = booking_payload()
    payload["pickup"]["zone"] = {"id": "3", "name": "Lipson"}
    booking = _create(store, lambda lat, lng: Zone("9", "Wrong"), payload)
    assert booking.pickup.zone.name == "Lipson"
    assert booking.destination.zone.name == "Wrong"


def test_create_with_return_leg(store, zone_lookup, booking_payload):
    payload = booking_payload(require_return=True, return_date_iso="2025-12-25", return_on_off_duty_time="20:00")
    outbound, back = bookings.create_booking(payload, store, zone_lookup)

    assert outbound.require_return and outbound.return_date_iso == "2025-12-25"
    assert back.is_return
    assert back.shift_type == "finish"
    assert back.pickup_date_iso == "2025-12-25"
    assert back.on_off_duty_time == "20:00"
    assert back.pickup.formatted == outbound.destination.formatted
    assert back.destination.formatted == outbound.pickup.formatted
    assert back.reference == outbound.reference
    assert (outbound.short_ref, back.short_ref) == ("NAC001", "NAC002")
    assert len(store.all()) == 2


def test_return_time_defaults_to_outbound_time(store, zone_lookup, booking_payload):
    _, back = bookings.create_booking(
        booking_payload(require_return=True, return_date_iso="2025-12-25"), store, zone_lookup
    )
    assert back.on_off_duty_time == "07:30"


@pytest.mark.parametrize("overrides, message", [
    ({"ward_name": ""}, "ward_name"),
    ({"shift_type": "middle"}, "Shift type"),
    ({"reason_code": "ABC"}, "Reason Code"),
    ({"budget_number": "12345"}, "6 digits"),
    ({"budget_holder_signature_data_url": "data:text/plain,hi"}, "signature"),
    ({"pickup": {"formatted": "no coords"}}, "Invalid pickup address"),
    ({"destination": None}, "Invalid destination address"),
    ({"require_return": True}, "Return date is required"),
])
def test_create_rejects_invalid_payload_without_storing(store, zone_lookup, booking_payload, overrides, message):
    with pytest.raises(BookingValidationError, match=message):
        bookings.create_booking(booking_payload(**overrides), store, zone_lookup)
    assert store.all() == []
    assert store.next_short_ref() == "NAC001"


def test_create_enforces_hospital_side(store, zone_lookup, booking_payload):
    payload = booking_payload()
    payload["pickup"], payload["destination"] = payload["destination"], payload["pickup"]
    with pytest.raises(BookingValidationError, match="Shift Start"):
        bookings.create_booking(payload, store, zone_lookup)

    payload["shift_type"] = "finish"
    booking = _create(store, zone_lookup, payload)
    assert booking.shift_type == "finish"


# --- query / export ---


@pytest.fixture
def three_bookings(store, zone_lookup, booking_payload):
    a = _create(store, zone_lookup, booking_payload(staff_name="Alex", pickup_date_iso="2025-12-24"))
    b = _create(store, zone_lookup, booking_payload(staff_name="Blake", pickup_date_iso="2025-12-26", ward_name="ED"))
    finish = booking_payload(staff_name="Casey", shift_type="finish", pickup_date_iso="2025-12-25")
    finish["pickup"], finish["destination"] = finish["destination"], finish["pickup"]
    c = _create(store, lambda lat, lng: Zone("2", "Plympton"), finish)
    return a, b, c


def test_query_filters(store, three_bookings):
    a, b, c = three_bookings
    ids = lambda q: [x.id for x in bookings.query_bookings(store, q).items]

    assert ids(BookingQuery(date_from="2025-12-25")) == [c.id, b.id]
    assert ids(BookingQuery(shift_type="finish")) == [c.id]
    assert ids(BookingQuery(staff="BLA")) == [b.id]
    assert ids(BookingQuery(ward="ed")) == [b.id]
    assert ids(BookingQuery(zone="plym")) == [c.id]
    assert ids(BookingQuery(zone="plym", shift_type="start")) == []
    assert ids(BookingQuery(is_return=True)) == []
    assert ids(BookingQuery(status="approved")) == []


def test_query_sort_and_paging(store, three_bookings):
    a, b, c = three_bookings
    page = bookings.query_bookings(store, BookingQuery(sort="pickupDateISO:desc", limit=2))
    assert page.total == 3 and page.pages == 2
    assert [x.id for x in page.items] == [b.id, c.id]

    page2 = bookings.query_bookings(store, BookingQuery(sort="pickupDateISO:desc", limit=2, page=2))
    assert [x.id for x in page2.items] == [a.id]

    capped = bookings.query_bookings(store, BookingQuery(limit=10_000), max_limit=500)
    assert capped.limit == 500


def test_parse_sort():
    assert bookings.parse_sort("staffName:desc,bogus,shortRef") == [("staff_name", True), ("short_ref", False)]
    assert bookings.parse_sort("") == [("pickup_date_iso", False), ("on_off_duty_time", False)]


def test_export_csv(store, three_bookings):
    text = bookings.export_bookings_csv(store, BookingQuery(shift_type="start"))
    lines = text.strip().split("\n")
    assert lines[0] == ",".join(bookings.EXPORT_HEADER)
    assert len(lines) == 3
    assert lines[1].startswith("24-12-25,07:30,start,Ward 5,Alex,")
    assert ",FALSE,FALSE,pending,NAC001," in lines[1]


# --- admin actions ---


def test_update_manual_flags_only(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    updated = bookings.update_booking(store, b.id, {"manual_flag_label": " Check ", "manual_flag_reason": None})
    assert updated.manual_flag_label == "Check"
    assert updated.manual_flag_reason is None


def test_update_core_fields_rebuilds_reference(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    updated = bookings.update_booking(store, b.id, {"budget_holder_name": "Pat Kim", "reason_code": "x2"})
    assert updated.reference == "X2/123456/Pat Kim"


def test_update_status_is_audited(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    updated = bookings.update_booking(store, b.id, {"status": "Approved"})
    assert updated.status == "approved"
    entry = updated.audit_log[-1]
    assert (entry.action, entry.old_status, entry.new_status) == ("status-changed", "pending", "approved")


def test_invalid_update_leaves_booking_untouched(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    with pytest.raises(BookingValidationError, match="drop-off must be Derriford"):
        bookings.update_booking(store, b.id, {"staff_name": "New", "destination": {"lat": 50.37, "lng": -4.14}})
    stored = store.get(b.id)
    assert stored.staff_name == "Alex Taylor"
    assert stored.destination.lat == pytest.approx(50.4195)


def test_set_status_decline_and_clear(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    declined = bookings.set_status(store, b.id, "declined", reason=" Over budget ")
    assert declined.decline_reason == "Over budget"
    assert declined.audit_log[-1].details == {"reason": "Over budget"}

    cleared = bookings.set_status(store, b.id, "pending")
    assert cleared.decline_reason == ""

    before = len(cleared.audit_log)
    again = bookings.set_status(store, b.id, "pending")
    assert len(again.audit_log) == before


def test_delete_booking(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    assert bookings.delete_booking(store, b.id) == b.id
    with pytest.raises(BookingNotFoundError):
        bookings.delete_booking(store, b.id)


# --- staff self-service ---


def test_customer_confirm(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    confirmed = bookings.customer_confirm(store, b.id)
    assert confirmed.status == "approved"
    assert confirmed.last_customer_action == "confirmed"
    assert confirmed.audit_log[-1].action == "customer-confirmed"


def test_customer_cancel(store, zone_lookup, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    cancelled = bookings.customer_cancel(store, b.id, "")
    assert cancelled.status == "declined"
    assert cancelled.cancelled and cancelled.cancelled_by == "staff-link"
    assert cancelled.decline_reason == "Cancelled by staff via update link"
    assert cancelled.cancelled_by_staff_reason is None


def test_customer_update_geocodes_text_address(store, zone_lookup, geocode, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    updated = bookings.customer_update(
        store, b.id,
        {"on_off_duty_time": "08:00", "pickup_text": "5 New Street", "pickup_post_code": "PL4 6LE"},
        zone_lookup, geocode,
    )
    assert updated.on_off_duty_time == "08:00"
    assert updated.pickup.formatted == "5 New Street, Plymouth"
    assert updated.updated_by_staff_summary == "Staff updated time to 08:00, pickup address via link"
    assert updated.audit_log[-1].details["changed_fields"] == ["time", "pickupAddress"]


def test_customer_update_requires_a_change(store, zone_lookup, geocode, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    with pytest.raises(BookingValidationError, match="No update fields"):
        bookings.customer_update(store, b.id, {"on_off_duty_time": "07:30"}, zone_lookup, geocode)


def test_customer_update_cannot_move_hospital_side(store, zone_lookup, geocode, booking_payload):
    b = _create(store, zone_lookup, booking_payload())
    with pytest.raises(BookingValidationError):
        bookings.customer_update(store, b.id, {"destination_text": "Town Centre"}, zone_lookup, geocode)
    assert store.get(b.id).destination.formatted.startswith("Derriford")
