import pytest

from staffcab.application.use_cases import budget_portal
from staffcab.application.use_cases.bookings import create_booking
from staffcab.domain.errors import AuthenticationError, BookingValidationError, BudgetAccessError
from staffcab.domain.models import BudgetHolder, BudgetSession
from staffcab.infrastructure.budget_holder_store import BudgetHolderStore, hash_pin

SESSION = BudgetSession(budget_number="123456", holder_name="Sam Lee")


@pytest.fixture
def holders():
    return BudgetHolderStore([
        BudgetHolder("123456", "Sam Lee", hash_pin("2468", rounds=4)),
        BudgetHolder("222222", "", "1111"),
        BudgetHolder("999999", "Gone", "0000", active=False),
    ])


@pytest.fixture
def own_and_other(store, zone_lookup, booking_payload):
    own, _ = create_booking(booking_payload(), store, zone_lookup)
    other, _ = create_booking(booking_payload(budget_number="654321"), store, zone_lookup)
    return own, other


def test_login(holders):
    session = budget_portal.login(holders, "123456", " sam lee ", "2468")
    assert session == BudgetSession("123456", "sam lee")
    # holder without a stored name accepts any name
    assert budget_portal.login(holders, "222222", "Anyone", "1111").budget_number == "222222"


@pytest.mark.parametrize("number, name, pin", [
    ("123456", "Sam Lee", "0000"),
    ("123456", "Someone Else", "2468"),
    ("999999", "Gone", "0000"),
    ("555555", "Nobody", "1234"),
])
def test_login_failures(holders, number, name, pin):
    with pytest.raises(AuthenticationError):
        budget_portal.login(holders, number, name, pin)


def test_login_missing_fields(holders):
    with pytest.raises(BookingValidationError):
        budget_portal.login(holders, "123456", "", "2468")


def test_lists_only_own_budget(store, own_and_other):
    own, _ = own_and_other
    page = budget_portal.list_own_bookings(store, SESSION, limit=1000)
    assert [b.id for b in page.items] == [own.id]
    assert page.limit == 200


def test_other_budget_is_forbidden(store, own_and_other):
    _, other = own_and_other
    with pytest.raises(BudgetAccessError) as exc:
        budget_portal.approve(store, SESSION, other.id)
    assert exc.value.booking_budget_number == "654321"
    assert exc.value.your_budget_number == "123456"
    assert store.get(other.id).status == "pending"


def test_approve_and_decline_always_audit(store, own_and_other):
    own, _ = own_and_other
    budget_portal.approve(store, SESSION, own.id)
    approved = budget_portal.approve(store, SESSION, own.id, source="email-link")
    entries = [a for a in approved.audit_log if a.action == "status-changed"]
    assert len(entries) == 2
    assert entries[-1].actor_type == "budget"
    assert entries[-1].source == "email-link"
    assert entries[-1].details["holder_name"] == "Sam Lee"

    declined = budget_portal.decline(store, SESSION, own.id, reason="Not needed")
    assert declined.status == "declined"
    assert declined.decline_reason == "Not needed"
    assert declined.audit_log[-1].source == "budget-portal"


def test_update_details(store, own_and_other):
    own, _ = own_and_other
    updated = budget_portal.update_details(
        store, SESSION, own.id, {"staff_name": " Robin ", "on_off_duty_time": "08:15", "reason_code": "z9"}
    )
    assert updated.staff_name == "Robin"
    assert updated.reason_code == "Z9"
    assert updated.audit_log[-1].action == "updated"
    assert "08:15" in updated.audit_log[-1].details["summary"]


def test_update_details_validates(store, own_and_other):
    own, _ = own_and_other
    with pytest.raises(BookingValidationError):
        budget_portal.update_details(store, SESSION, own.id, {"shift_type": "finish"})
    assert store.get(own.id).shift_type == "start"


def test_budget_customer_update(store, zone_lookup, geocode, own_and_other):
    own, _ = own_and_other
    updated = budget_portal.customer_update(
        store, SESSION, own.id, {"pickup_date_iso": "2025-12-27"}, zone_lookup, geocode
    )
    assert updated.pickup_date_iso == "2025-12-27"
    assert updated.updated_by_staff_source == "budget-portal"
    assert updated.updated_by_staff_summary == "Budget holder updated date to 27-12-25"
