import pytest

from staffcab.application.config import HOSPITAL_LAT, HOSPITAL_LNG
from staffcab.domain.booking_rules import normalize_uk_mobile
from staffcab.domain.models import GeocodeResult, SmsResult, Zone
from staffcab.infrastructure.booking_store import BookingStore

HOME_LAT = 50.3755
HOME_LNG = -4.1427


def hospital_address() -> dict:
    return {
        "formatted": "Derriford Hospital, Derriford Road, Plymouth PL6 8DH",
        "lat": HOSPITAL_LAT,
        "lng": HOSPITAL_LNG,
        "post_code": "PL6 8DH",
    }


def home_address() -> dict:
    return {
        "formatted": "12 Mutley Plain, Plymouth PL4 6LE",
        "lat": HOME_LAT,
        "lng": HOME_LNG,
        "post_code": "PL4 6LE",
    }


class FakeSms:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent = []

    def send(self, phone: str, message: str) -> SmsResult:
        to = normalize_uk_mobile(phone)
        self.sent.append((to, message))
        if self.ok:
            return SmsResult(ok=True, to=to, method="POST", status=200, body="ok")
        return SmsResult(ok=False, to=to, status=500, error="HTTP 500")


@pytest.fixture
def store():
    return BookingStore(short_ref_prefix="NAC")


@pytest.fixture
def zone_lookup():
    return lambda lat, lng: Zone(id="7", name="Mutley")


@pytest.fixture
def geocode():
    def _geocode(text, post_code=""):
        return GeocodeResult(lat=HOME_LAT, lng=HOME_LNG, formatted=f"{text}, Plymouth", post_code=post_code)
    return _geocode


@pytest.fixture
def fake_sms():
    return FakeSms()


@pytest.fixture
def booking_payload():
    """Factory for a valid shift-start create payload; keyword arguments override fields."""
    def _make(**overrides) -> dict:
        payload = {
            "ward_name": "Ward 5",
            "ward_phone": "01752 000000",
            "staff_name": "Alex Taylor",
            "staff_phone": "07700 900123",
            "shift_type": "start",
            "on_off_duty_time": "07:30",
            "pickup_date_iso": "2025-12-24",
            "pickup": home_address(),
            "destination": hospital_address(),
            "reason_code": "p1",
            "budget_number": "123456",
            "budget_holder_name": "Sam Lee",
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def failing_sms():
    return FakeSms(ok=False)
