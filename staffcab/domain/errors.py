"""
Domain errors. The api layer maps them to HTTP status codes.
"""


class BookingValidationError(ValueError):
    """Booking payload or edited booking breaks a booking rule (400)."""


class BookingNotFoundError(LookupError):
    """No booking with the given id (404)."""


class BudgetAccessError(PermissionError):
    """Booking is not under the logged-in budget (403)."""

    def __init__(self, booking_budget_number: str, your_budget_number: str):
        super().__init__("This booking is not under your budget")
        self.booking_budget_number = booking_budget_number
        self.your_budget_number = your_budget_number


class AuthenticationError(Exception):
    """Missing, expired or invalid budget-holder session or credentials (401)."""


class ZoneClusterConfigError(ValueError):
    """Zone cluster configuration is ambiguous or malformed. Fatal at load time."""


class AddressLookupError(RuntimeError):
    """Geocoding failed. Message is safe to show to staff."""


class AutocabBookingError(RuntimeError):
    """Autocab rejected or failed a booking request."""

    def __init__(self, status_code: int, details):
        super().__init__(f"Autocab booking failed (HTTP {status_code})")
        self.status_code = status_code
        self.details = details
