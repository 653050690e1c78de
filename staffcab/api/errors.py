"""
Domain error -> HTTPException. Handlers call raise_http() from their except block.
"""

import logging
from typing import NoReturn

from fastapi import HTTPException

from staffcab.domain.errors import (
    AddressLookupError,
    AuthenticationError,
    AutocabBookingError,
    BookingNotFoundError,
    BudgetAccessError,
)

logger = logging.getLogger(__name__)


def raise_http(e: Exception) -> NoReturn:
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, BookingNotFoundError):
        raise HTTPException(status_code=404, detail=str(e) or "Booking not found") from e
    if isinstance(e, BudgetAccessError):
        raise HTTPException(
            status_code=403,
            detail={
                "error": str(e),
                "booking_budget_number": e.booking_budget_number,
                "your_budget_number": e.your_budget_number,
            },
        ) from e
    if isinstance(e, AuthenticationError):
        raise HTTPException(status_code=401, detail=str(e) or "Unauthorised") from e
    if isinstance(e, AutocabBookingError):
        raise HTTPException(
            status_code=e.status_code, detail={"error": "Autocab booking failed", "details": e.details}
        ) from e
    if isinstance(e, (AddressLookupError, ValueError)):
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.exception("Unhandled error")
    raise HTTPException(status_code=500, detail=str(e)) from e
