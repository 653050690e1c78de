"""
Budget-holder portal router (/api/budget). Session is a Fernet token in the "bh" cookie.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response

from staffcab.api.dependencies import (
    get_booking_store,
    get_budget_holders,
    get_geocode,
    get_session_tokens,
    get_zone_lookup,
    require_budget_session,
)
from staffcab.api.errors import raise_http
from staffcab.api.schemas import (
    BookingPageSchema,
    BookingResponse,
    BookingSchema,
    BudgetBookingUpdateRequest,
    BudgetLoginRequest,
    BudgetSessionResponse,
    BudgetSessionSchema,
    CustomerUpdateRequest,
    DeclineRequest,
    OkResponse,
)
from staffcab.application.config import BUDGET_SESSION_COOKIE
from staffcab.application.use_cases import budget_portal
from staffcab.domain.models import BudgetSession
from staffcab.infrastructure.booking_store import BookingStore
from staffcab.infrastructure.budget_holder_store import BudgetHolderStore
from staffcab.infrastructure.session_tokens import SessionTokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/budget", tags=["budget"])


@router.post("/login", response_model=BudgetSessionResponse)
def post_login(
    request: BudgetLoginRequest,
    response: Response,
    holders: BudgetHolderStore = Depends(get_budget_holders),
    tokens: SessionTokens = Depends(get_session_tokens),
) -> BudgetSessionResponse:
    try:
        session = budget_portal.login(
            holders, request.budget_number.strip(), request.holder_name.strip(), request.pin.strip()
        )
    except Exception as e:
        raise_http(e)
    response.set_cookie(
        BUDGET_SESSION_COOKIE,
        tokens.issue(session),
        max_age=tokens.max_age_s,
        httponly=True,
        samesite="lax",
    )
    logger.info("Budget holder logged in for budget %s", session.budget_number)
    return BudgetSessionResponse(session=BudgetSessionSchema.model_validate(session))


@router.get("/me", response_model=BudgetSessionResponse)
def get_me(session: BudgetSession = Depends(require_budget_session)) -> BudgetSessionResponse:
    return BudgetSessionResponse(session=BudgetSessionSchema.model_validate(session))


@router.post("/logout", response_model=OkResponse)
def post_logout(response: Response) -> OkResponse:
    response.delete_cookie(BUDGET_SESSION_COOKIE)
    return OkResponse()


@router.get("/bookings", response_model=BookingPageSchema)
def get_bookings(
    date_from: str = "",
    date_to: str = "",
    status: str = "",
    page: int = 1,
    limit: int = 50,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
) -> BookingPageSchema:
    """Bookings charged to the session's budget only."""
    try:
        result = budget_portal.list_own_bookings(store, session, date_from, date_to, status, page, limit)
        return BookingPageSchema(
            total=result.total,
            page=result.page,
            limit=result.limit,
            pages=result.pages,
            items=[BookingSchema.model_validate(b) for b in result.items],
        )
    except Exception as e:
        raise_http(e)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    try:
        b = budget_portal.get_own_booking(store, session, booking_id)
        return BookingResponse(booking=BookingSchema.model_validate(b))
    except Exception as e:
        raise_http(e)


def _approve(booking_id: str, source: Optional[str], session: BudgetSession, store: BookingStore) -> BookingResponse:
    try:
        b = budget_portal.approve(store, session, booking_id, source)
        return BookingResponse(booking=BookingSchema.model_validate(b))
    except Exception as e:
        raise_http(e)


def _decline(
    booking_id: str,
    request: Optional[DeclineRequest],
    source: Optional[str],
    session: BudgetSession,
    store: BookingStore,
) -> BookingResponse:
    try:
        b = budget_portal.decline(store, session, booking_id, request.reason if request else None, source)
        return BookingResponse(booking=BookingSchema.model_validate(b))
    except Exception as e:
        raise_http(e)


# The portal sends PATCH, older links send POST
@router.patch("/bookings/{booking_id}/approve", response_model=BookingResponse)
@router.post("/bookings/{booking_id}/approve", response_model=BookingResponse)
def approve_booking(
    booking_id: str,
    source: Optional[str] = None,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    return _approve(booking_id, source, session, store)


@router.patch("/bookings/{booking_id}/decline", response_model=BookingResponse)
@router.post("/bookings/{booking_id}/decline", response_model=BookingResponse)
def decline_booking(
    booking_id: str,
    request: Optional[DeclineRequest] = None,
    source: Optional[str] = None,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    return _decline(booking_id, request, source, session, store)


@router.put("/bookings/{booking_id}", response_model=BookingResponse)
def put_booking(
    booking_id: str,
    request: BudgetBookingUpdateRequest,
    source: Optional[str] = None,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    try:
        b = budget_portal.update_details(store, session, booking_id, request.model_dump(exclude_none=True), source)
        return BookingResponse(booking=BookingSchema.model_validate(b))
    except Exception as e:
        raise_http(e)


@router.post("/bookings/{booking_id}/customer-update", response_model=BookingResponse)
def post_customer_update(
    booking_id: str,
    request: CustomerUpdateRequest,
    source: Optional[str] = None,
    session: BudgetSession = Depends(require_budget_session),
    store: BookingStore = Depends(get_booking_store),
    zone_lookup=Depends(get_zone_lookup),
    geocode=Depends(get_geocode),
) -> BookingResponse:
    try:
        b = budget_portal.customer_update(
            store, session, booking_id, request.model_dump(exclude_none=True), zone_lookup, geocode, source
        )
        return BookingResponse(booking=BookingSchema.model_validate(b))
    except Exception as e:
        raise_http(e)
