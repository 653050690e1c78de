"""
Budget-holder portal. A holder logs in with budget number, name and PIN and
can only see and act on bookings charged to that budget.
"""

import logging
from typing import Optional

from staffcab.application.config import BUDGET_MAX_PAGE_LIMIT, HOSPITAL, HOSPITAL_RADIUS_M
from staffcab.application.use_cases.bookings import (
    BookingQuery,
    Geocode,
    ZoneLookup,
    apply_customer_update,
    change_summary,
    query_bookings,
    set_status,
)
from staffcab.domain import booking_rules
from staffcab.domain.errors import AuthenticationError, BookingValidationError, BudgetAccessError
from staffcab.domain.models import AuditEntry, Booking, BookingPage, BudgetSession
from staffcab.infrastructure.booking_store import BookingStore, utc_now_iso
from staffcab.infrastructure.budget_holder_store import BudgetHolderStore, verify_pin

logger = logging.getLogger(__name__)

PORTAL_SOURCE = "budget-portal"

BUDGET_EDITABLE_FIELDS = (
    "ward_name",
    "ward_phone",
    "staff_name",
    "staff_phone",
    "shift_type",
    "on_off_duty_time",
    "pickup_date_iso",
    "reason_code",
)


def login(holders: BudgetHolderStore, budget_number: str, holder_name: str, pin: str) -> BudgetSession:
    if not budget_number or not holder_name or not pin:
        raise BookingValidationError("Missing budgetNumber, holderName or pin")
    holder = holders.find_active(budget_number)
    if holder is None:
        logger.info("Budget login failed: unknown or inactive budget %s", budget_number)
        raise AuthenticationError("Invalid budget or PIN")

    pin_ok = verify_pin(pin, holder.pin)
    name_ok = not holder.holder_name or holder.holder_name.strip().lower() == holder_name.strip().lower()
    if not pin_ok or not name_ok:
        logger.info("Budget login failed for budget %s", budget_number)
        raise AuthenticationError("Invalid budget or PIN")
    return BudgetSession(budget_number=holder.budget_number, holder_name=holder_name.strip())


def _session_details(session: BudgetSession) -> dict:
    return {"holder_name": session.holder_name, "budget_number": session.budget_number}


def get_own_booking(store: BookingStore, session: BudgetSession, booking_id: str) -> Booking:
    b = store.get(booking_id)
    if b.budget_number != session.budget_number:
        raise BudgetAccessError(b.budget_number, session.budget_number)
    return b


def list_own_bookings(
    store: BookingStore,
    session: BudgetSession,
    date_from: str = "",
    date_to: str = "",
    status: str = "",
    page: int = 1,
    limit: int = 50,
) -> BookingPage:
    q = BookingQuery(
        date_from=date_from,
        date_to=date_to,
        status=status,
        budget_number=session.budget_number,
        page=page,
        limit=limit,
    )
    return query_bookings(store, q, max_limit=BUDGET_MAX_PAGE_LIMIT)


def approve(store: BookingStore, session: BudgetSession, booking_id: str, source: Optional[str] = None) -> Booking:
    get_own_booking(store, session, booking_id)
    return set_status(
        store, booking_id, "approved",
        actor_type="budget", source=source or PORTAL_SOURCE,
        details=_session_details(session), audit_unchanged=True,
    )


def decline(
    store: BookingStore,
    session: BudgetSession,
    booking_id: str,
    reason: Optional[str] = None,
    source: Optional[str] = None,
) -> Booking:
    get_own_booking(store, session, booking_id)
    return set_status(
        store, booking_id, "declined",
        actor_type="budget", source=source or PORTAL_SOURCE, reason=reason,
        details=_session_details(session), audit_unchanged=True,
    )


def _audit(store: BookingStore, booking_id: str, source: str, action: str, details: dict) -> None:
    store.append_audit(
        booking_id,
        AuditEntry(at=utc_now_iso(), actor_type="budget", source=source, action=action, details=details),
    )


def update_details(
    store: BookingStore,
    session: BudgetSession,
    booking_id: str,
    payload: dict,
    source: Optional[str] = None,
) -> Booking:
    """Core details only, no geocoding. The budget number itself cannot change here."""
    b = get_own_booking(store, session, booking_id)
    for name in BUDGET_EDITABLE_FIELDS:
        value = payload.get(name)
        if value is not None:
            setattr(b, name, value.strip() if isinstance(value, str) else value)

    booking_rules.validate_booking(b, HOSPITAL, HOSPITAL_RADIUS_M, check_budget_number=False)
    store.save(b)

    summary = (
        f"Budget updated details via portal for "
        f"{booking_rules.to_ddmmyy(b.pickup_date_iso)} {b.on_off_duty_time}"
    )
    _audit(store, b.id, source or PORTAL_SOURCE, "updated", dict(_session_details(session), summary=summary))
    return store.get(b.id)


def customer_update(
    store: BookingStore,
    session: BudgetSession,
    booking_id: str,
    payload: dict,
    zone_lookup: ZoneLookup,
    geocode: Geocode,
    source: Optional[str] = None,
) -> Booking:
    """Same edit as the staff self-service link, made by the budget holder."""
    b = get_own_booking(store, session, booking_id)
    changed = apply_customer_update(b, payload, zone_lookup, geocode)

    parts = change_summary(b, changed)
    summary = f"Budget holder updated {', '.join(parts)}" if parts else "Budget holder update"
    b.updated_by_staff_at = utc_now_iso()
    b.updated_by_staff_source = PORTAL_SOURCE
    b.updated_by_staff_summary = summary
    store.save(b)

    _audit(
        store, b.id, source or PORTAL_SOURCE, "customer-updated",
        dict(_session_details(session), changed_fields=changed, summary=summary),
    )
    return store.get(b.id)
