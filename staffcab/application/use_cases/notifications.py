"""
SMS notifications to staff and wards. Every attempt, sent or not, is recorded
on the booking (log row, SMS tracking fields, audit entry).
"""

import logging
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from staffcab.application.config import SMS_PREVIEW_CHARS
from staffcab.domain.booking_rules import normalize_uk_mobile, render_template, to_ddmmyy
from staffcab.domain.errors import BookingValidationError
from staffcab.domain.models import AuditEntry, SmsResult
from staffcab.infrastructure.booking_store import BookingStore, utc_now_iso
from staffcab.infrastructure.sms_gateway import SmsGateway

logger = logging.getLogger(__name__)

SELF_SERVICE_PAGE = "/staff-update.html"


def _sms_status(result: SmsResult) -> dict:
    return {
        "ok": result.ok,
        "to": result.to,
        "method": result.method,
        "status": result.status,
        "body": result.body,
        "error": result.error,
    }


def _record_sms(
    store: BookingStore,
    booking_id: str,
    result: SmsResult,
    message: str,
    source: str,
    purpose: str,
    extra: Optional[dict] = None,
) -> None:
    """SMS tracking fields + audit. A missing booking is skipped."""
    booking = store.find(booking_id)
    if booking is None:
        logger.warning("SMS sent for unknown booking %s; tracking skipped", booking_id)
        return
    preview = message.strip()[:SMS_PREVIEW_CHARS]
    booking.last_sms_at = utc_now_iso()
    booking.last_sms_source = source
    booking.last_sms_purpose = purpose
    booking.last_sms_message_preview = preview
    booking.sms_count += 1
    store.save(booking)

    details = {
        "to": result.to,
        "purpose": purpose,
        "ok": result.ok,
        "status": result.status,
        "message_preview": preview,
    }
    details.update(extra or {})
    store.append_audit(
        booking_id,
        AuditEntry(at=utc_now_iso(), actor_type="admin", source="admin-dashboard", action="sms-sent", details=details),
    )


def send_generic_sms(
    store: BookingStore,
    sms: SmsGateway,
    to: str,
    message: str,
    source: Optional[str] = None,
    booking_id: Optional[str] = None,
) -> SmsResult:
    if not to or not message:
        raise BookingValidationError("Missing 'to' or 'message' in body.")
    result = sms.send(to, message)
    if booking_id:
        phone = result.to or normalize_uk_mobile(to)
        store.add_log(
            booking_id,
            type=source or "generic_sms",
            phone=phone,
            message=message,
            sms_status=_sms_status(result),
            meta={"source": source},
        )
        _record_sms(store, booking_id, result, message, source=source or "generic", purpose="generic",
                    extra={"source": source or "generic"})
    return result


def send_booking_sms(
    store: BookingStore,
    sms: SmsGateway,
    booking_id: str,
    templates: Dict[str, str],
    message: str = "",
    phone_source: str = "staff",
    template: str = "",
    reason: Optional[str] = None,
) -> SmsResult:
    """
    Free text, or the approve / decline template rendered for the booking.
    phone_source 'ward' texts the ward, anything else the staff member.
    """
    booking = store.get(booking_id)
    if phone_source == "ward":
        raw_phone = booking.ward_phone or ""
    else:
        raw_phone = booking.staff_phone or booking.ward_phone or ""
    if not raw_phone:
        raise BookingValidationError("No phone number available on this booking")

    text = (message or "").strip()
    purpose = "manual-message"
    if not text and template in ("approve", "decline"):
        text = render_template(templates.get(template, ""), booking, reason=reason).strip()
        purpose = f"{template}-template"
    if not text:
        raise BookingValidationError("Message text is required")

    result = sms.send(raw_phone, text)
    store.add_log(
        booking_id,
        type="manual_sms",
        phone=result.to or normalize_uk_mobile(raw_phone),
        message=text,
        sms_status=_sms_status(result),
        meta={"phone_source": phone_source or "staff", "template": template or None},
    )
    _record_sms(store, booking_id, result, text, source="bookings-page", purpose=purpose,
                extra={"phone_source": phone_source or "staff"})
    return result


def self_service_url(base: str, booking_id: str) -> str:
    return f"{base.rstrip('/')}{SELF_SERVICE_PAGE}?bookingId={quote(booking_id, safe='')}"


def send_edit_link(
    store: BookingStore,
    sms: SmsGateway,
    booking_id: str,
    link_base: str,
    reason: str = "",
    note: str = "",
) -> Tuple[str, SmsResult]:
    """Text the staff member a link to review, edit or cancel their booking."""
    b = store.get(booking_id)
    if not b.staff_phone:
        raise BookingValidationError("Booking has no staffPhone to text")

    reason = (reason or "").strip()
    note = (note or "").strip()
    link = self_service_url(link_base, b.id)
    when = f"{to_ddmmyy(b.pickup_date_iso)} at {b.on_off_duty_time or ''}"
    route = f"({b.pickup.formatted if b.pickup else ''} → {b.destination.formatted if b.destination else ''})"
    tail = f"Please tap this link to review, edit or cancel your booking: {link}"
    if reason:
        message = f"There is a query about your Derriford staff taxi booking: {reason}. Booking {when} {route}. {tail}"
    else:
        message = f"There is a query about your Derriford staff taxi booking on {when} {route}. {tail}"

    result = sms.send(b.staff_phone, message)
    store.add_log(
        b.id,
        type="edit_link_sms",
        phone=result.to or normalize_uk_mobile(b.staff_phone),
        message=message,
        sms_status=_sms_status(result),
        meta={
            "reason": reason or None,
            "note": note or None,
            "manual_flag_label": b.manual_flag_label,
            "manual_flag_reason": b.manual_flag_reason,
        },
    )
    _record_sms(store, b.id, result, message, source="edit-link", purpose="edit-link",
                extra={"reason_extra": reason or None})
    return link, result
