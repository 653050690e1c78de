# ==========================================
# IN-MEMORY BOOKING STORE (MVP)
# ------------------------------------------
# Bookings, booking logs and the short-ref
# counter live in process memory and reset
# on restart. Replace with a database in
# production.
# ==========================================

import copy
import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from staffcab.domain.booking_rules import format_short_ref
from staffcab.domain.errors import BookingNotFoundError
from staffcab.domain.models import AuditEntry, Booking, BookingLog


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class BookingStore:
    """
    Thread-safe store. Every read returns a deep copy: callers edit the copy
    and only call save() once the edit is valid.
    """

    def __init__(self, short_ref_prefix: str = "NAC") -> None:
        self._bookings: Dict[str, Booking] = {}
        self._logs: List[BookingLog] = []
        self._short_ref_seq = 0
        self._short_ref_prefix = short_ref_prefix
        self._lock = Lock()

    def next_short_ref(self) -> str:
        with self._lock:
            self._short_ref_seq += 1
            return format_short_ref(self._short_ref_prefix, self._short_ref_seq)

    def insert(self, booking: Booking) -> Booking:
        with self._lock:
            if not booking.id:
                booking.id = new_id()
            if not booking.created_at:
                booking.created_at = utc_now_iso()
            self._bookings[booking.id] = copy.deepcopy(booking)
            return copy.deepcopy(booking)

    def get(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise BookingNotFoundError("Booking not found")
            return copy.deepcopy(booking)

    def find(self, booking_id: str) -> Optional[Booking]:
        try:
            return self.get(booking_id)
        except BookingNotFoundError:
            return None

    def save(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id not in self._bookings:
                raise BookingNotFoundError("Booking not found")
            self._bookings[booking.id] = copy.deepcopy(booking)
            return copy.deepcopy(booking)

    def delete(self, booking_id: str) -> bool:
        with self._lock:
            return self._bookings.pop(booking_id, None) is not None

    def all(self) -> List[Booking]:
        with self._lock:
            return [copy.deepcopy(b) for b in self._bookings.values()]

    def append_audit(self, booking_id: str, entry: AuditEntry) -> None:
        """Missing booking is ignored: audit never breaks the calling action."""
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is not None:
                booking.audit_log.append(copy.deepcopy(entry))

    def add_log(
        self,
        booking_id: str,
        type: str,
        phone: str,
        message: str,
        sms_status: Optional[dict] = None,
        meta: Optional[dict] = None,
    ) -> BookingLog:
        log = BookingLog(
            id=new_id(),
            booking_id=booking_id,
            type=type,
            phone=phone,
            message=message,
            sms_status=dict(sms_status or {}),
            meta=dict(meta or {}),
            created_at=utc_now_iso(),
        )
        with self._lock:
            self._logs.append(log)
        return copy.deepcopy(log)

    def logs_for(self, booking_id: str) -> List[BookingLog]:
        """Newest first."""
        with self._lock:
            logs = [copy.deepcopy(l) for l in self._logs if l.booking_id == booking_id]
        logs.reverse()
        return logs
