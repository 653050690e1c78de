"""
Bulk import use case. Spreadsheet rows -> geocoded one-way bookings.
One failing row never aborts the batch; every row gets a result.
"""

import logging
from typing import List

from staffcab.application.use_cases.bookings import Geocode, ZoneLookup, create_booking
from staffcab.domain.errors import AddressLookupError, BookingValidationError
from staffcab.domain.models import BulkRowResult
from staffcab.infrastructure.booking_store import BookingStore
from staffcab.infrastructure.bulk_row_loader import is_example_row, map_bulk_row

logger = logging.getLogger(__name__)


def _geocode_side(side: dict, geocode: Geocode) -> dict:
    geo = geocode(side.get("text", ""), side.get("post_code", ""))
    return dict(
        side,
        lat=geo.lat,
        lng=geo.lng,
        formatted=geo.formatted,
        post_code=geo.post_code or side.get("post_code", ""),
    )


def import_rows(
    rows: List[dict],
    store: BookingStore,
    zone_lookup: ZoneLookup,
    geocode: Geocode,
) -> List[BulkRowResult]:
    if not rows:
        raise BookingValidationError("No rows provided")

    results: List[BulkRowResult] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            results.append(BulkRowResult(index=i, ok=False, error="Row must be an object"))
            continue
        if is_example_row(row):
            results.append(BulkRowResult(index=i, ok=True, skipped=True))
            continue
        try:
            payload = map_bulk_row(row)
            payload["pickup"] = _geocode_side(payload["pickup"], geocode)
            payload["destination"] = _geocode_side(payload["destination"], geocode)
            booking, _ = create_booking(payload, store, zone_lookup, source="bulk-import")
        except (BookingValidationError, AddressLookupError) as e:
            results.append(BulkRowResult(index=i, ok=False, error=str(e)))
            continue
        results.append(BulkRowResult(index=i, ok=True, reference=booking.reference, short_ref=booking.short_ref))

    failed = sum(1 for r in results if not r.ok)
    logger.info("Bulk import: %d rows, %d failed", len(results), failed)
    return results
