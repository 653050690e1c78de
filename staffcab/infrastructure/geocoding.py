"""
Google geocoding for bulk import and self-service address edits.
"""

import logging
from typing import Optional

import googlemaps
from googlemaps.exceptions import ApiError, HTTPError, Timeout, TransportError

from staffcab.domain.errors import AddressLookupError
from staffcab.domain.models import GeocodeResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Address lookup is not configured. Please contact the ward or switchboard."
NOT_FOUND = "We couldn't find that address. Please check and try again."


class Geocoder:
    def __init__(self, api_key: str, timeout: float = 10.0, client: Optional[googlemaps.Client] = None) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> googlemaps.Client:
        if self._client is None:
            if not self._api_key:
                raise AddressLookupError(NOT_CONFIGURED)
            self._client = googlemaps.Client(key=self._api_key, timeout=self._timeout, retry_timeout=30)
        return self._client

    def geocode(self, text: str, post_code: str = "") -> GeocodeResult:
        """'text, postcode' -> location. Raises AddressLookupError with a staff-facing message."""
        client = self._get_client()
        query = ", ".join(p for p in (text, post_code) if p)
        try:
            results = client.geocode(query)
        except HTTPError as e:
            logger.warning("Geocoding HTTP error for %r: %s", query, e)
            raise AddressLookupError(f"Address lookup failed (HTTP {e.status_code}). Please try again.") from e
        except ApiError as e:
            # ZERO_RESULTS and friends
            logger.info("Geocoding found nothing for %r: %s", query, e)
            raise AddressLookupError(NOT_FOUND) from e
        except (Timeout, TransportError) as e:
            logger.warning("Geocoding transport error for %r: %s", query, e)
            raise AddressLookupError("Address lookup failed. Please try again.") from e

        if not results:
            raise AddressLookupError(NOT_FOUND)

        result = results[0]
        loc = (result.get("geometry") or {}).get("location") or {}
        if loc.get("lat") is None or loc.get("lng") is None:
            logger.info("Geocoding result without location for %r", query)
            raise AddressLookupError(NOT_FOUND)
        pc = next(
            (c for c in result.get("address_components") or [] if "postal_code" in (c.get("types") or [])),
            None,
        )
        return GeocodeResult(
            lat=float(loc.get("lat")),
            lng=float(loc.get("lng")),
            formatted=result.get("formatted_address") or query,
            post_code=(pc or {}).get("long_name") or post_code or "",
        )
