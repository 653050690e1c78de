"""
Autocab dispatch API client: zone lookup and booking creation.
"""

import logging
from typing import Any, Optional

import requests

from staffcab.application.config import Settings
from staffcab.domain.errors import AutocabBookingError
from staffcab.domain.models import Zone
from staffcab.infrastructure.http_session import build_session

logger = logging.getLogger(__name__)


class AutocabClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or build_session()

    def _headers(self) -> dict:
        return {
            "Cache-Control": "no-cache",
            "Ocp-Apim-Subscription-Key": self._settings.autocab_subscription_key,
        }

    def lookup_zone(self, lat: float, lng: float) -> Optional[Zone]:
        """
        Autocab zone for a point, or None. Fail-soft: network and HTTP errors
        are logged and never break the booking that asked.
        """
        if not self._settings.autocab_base or not self._settings.autocab_company_id:
            return None
        params = {
            "latitude": lat,
            "longitude": lng,
            "companyId": self._settings.autocab_company_id,
        }
        try:
            r = self._session.get(
                self._settings.autocab_zone_url,
                params=params,
                headers=self._headers(),
                timeout=self._settings.http_timeout_s,
            )
        except requests.RequestException as e:
            logger.error("lookup_zone failed for (%s, %s): %s", lat, lng, e)
            return None
        if not r.ok:
            logger.warning("lookup_zone HTTP %s for (%s, %s)", r.status_code, lat, lng)
            return None
        try:
            data = r.json()
        except ValueError:
            logger.warning("lookup_zone returned non-JSON body")
            return None

        zone = data.get("zone") if isinstance(data, dict) and data.get("zone") else data
        if not isinstance(zone, dict):
            return None
        return Zone(
            id=str(zone.get("id", zone.get("zoneId", "")) or ""),
            name=str(zone.get("name", zone.get("zoneName", "")) or ""),
        )

    def create_booking(self, payload: dict) -> Any:
        """POST a booking. Returns Autocab's JSON body; raises AutocabBookingError."""
        if not self._settings.autocab_subscription_key:
            raise AutocabBookingError(500, {"error": "Autocab key not configured"})
        headers = {
            "Content-Type": "application/json",
            "Ocp-Apim-Subscription-Key": self._settings.autocab_subscription_key,
        }
        try:
            r = self._session.post(
                self._settings.autocab_booking_url,
                json=payload,
                headers=headers,
                timeout=self._settings.http_timeout_s,
            )
        except requests.RequestException as e:
            logger.error("Autocab booking request failed: %s", e)
            raise AutocabBookingError(502, {"error": str(e)}) from e

        try:
            body = r.json()
        except ValueError:
            body = {}
        if not r.ok:
            logger.error("Autocab booking failed: HTTP %s %s", r.status_code, body)
            raise AutocabBookingError(r.status_code, body)
        return body
