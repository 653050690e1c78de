"""
Orion Connect SMS webhook. Form POST first, GET fallback. Never raises:
every outcome comes back as an SmsResult so callers can log it.
"""

import logging
from typing import Optional

import requests

from staffcab.application.config import Settings
from staffcab.domain.booking_rules import normalize_uk_mobile
from staffcab.domain.models import SmsResult
from staffcab.infrastructure.http_session import build_session

logger = logging.getLogger(__name__)


class SmsGateway:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or build_session()

    def _auth_params(self) -> dict:
        return {
            "endpoint_id": self._settings.orion_endpoint_id,
            "signature": self._settings.orion_signature,
        }

    def send(self, phone: str, message: str) -> SmsResult:
        if not phone or not message:
            return SmsResult(ok=False, to=phone or "", error="missing phone/message")
        to = normalize_uk_mobile(phone)
        url = self._settings.orion_webhook_url
        timeout = self._settings.http_timeout_s

        try:
            r = self._session.post(
                url,
                params=self._auth_params(),
                data={"customer_phone": to, "message": message},
                timeout=timeout,
            )
            if r.ok:
                return SmsResult(ok=True, to=to, method="POST", status=r.status_code, body=r.text)
            logger.warning("SMS POST to %s returned HTTP %s, retrying as GET", to, r.status_code)

            params = dict(self._auth_params(), customer_phone=to, message=message)
            r = self._session.get(url, params=params, timeout=timeout)
            if not r.ok:
                logger.warning("SMS GET to %s returned HTTP %s", to, r.status_code)
                return SmsResult(ok=False, to=to, status=r.status_code, body=r.text, error=f"HTTP {r.status_code}")
            return SmsResult(ok=True, to=to, method="GET", status=r.status_code, body=r.text)
        except requests.RequestException as e:
            logger.error("SMS to %s failed: %s", to, e)
            return SmsResult(ok=False, to=to, error=str(e))
