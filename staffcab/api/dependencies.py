"""
Process-wide singletons handed to routers through FastAPI dependencies.
Tests replace them with app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Cookie, Depends, HTTPException

from staffcab.application.config import (
    BUDGET_SESSION_COOKIE,
    BUDGET_SESSION_MAX_AGE_S,
    DEFAULT_SMS_TEMPLATES,
    SHORT_REF_PREFIX,
    Settings,
    load_settings,
    load_zone_cluster_config,
)
from staffcab.application.use_cases.bookings import Geocode, ZoneLookup
from staffcab.domain.models import BudgetSession
from staffcab.domain.zone_clusters import ZoneClusterConfig
from staffcab.infrastructure.autocab_client import AutocabClient
from staffcab.infrastructure.booking_store import BookingStore
from staffcab.infrastructure.budget_holder_store import BudgetHolderStore
from staffcab.infrastructure.geocoding import Geocoder
from staffcab.infrastructure.session_tokens import SessionTokens
from staffcab.infrastructure.settings_files import SmsTemplateFile, ZonePickupFile
from staffcab.infrastructure.sms_gateway import SmsGateway


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_booking_store() -> BookingStore:
    return BookingStore(short_ref_prefix=SHORT_REF_PREFIX)


@lru_cache
def get_zone_clusters() -> ZoneClusterConfig:
    return load_zone_cluster_config(get_settings().zone_clusters_file)


@lru_cache
def get_autocab_client() -> AutocabClient:
    return AutocabClient(get_settings())


@lru_cache
def get_geocoder() -> Geocoder:
    settings = get_settings()
    return Geocoder(settings.google_maps_key, timeout=settings.http_timeout_s)


@lru_cache
def get_sms_gateway() -> SmsGateway:
    return SmsGateway(get_settings())


@lru_cache
def get_sms_templates() -> SmsTemplateFile:
    return SmsTemplateFile(get_settings().settings_file, DEFAULT_SMS_TEMPLATES)


@lru_cache
def get_zone_pickups() -> ZonePickupFile:
    return ZonePickupFile(get_settings().zone_pickups_file)


@lru_cache
def get_budget_holders() -> BudgetHolderStore:
    return BudgetHolderStore.from_file(get_settings().budget_holders_file)


@lru_cache
def get_session_tokens() -> SessionTokens:
    return SessionTokens(get_settings().budget_session_key, BUDGET_SESSION_MAX_AGE_S)


def get_zone_lookup(autocab: AutocabClient = Depends(get_autocab_client)) -> ZoneLookup:
    return autocab.lookup_zone


def get_geocode(geocoder: Geocoder = Depends(get_geocoder)) -> Geocode:
    return geocoder.geocode


def require_budget_session(
    bh: Optional[str] = Cookie(default=None, alias=BUDGET_SESSION_COOKIE),
    tokens: SessionTokens = Depends(get_session_tokens),
) -> BudgetSession:
    session = tokens.read(bh)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorised")
    return session
