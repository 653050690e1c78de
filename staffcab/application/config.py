"""
Default configuration: hospital constants, zone clusters, SMS templates, env settings.
One place to avoid duplicating values between API, use cases and engines.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from staffcab.domain.models import Coordinates
from staffcab.domain.zone_clusters import ZoneClusterConfig, load_zone_clusters

logger = logging.getLogger(__name__)

# Derriford Hospital: Smart Pack hub and the fixed end of every booking
HOSPITAL_LAT = 50.4195
HOSPITAL_LNG = -4.1090
HOSPITAL: Coordinates = (HOSPITAL_LAT, HOSPITAL_LNG)
HOSPITAL_RADIUS_M = 900.0
HOSPITAL_TEXT = "Derriford Hospital, Derriford Road, Plymouth PL6 8DH"
HOSPITAL_STREET = "Derriford Hospital, Derriford Road"
HOSPITAL_POSTCODE = "PL6 8DH"
DEFAULT_TOWN = "Plymouth"

SHORT_REF_PREFIX = "NAC"

MAX_PAGE_LIMIT = 500
BUDGET_MAX_PAGE_LIMIT = 200
EXPORT_MAX_ROWS = 5000
SMS_PREVIEW_CHARS = 200

BUDGET_SESSION_COOKIE = "bh"
BUDGET_SESSION_MAX_AGE_S = 8 * 60 * 60

DEFAULT_ZONE_CLUSTERS = [
    {
        "label": "Mutley / Greenbank / Lipson / St Judes / Mount Gould",
        "zones": [
            "Mutley",
            "Greenbank",
            "St Judes, Lipson",
            "St Judes",
            "St Jude's",
            "Lipson",
            "Mount Gould",
            "North Cross",
            "North Hill",
        ],
    },
]

DEFAULT_SMS_TEMPLATES = {
    "approve": (
        "Your request for your Christmas staff booking for Derriford Hospital on {{date}} at {{time}}. "
        "Pick up: {{pickup}}. Drop off: {{destination}}. "
        "In the name {{staff}} has been approved. "
        "Your reference number is {{ref}}. Thanks Need-A-Cab Taxis"
    ),
    "decline": (
        "Unfortunately your Christmas staff booking on {{date}} at {{time}} "
        "({{pickup}} to {{destination}}) has been declined. Reason: {{reason}}.  Need-A-Cab Taxis"
    ),
}


@dataclass(frozen=True)
class Settings:
    autocab_base: str = ""
    autocab_company_id: str = ""
    autocab_subscription_key: str = ""
    hospital_customer_id: int = 2139
    google_maps_key: str = ""
    orion_webhook_url: str = "https://orionconnect.co.uk/api/endpoint/webhook"
    orion_endpoint_id: str = ""
    orion_signature: str = ""
    public_customer_base: str = ""
    settings_file: str = "settings.json"
    zone_pickups_file: str = "zone-pickups.json"
    zone_clusters_file: str = ""
    budget_holders_file: str = ""
    budget_session_key: str = ""
    allowed_origins: tuple[str, ...] = ("*",)
    http_timeout_s: float = 10.0

    @property
    def autocab_booking_url(self) -> str:
        return f"{self.autocab_base}/booking/v1/booking"

    @property
    def autocab_zone_url(self) -> str:
        return f"{self.autocab_base}/booking/v1/zone"


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Settings from the environment (and .env when present)."""
    load_dotenv(env_file)

    origins = [o.strip() for o in _env("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
    if not origins or "*" in origins:
        origins = ["*"]

    try:
        customer_id = int(_env("HOSPITAL_CUSTOMER_ID", "2139"))
    except ValueError:
        logger.warning("HOSPITAL_CUSTOMER_ID is not a number; using 2139")
        customer_id = 2139
    try:
        timeout = float(_env("HTTP_TIMEOUT_SECONDS", "10"))
    except ValueError:
        timeout = 10.0

    settings = Settings(
        autocab_base=_env("AUTOCAB_BASE").rstrip("/"),
        autocab_company_id=_env("AUTOCAB_COMPANY_ID"),
        autocab_subscription_key=_env("AUTOCAB_SUBSCRIPTION_KEY"),
        hospital_customer_id=customer_id,
        google_maps_key=_env("GOOGLE_MAPS_KEY"),
        orion_webhook_url=_env("ORION_WEBHOOK_URL", Settings.orion_webhook_url),
        orion_endpoint_id=_env("ORION_ENDPOINT_ID"),
        orion_signature=_env("ORION_SIGNATURE"),
        public_customer_base=_env("PUBLIC_CUSTOMER_BASE").rstrip("/"),
        settings_file=_env("SETTINGS_FILE", "settings.json"),
        zone_pickups_file=_env("ZONE_PICKUPS_FILE", "zone-pickups.json"),
        zone_clusters_file=_env("ZONE_CLUSTERS_FILE"),
        budget_holders_file=_env("BUDGET_HOLDERS_FILE"),
        budget_session_key=_env("BUDGET_SESSION_KEY"),
        allowed_origins=tuple(origins),
        http_timeout_s=timeout,
    )
    if not settings.autocab_base:
        logger.warning("AUTOCAB_BASE not set: zone lookup and Smart Pack booking are disabled")
    if not settings.autocab_subscription_key:
        logger.warning("AUTOCAB_SUBSCRIPTION_KEY not set")
    return settings


def load_zone_cluster_config(path: str = "") -> ZoneClusterConfig:
    """
    Zone clusters from a JSON file ([{"label": ..., "zones": [...]}]) or the
    built-in default. Raises ZoneClusterConfigError on ambiguous aliases.
    """
    if not path:
        return load_zone_clusters(DEFAULT_ZONE_CLUSTERS)
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    config = load_zone_clusters(raw)
    logger.info("Loaded %d zone clusters from %s", len(config.clusters), path)
    return config
