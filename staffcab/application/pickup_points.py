"""
Zone pickup points: named meeting points per zone ("Outside Co-op", ...).
Config is {zone name: [entry, ...]}; an entry is a plain string (substring of
the address) or an object with label/name/title plus exact, contains or
postcodes. The first matching entry labels the stop.
"""

import dataclasses
from typing import Iterable, List, Optional

from staffcab.domain.models import Stop


def _entry_label(entry) -> str:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        return str(entry.get("label") or entry.get("name") or entry.get("title") or "")
    return ""


def _entry_matches(entry, addr_text: str, addr_post_code: str) -> bool:
    if isinstance(entry, str):
        return bool(entry) and entry.lower() in addr_text
    if not isinstance(entry, dict):
        return False

    exact = entry.get("exact") or entry.get("matchExact")
    if isinstance(exact, str) and addr_text == exact.lower():
        return True
    contains = entry.get("contains") or entry.get("matchContains")
    if isinstance(contains, str) and contains and contains.lower() in addr_text:
        return True
    postcodes = entry.get("postcodes") or entry.get("postCodes") or entry.get("postcode") or entry.get("postCode")
    if isinstance(postcodes, list):
        cleaned = {"".join(str(p).split()).lower() for p in postcodes}
        return addr_post_code in cleaned
    return False


def pickup_label_for(formatted: str, post_code: str, entries: Iterable) -> Optional[str]:
    addr_text = (formatted or "").lower()
    addr_post_code = "".join((post_code or "").split()).lower()
    if not addr_text and not addr_post_code:
        return None
    for entry in entries:
        label = _entry_label(entry)
        if label and _entry_matches(entry, addr_text, addr_post_code):
            return label
    return None


def apply_pickup_points(stops: List[Stop], zone_name: str, config: dict) -> List[Stop]:
    """New stops with label set where a pickup point of zone_name matches. Input is not mutated."""
    zone = (zone_name or "").strip().lower()
    if not zone or not isinstance(config, dict):
        return list(stops)
    zone_key = next((k for k in config if str(k).lower() == zone), None)
    entries = config.get(zone_key) if zone_key is not None else None
    if not isinstance(entries, list):
        return list(stops)

    out = []
    for stop in stops:
        label = pickup_label_for(stop.formatted, stop.post_code, entries)
        out.append(dataclasses.replace(stop, label=label) if label else stop)
    return out
