"""
JSON settings files: SMS templates and zone pickup points.
Fail-soft: unreadable files fall back to defaults, write errors are logged.
"""

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)


def _read_json(path: str):
    p = Path(path)
    if not p.exists():
        return None
    raw = p.read_text(encoding="utf-8")
    if not raw.strip():
        return None
    return json.loads(raw)


def _write_json(path: str, data) -> bool:
    try:
        Path(path).write_text(json.dumps(data, indent=2), encoding="utf-8")
        return True
    except OSError as e:
        logger.error("Failed to write %s: %s", path, e)
        return False


class SmsTemplateFile:
    """approve / decline templates, cached in memory after first load."""

    def __init__(self, path: str, defaults: Dict[str, str]) -> None:
        self._path = path
        self._lock = Lock()
        self._templates = dict(defaults)
        self._load()

    def _load(self) -> None:
        try:
            parsed = _read_json(self._path)
        except (OSError, ValueError) as e:
            logger.error("Failed to load SMS templates from %s: %s", self._path, e)
            return
        if isinstance(parsed, dict):
            for key in ("approve", "decline"):
                if parsed.get(key):
                    self._templates[key] = str(parsed[key])

    def get(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._templates)

    def update(self, approve: str, decline: str) -> Dict[str, str]:
        with self._lock:
            self._templates["approve"] = approve
            self._templates["decline"] = decline
            snapshot = dict(self._templates)
        _write_json(self._path, snapshot)
        return snapshot


class ZonePickupFile:
    """
    {zone name: [entry, ...]}. Re-read on every load so edits made by hand
    are picked up without a restart.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    def load(self) -> dict:
        try:
            parsed = _read_json(self._path)
        except (OSError, ValueError) as e:
            logger.error("Failed to load zone pickups from %s: %s", self._path, e)
            return {}
        if not isinstance(parsed, dict):
            return {}
        return parsed

    def save(self, data: dict) -> bool:
        return _write_json(self._path, data)
