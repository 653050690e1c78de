"""
Budget holders (budget number, holder name, PIN). Seeded from a JSON file:
[{"budget_number": "123456", "holder_name": "Jane Smith", "pin": "...", "active": true}]
Exports from the old seed scripts may carry the bcrypt hash in "hashedPin" instead.

PINs are stored plain (MVP seed files) or as bcrypt hashes ("$2a$...", "$2b$...").
"""

import hmac
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Optional

import bcrypt

from staffcab.domain.models import BudgetHolder

logger = logging.getLogger(__name__)

BCRYPT_PREFIX = "$2"
BCRYPT_ROUNDS = 10


def hash_pin(pin: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(str(pin).encode("utf-8"), bcrypt.gensalt(rounds)).decode("ascii")


def verify_pin(pin: str, stored: str) -> bool:
    """bcrypt check for hashed PINs, constant-time comparison for plain ones."""
    stored = str(stored or "")
    if not stored:
        return False
    if stored.startswith(BCRYPT_PREFIX):
        try:
            return bcrypt.checkpw(str(pin).encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            logger.warning("Malformed PIN hash in budget holder store")
            return False
    return hmac.compare_digest(str(pin).encode("utf-8"), stored.encode("utf-8"))


def _holder_from_raw(raw: dict) -> Optional[BudgetHolder]:
    number = str(raw.get("budget_number") or raw.get("budgetNumber") or "").strip()
    pin = str(raw.get("pin") or raw.get("hashedPin") or raw.get("hashed_pin") or "")
    if not number or not pin:
        return None
    return BudgetHolder(
        budget_number=number,
        holder_name=str(raw.get("holder_name") or raw.get("holderName") or "").strip(),
        pin=pin,
        active=bool(raw.get("active", True)),
    )


class BudgetHolderStore:
    def __init__(self, holders: Iterable[BudgetHolder] = ()) -> None:
        self._lock = Lock()
        self._by_number: Dict[str, BudgetHolder] = {}
        for h in holders:
            self._by_number[h.budget_number] = h

    @classmethod
    def from_file(cls, path: str) -> "BudgetHolderStore":
        if not path:
            logger.warning("BUDGET_HOLDERS_FILE not set: budget portal has no holders")
            return cls()
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read budget holders from %s: %s", path, e)
            return cls()
        holders = []
        for entry in raw if isinstance(raw, list) else []:
            holder = _holder_from_raw(entry) if isinstance(entry, dict) else None
            if holder is None:
                logger.warning("Skipping budget holder entry without budget number or PIN")
                continue
            holders.append(holder)
        logger.info("Loaded %d budget holders from %s", len(holders), path)
        return cls(holders)

    def put(self, holder: BudgetHolder) -> None:
        with self._lock:
            self._by_number[holder.budget_number] = holder

    def find_active(self, budget_number: str) -> Optional[BudgetHolder]:
        with self._lock:
            holder = self._by_number.get(str(budget_number).strip())
        if holder is None or not holder.active:
            return None
        return holder
