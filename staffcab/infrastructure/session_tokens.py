"""
Budget-holder session tokens: Fernet-encrypted JSON with a max age.
The token is the value of the "bh" cookie.
"""

import json
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from staffcab.domain.models import BudgetSession

logger = logging.getLogger(__name__)


class SessionTokens:
    def __init__(self, key: str, max_age_s: int) -> None:
        if not key:
            # Sessions will not survive a restart
            logger.warning("BUDGET_SESSION_KEY not set: using an ephemeral session key")
            key = Fernet.generate_key().decode("ascii")
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise ValueError("BUDGET_SESSION_KEY must be a valid Fernet key") from exc
        self._max_age_s = max_age_s

    @property
    def max_age_s(self) -> int:
        return self._max_age_s

    def issue(self, session: BudgetSession) -> str:
        data = json.dumps(
            {"budget_number": session.budget_number, "holder_name": session.holder_name},
            separators=(",", ":"),
        ).encode("utf-8")
        return self._fernet.encrypt(data).decode("ascii")

    def read(self, token: Optional[str]) -> Optional[BudgetSession]:
        """None for a missing, tampered or expired token."""
        if not token:
            return None
        try:
            data = self._fernet.decrypt(token.encode("ascii"), ttl=self._max_age_s)
            payload = json.loads(data.decode("utf-8"))
        except (InvalidToken, ValueError, UnicodeError):
            return None
        number = str(payload.get("budget_number") or "")
        name = str(payload.get("holder_name") or "")
        if not number or not name:
            return None
        return BudgetSession(budget_number=number, holder_name=name)
