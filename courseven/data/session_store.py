"""Local persistence of the signed-in session as a small JSON document."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from courseven.domain.models import AuthSession, AuthTokens, StoredSession, User

LOGGER = logging.getLogger("courseven.session")

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "user"
KEEP_LOGGED_IN_KEY = "keepLoggedIn"


class JsonSessionStore:
    """Stores tokens, the user, and the keep-logged-in flag in one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path.expanduser()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    async def save_session(self, session: AuthSession, keep_logged_in: bool) -> None:
        self._dump(
            {
                ACCESS_TOKEN_KEY: session.tokens.access_token,
                REFRESH_TOKEN_KEY: session.tokens.refresh_token,
                USER_KEY: session.user.model_dump(mode="json"),
                KEEP_LOGGED_IN_KEY: keep_logged_in,
            }
        )

    async def get_session(self) -> StoredSession | None:
        data = self._load()
        access_token = data.get(ACCESS_TOKEN_KEY)
        user_raw = data.get(USER_KEY)
        if not access_token or not isinstance(user_raw, dict):
            return None
        try:
            user = User.model_validate(user_raw)
        except ValidationError as exc:
            LOGGER.warning("Stored session user is invalid: %s", exc)
            return None
        tokens = AuthTokens(access_token=access_token, refresh_token=data.get(REFRESH_TOKEN_KEY))
        return StoredSession(
            session=AuthSession(user=user, tokens=tokens),
            keep_logged_in=bool(data.get(KEEP_LOGGED_IN_KEY, False)),
        )

    async def update_tokens(self, tokens: AuthTokens) -> None:
        data = self._load()
        data[ACCESS_TOKEN_KEY] = tokens.access_token
        data[REFRESH_TOKEN_KEY] = tokens.refresh_token
        self._dump(data)

    async def clear_session(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["JsonSessionStore"]
