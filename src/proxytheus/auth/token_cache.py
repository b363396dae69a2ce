"""Single-slot bearer token cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from proxytheus.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN_SECONDS = 3600


@dataclass(frozen=True)
class CachedToken:
    """An issued access token and the instant it stops being valid."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) < self.expires_at

    @classmethod
    def issued_now(cls, token: str, expires_in: float | None) -> "CachedToken":
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN_SECONDS
        return cls(token=token, expires_at=utc_now() + timedelta(seconds=expires_in))

    def __repr__(self) -> str:
        return f"CachedToken(token=***, expires_at={self.expires_at.isoformat()})"


class TokenCache:
    """Holds at most one ``CachedToken``.

    The cache does no locking of its own; callers serialize access (see
    ``AuthMechanism``). A token is replaced wholesale on miss and is left
    untouched when issuance fails.
    """

    def __init__(self) -> None:
        self._token: CachedToken | None = None

    @property
    def current(self) -> CachedToken | None:
        return self._token

    def valid_token(self) -> CachedToken | None:
        token = self._token
        if token is not None and token.is_valid():
            return token
        return None

    async def get_or_issue(self, issue_fn: Callable[[], Awaitable[CachedToken]]) -> str:
        cached = self.valid_token()
        if cached is not None:
            return cached.token

        issued = await issue_fn()
        self._token = issued
        logger.debug("Cached new token expiring at %s", issued.expires_at.isoformat())
        return issued.token
