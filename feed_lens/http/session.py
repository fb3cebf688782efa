"""Bearer-token session held per authenticated source."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from feed_lens.cache.store import Clock, utc_now
from feed_lens.config import SettingsLookup
from feed_lens.errors import AuthenticationError

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

    @classmethod
    def from_settings(cls, settings: SettingsLookup, username_key: str, password_key: str) -> Credentials:
        """Read a credential pair by setting name.

        Raises AuthenticationError naming the first missing setting.
        """
        username = settings(username_key)
        password = settings(password_key)
        for name, value in ((username_key, username), (password_key, password)):
            if not value:
                raise AuthenticationError(f"{name} is not set")
        return cls(username=username, password=password)


@dataclass(frozen=True)
class Session:
    token: str
    authenticated_at: datetime


LoginFn = Callable[[Credentials], Awaitable[str]]


class SessionManager:
    """Logs in on first use and reuses the token until invalidated.

    The session has no expiry of its own; it ends only when a fetch sees a
    401/403 and calls :meth:`invalidate`.
    """

    def __init__(self, name: str, login: LoginFn, clock: Clock = utc_now) -> None:
        self.name = name
        self._login = login
        self._clock = clock
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Session | None:
        return self._session

    async def ensure_session(self, credentials: Credentials) -> str:
        if self._session is not None:
            return self._session.token

        async with self._lock:
            # Another caller may have logged in while we waited on the lock.
            if self._session is not None:
                return self._session.token
            token = await self._login(credentials)
            if not token:
                raise AuthenticationError(f"{self.name} login returned no token")
            self._session = Session(token=token, authenticated_at=self._clock())
            _log.info("%s login successful", self.name)
            return token

    def invalidate(self, token: str | None = None) -> None:
        """Drop the session; given ``token``, only while it is still the current one."""
        if self._session is None:
            return
        if token is not None and self._session.token != token:
            _log.debug("%s auth failure was for a replaced token, keeping session", self.name)
            return
        _log.info("%s session invalidated", self.name)
        self._session = None
