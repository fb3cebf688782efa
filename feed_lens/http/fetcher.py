"""Async JSON fetching with one failure type for every way a call can go wrong."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from feed_lens.config import DEFAULT_HTTP_TIMEOUT
from feed_lens.errors import FetchError
from feed_lens.http.session import SessionManager

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    """A remote JSON resource and the record type its payload holds.

    ``unwrap`` pulls the record list out of an envelope (and may raise
    ``ValueError`` when the envelope reports failure). ``many=False`` means the
    payload is a single record rather than a list.
    """
    name: str
    url: str
    model: type[BaseModel]
    unwrap: Callable[[Any], Any] | None = None
    params: dict[str, Any] | None = None
    many: bool = True


class Fetcher:
    """Issues GET/POST calls on a shared ``httpx.AsyncClient``.

    If a :class:`SessionManager` is attached, a 401/403 on a request carrying
    the session's current token invalidates it before the error is raised, so
    the next refresh logs in again. A rejected token that was already replaced
    leaves the newer session alone.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        session: SessionManager | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self.session = session

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, endpoint: Endpoint, token: str | None = None) -> list[Any]:
        """GET ``endpoint`` and validate its payload into record models."""
        headers = {"Authorization": f"Bearer {token}"} if token else None
        _log.debug("GET %s", endpoint.url)
        try:
            response = await self.client.get(endpoint.url, headers=headers, params=endpoint.params)
        except httpx.HTTPError as exc:
            raise FetchError(endpoint.name, detail=str(exc) or type(exc).__name__) from exc

        payload = self._decode(endpoint.name, response, token)
        try:
            if endpoint.unwrap is not None:
                payload = endpoint.unwrap(payload)
            if not endpoint.many:
                return [endpoint.model.model_validate(payload)]
            return TypeAdapter(list[endpoint.model]).validate_python(payload)
        except (ValueError, TypeError, KeyError) as exc:
            # ValidationError is a ValueError subclass
            detail = "unexpected payload shape" if isinstance(exc, ValidationError) else str(exc)
            raise FetchError(endpoint.name, response.status_code, detail) from exc

    async def fetch_all(self, endpoints: Sequence[Endpoint], token: str | None = None) -> list[list[Any]]:
        """Fetch every endpoint concurrently; one failure fails the whole batch."""
        return list(await asyncio.gather(*(self.fetch(e, token) for e in endpoints)))

    async def post_json(
        self,
        name: str,
        url: str,
        *,
        json: Any = None,
        data: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> Any:
        """POST and return the decoded JSON body. Used by login calls."""
        _log.debug("POST %s", url)
        try:
            response = await self.client.post(url, json=json, data=data, auth=auth)
        except httpx.HTTPError as exc:
            raise FetchError(name, detail=str(exc) or type(exc).__name__) from exc
        return self._decode(name, response)

    def _decode(self, name: str, response: httpx.Response, token: str | None = None) -> Any:
        if not response.is_success:
            error = FetchError(name, response.status_code, response.reason_phrase)
            if error.is_auth_failure and token and self.session is not None:
                self.session.invalidate(token)
            raise error
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(name, response.status_code, "response is not JSON") from exc
