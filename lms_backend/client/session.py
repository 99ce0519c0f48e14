"""Async session client for the LMS API.

Holds the access/refresh token pair, mirrors it into a ``TokenStore``, and
refreshes it transparently. Concurrent callers that hit an expired access
token share a single in-flight refresh.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from lms_backend.client.errors import (
    AccountInactive, InvalidCredentials, NetworkError, SessionError,
)
from lms_backend.client.store import MemoryTokenStore, TokenStore

logger = logging.getLogger("lms_platform.client")


class Principal(BaseModel):
    """The signed-in user as reported by the server."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: int
    name: str
    email: str
    role: Optional[str] = None
    status: str = "active"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or response.reason_phrase
    return response.reason_phrase


class SessionClient:
    """Client-side session lifecycle: bootstrap, login, refresh, logout."""

    def __init__(
        self,
        base_url: str,
        store: Optional[TokenStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.store = store if store is not None else MemoryTokenStore()
        self.principal: Optional[Principal] = None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._refresh_task: Optional[asyncio.Task] = None
        # Bumped whenever the session is replaced or cleared
        self._generation = 0
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ---- state ----

    def current_access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    def _set_tokens(self, access_token: str, refresh_token: str) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self.store.save(access_token, refresh_token)

    def _clear(self) -> None:
        self._generation += 1
        self._access_token = None
        self._refresh_token = None
        self.principal = None
        self.store.clear()

    def _auth_headers(self) -> Dict[str, str]:
        if not self._access_token:
            return {}
        return {"Authorization": f"Bearer {self._access_token}"}

    # ---- lifecycle ----

    async def bootstrap(self) -> Optional[Principal]:
        """Restore a persisted session.

        Fetches the profile with the stored access token; on 401 refreshes
        once and retries. Any further failure leaves the session anonymous.
        """
        self._access_token, self._refresh_token = self.store.load()
        if not self._access_token and not self._refresh_token:
            return None

        response = await self._fetch_profile()
        if response.status_code == 401:
            if await self.refresh() is None:
                return None
            response = await self._fetch_profile()

        if response.status_code != 200:
            logger.info("Session restore failed with status %s", response.status_code)
            self._clear()
            return None

        self.principal = Principal.model_validate(response.json())
        return self.principal

    async def _fetch_profile(self) -> httpx.Response:
        return await self._send("GET", "/api/users/profile")

    async def login(self, email: str, password: str) -> Principal:
        """Sign in and persist the token pair.

        Raises:
            InvalidCredentials: On 401.
            AccountInactive: On 403.
            NetworkError: If the server cannot be reached.
            SessionError: On any other non-2xx answer.
        """
        try:
            response = await self._http.post(
                "/api/auth/login", json={"email": email, "password": password},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach the server: {e}") from e

        if response.status_code == 401:
            raise InvalidCredentials(_error_message(response), 401)
        if response.status_code == 403:
            raise AccountInactive(_error_message(response), 403)
        if not response.is_success:
            raise SessionError(_error_message(response), response.status_code)

        data = response.json()
        self._generation += 1
        self._set_tokens(data["accessToken"], data["refreshToken"])
        self.principal = Principal.model_validate(data["user"])
        logger.info("Signed in as %s", self.principal.email)
        return self.principal

    async def refresh(self) -> Optional[str]:
        """Exchange the refresh token for a new pair.

        Returns the new access token, or ``None`` after clearing the session.
        Callers arriving while a refresh is in flight await that same refresh;
        cancelling one of them leaves the shared refresh running for the rest.
        """
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._do_refresh())
            task.add_done_callback(self._forget_refresh)
            self._refresh_task = task
        return await asyncio.shield(task)

    def _forget_refresh(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _do_refresh(self) -> Optional[str]:
        generation = self._generation
        refresh_token = self._refresh_token
        if not refresh_token:
            self._clear()
            return None

        try:
            response = await self._http.post(
                "/api/auth/refresh", json={"refreshToken": refresh_token},
            )
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed: %s", e)
            return self._end_refresh(generation)

        if response.status_code != 200:
            logger.info("Token refresh rejected with status %s", response.status_code)
            return self._end_refresh(generation)

        if generation != self._generation:
            logger.info("Discarding refreshed tokens for a session that has ended")
            return None

        data = response.json()
        self._set_tokens(data["accessToken"], data["refreshToken"])
        return self._access_token

    def _end_refresh(self, generation: int) -> None:
        # A logout or new login during the refresh owns the state now
        if generation == self._generation:
            self._clear()
        return None

    async def logout(self) -> None:
        """Tell the server, then drop local and stored tokens regardless."""
        if not self._access_token:
            self._access_token, self._refresh_token = self.store.load()
        if self._access_token:
            try:
                await self._http.post("/api/auth/logout", headers=self._auth_headers())
            except httpx.HTTPError as e:
                logger.debug("Logout call failed: %s", e)
        self._clear()

    # ---- requests ----

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self._auth_headers())
        try:
            return await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach the server: {e}") from e

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Authenticated request; on 401 refreshes once and retries."""
        response = await self._send(method, url, **kwargs)
        if response.status_code == 401 and self._refresh_token:
            if await self.refresh() is not None:
                response = await self._send(method, url, **kwargs)
        return response
