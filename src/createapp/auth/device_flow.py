"""OAuth 2.0 Device Authorization Grant (RFC 8628) against GitHub.

Flow:
1. Request device and user codes from the host
2. Display the user code and verification URL
3. Poll the token endpoint until the user completes authorization

The poll loop is a coroutine. Cancelling its task aborts the current await,
and the per-request ``httpx.AsyncClient`` closes any in-flight connection.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import httpx

from createapp.errors import (
    AccessDeniedError,
    AuthExpiredError,
    AuthNetworkError,
    InvalidClientError,
)
from createapp.models import DeviceAuthSession

logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_POLL_INTERVAL = 5
DEFAULT_EXPIRES_IN = 900
SLOW_DOWN_INCREMENT = 5

_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "create-app/1.0",
}

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


def _error_message(body: dict[str, Any]) -> str:
    return str(body.get("error_description") or body.get("error") or "unknown error")


def _seconds(value: Any, default: int) -> int:
    try:
        return int(value or default)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric value %r from host; using %ss", value, default)
        return default


class DeviceAuthFlow:
    def __init__(
        self,
        device_code_url: str,
        token_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.time,
    ) -> None:
        self.device_code_url = device_code_url
        self.token_url = token_url
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    async def _post(self, url: str, data: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.post(url, data=data, headers=_HEADERS)

    async def request_code(self, client_id: str, scopes: Iterable[str]) -> DeviceAuthSession:
        if not client_id.strip():
            raise InvalidClientError("OAuth client id is empty")
        try:
            response = await self._post(
                self.device_code_url,
                {"client_id": client_id, "scope": " ".join(scopes)},
            )
        except httpx.HTTPError as exc:
            raise AuthNetworkError(f"device code request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 or "error" in body:
            if response.status_code >= 500:
                raise AuthNetworkError(
                    f"device code request failed {response.status_code}: {response.text[:500]}"
                )
            raise InvalidClientError(f"host rejected client id: {_error_message(body)}")

        try:
            device_code = str(body["device_code"])
            user_code = str(body["user_code"])
            verification_uri = str(body["verification_uri"])
        except KeyError as exc:
            raise AuthNetworkError(f"device code response missing {exc.args[0]}") from exc

        now = self._clock()
        expires_in = max(1, _seconds(body.get("expires_in"), DEFAULT_EXPIRES_IN))
        interval = max(1, _seconds(body.get("interval"), DEFAULT_POLL_INTERVAL))
        logger.info("Device code issued; expires in %ss, interval %ss", expires_in, interval)
        return DeviceAuthSession(
            device_code=device_code,
            user_code=user_code,
            verification_uri=verification_uri,
            expires_at=now + expires_in,
            interval=interval,
            issued_at=now,
        )

    async def poll_for_token(self, session: DeviceAuthSession, client_id: str) -> str:
        """Poll the token endpoint until the user authorizes, denies or the code expires.

        The first request is issued no earlier than one interval after the code
        was issued. ``session.interval`` is updated in place on ``slow_down``.

        Raises:
            AuthExpiredError: ``expires_at`` passed, or the host said ``expired_token``.
            AccessDeniedError: The user declined.
            InvalidClientError: Any other error code from the host.
        """
        data = {
            "client_id": client_id,
            "device_code": session.device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }
        next_attempt = session.issued_at + session.interval

        while True:
            now = self._clock()
            if now >= session.expires_at:
                raise AuthExpiredError("device code expired before authorization completed")
            wait = min(next_attempt, session.expires_at) - now
            if wait > 0:
                await self._sleep(wait)
                if self._clock() >= session.expires_at:
                    raise AuthExpiredError("device code expired before authorization completed")

            try:
                response = await self._post(self.token_url, data)
                body = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Token poll failed, retrying: %s", exc)
                next_attempt = self._clock() + session.interval
                continue
            if not isinstance(body, dict):
                body = {}

            token = body.get("access_token")
            if isinstance(token, str) and token:
                logger.info("Device authorization completed")
                return token

            error = body.get("error")
            if error == "authorization_pending":
                pass
            elif error == "slow_down":
                host_interval = _seconds(body.get("interval"), 0)
                session.interval = max(session.interval + SLOW_DOWN_INCREMENT, host_interval)
                logger.info("Host asked to slow down; interval now %ss", session.interval)
            elif error == "access_denied":
                raise AccessDeniedError("authorization was denied by the user")
            elif error == "expired_token":
                raise AuthExpiredError("device code expired; run the login again")
            elif error:
                raise InvalidClientError(f"authorization failed: {_error_message(body)}")
            else:
                logger.warning("Unexpected token response (HTTP %s)", response.status_code)
            next_attempt = self._clock() + session.interval

    async def authenticate(
        self,
        client_id: str,
        scopes: Iterable[str],
        on_code: Callable[[DeviceAuthSession], None],
    ) -> str:
        """Request a code, let the caller display it, then wait for the token."""
        session = await self.request_code(client_id, scopes)
        on_code(session)
        return await self.poll_for_token(session, client_id)
