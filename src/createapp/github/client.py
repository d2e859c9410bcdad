"""Authenticated GitHub REST client: token check and repository creation."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from createapp.errors import (
    AuthExpiredError,
    AuthNetworkError,
    HostError,
    HostNetworkError,
    HostUnauthorizedError,
    RepositoryNameConflictError,
)
from createapp.models import RemoteRepository

logger = logging.getLogger(__name__)


def _github_headers(token: str) -> dict[str, str]:
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": "create-app/1.0",
    }


def _is_name_conflict(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    for item in body.get("errors") or []:
        if isinstance(item, dict):
            message = str(item.get("message", "")).lower()
            if item.get("field") == "name" and item.get("code") in {"custom", "already_exists"}:
                return True
            if "already exists" in message:
                return True
        elif "already exists" in str(item).lower():
            return True
    return "already exists" in str(body.get("message", "")).lower()


class GitHubClient:
    """Binds a token to a client handle. Construction performs no network call."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=_github_headers(self.token),
            timeout=self.timeout,
            transport=self._transport,
        )

    async def whoami(self) -> str:
        """Return the login behind the token; doubles as a token-validity check."""
        try:
            async with self._client() as client:
                response = await client.get("/user")
        except httpx.HTTPError as exc:
            raise AuthNetworkError(f"GET /user failed: {exc}") from exc
        if response.status_code in {401, 403}:
            raise AuthExpiredError(
                f"stored token was rejected ({response.status_code}); it may be expired or revoked"
            )
        if response.status_code >= 400:
            raise AuthNetworkError(
                f"GET /user failed {response.status_code}: {response.text[:500]}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise AuthNetworkError("GET /user returned a non-JSON body") from exc
        login = body.get("login") if isinstance(body, dict) else None
        if not isinstance(login, str) or not login:
            raise AuthNetworkError("GET /user response missing login")
        return login

    async def create_repository(self, name: str, private: bool) -> RemoteRepository:
        try:
            async with self._client() as client:
                response = await client.post(
                    "/user/repos", json={"name": name, "private": private}
                )
        except httpx.HTTPError as exc:
            raise HostNetworkError(f"POST /user/repos failed: {exc}") from exc

        if response.status_code >= 400:
            detail = response.text[:500]
            try:
                body = response.json()
            except ValueError:
                body = None
            if response.status_code == 422 and _is_name_conflict(body):
                raise RepositoryNameConflictError(
                    f"a repository named {name!r} already exists on this account"
                )
            if response.status_code in {401, 403}:
                raise HostUnauthorizedError(
                    f"not allowed to create repositories ({response.status_code}): {detail}"
                )
            if response.status_code >= 500:
                raise HostNetworkError(
                    f"POST /user/repos failed {response.status_code}: {detail}", retryable=True
                )
            raise HostError(f"POST /user/repos failed {response.status_code}: {detail}")

        try:
            body = response.json()
        except ValueError as exc:
            raise HostError("POST /user/repos returned a non-JSON body") from exc
        html_url = body.get("html_url") if isinstance(body, dict) else None
        if not isinstance(html_url, str) or not html_url:
            raise HostError("POST /user/repos response missing html_url")
        repo = RemoteRepository(
            name=str(body.get("name") or name),
            private=bool(body.get("private", private)),
            html_url=html_url,
        )
        logger.info("Repository created: %s (private=%s)", repo.html_url, repo.private)
        return repo
