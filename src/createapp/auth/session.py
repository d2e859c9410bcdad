"""Resolve a working GitHub client from stored credentials or a fresh device flow."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from createapp.auth.credentials import CredentialStore
from createapp.auth.device_flow import DeviceAuthFlow
from createapp.errors import AuthExpiredError, ConfigError
from createapp.github.client import GitHubClient
from createapp.models import Credentials, DeviceAuthSession

logger = logging.getLogger(__name__)

MAX_REAUTH_ATTEMPTS = 1


@dataclass(slots=True)
class Connection:
    client: GitHubClient
    login: str
    credentials: Credentials


def resolve_client_id(stored: Credentials | None, configured: str) -> str:
    client_id = (stored.client_id if stored else "") or configured.strip()
    if not client_id:
        raise ConfigError("OAUTH_CLIENT_ID is not set; add it to the environment or .env file")
    return client_id


async def login(
    store: CredentialStore,
    flow: DeviceAuthFlow,
    *,
    client_id: str,
    scopes: Iterable[str],
    on_code: Callable[[DeviceAuthSession], None],
) -> Credentials:
    """Run the device flow and persist the resulting token."""
    token = await flow.authenticate(client_id, scopes, on_code)
    credentials = Credentials(client_id=client_id, access_token=token)
    store.save(credentials)
    return credentials


async def connect(
    store: CredentialStore,
    flow: DeviceAuthFlow,
    client_factory: Callable[[str], GitHubClient],
    *,
    configured_client_id: str,
    scopes: Iterable[str],
    on_code: Callable[[DeviceAuthSession], None],
) -> Connection:
    """Return a client whose token has been proven valid by ``whoami``.

    A stored token that the host rejects triggers one fresh device flow; a
    second rejection propagates.
    """
    scopes = list(scopes)
    stored = store.load()
    client_id = resolve_client_id(stored, configured_client_id)

    if stored is None or not stored.access_token:
        logger.info("No stored token; starting device flow")
        credentials = await login(
            store, flow, client_id=client_id, scopes=scopes, on_code=on_code
        )
        reauth_attempts = MAX_REAUTH_ATTEMPTS
    else:
        credentials = stored
        reauth_attempts = 0

    while True:
        client = client_factory(credentials.access_token or "")
        try:
            user = await client.whoami()
        except AuthExpiredError:
            if reauth_attempts >= MAX_REAUTH_ATTEMPTS:
                raise
            reauth_attempts += 1
            logger.warning("Stored token rejected; re-running device flow")
            credentials = await login(
                store, flow, client_id=client_id, scopes=scopes, on_code=on_code
            )
            continue
        return Connection(client=client, login=user, credentials=credentials)
