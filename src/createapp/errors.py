"""create-app exception hierarchy.

All create-app exceptions inherit from CreateAppError, so the CLI can turn
any of them into a single human-readable failure message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from createapp.models import BootstrapResult


class CreateAppError(Exception):
    """Base exception for all create-app errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class ConfigError(CreateAppError):
    """Invalid or missing configuration."""


class CredentialStoreError(CreateAppError):
    """The credential file could not be read or written."""


class AuthError(CreateAppError):
    """Device-flow authentication or token validation failed."""


class AuthNetworkError(AuthError):
    """Transport failure talking to the OAuth endpoints."""

    def __init__(self, message: str = "", *, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)


class InvalidClientError(AuthError):
    """The host rejected the OAuth client id."""


class AccessDeniedError(AuthError):
    """The user declined the authorization request."""


class AuthExpiredError(AuthError):
    """The device code expired, or a stored token is no longer valid."""


class HostError(CreateAppError):
    """Repository host API call failed."""


class RepositoryNameConflictError(HostError):
    """A repository with the requested name already exists."""


class HostUnauthorizedError(HostError):
    """The token is not allowed to perform the call."""


class HostNetworkError(HostError):
    """Transport failure talking to the repository host."""

    def __init__(self, message: str = "", *, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)


class BootstrapError(CreateAppError):
    """A local git step failed; later steps were not attempted."""

    def __init__(
        self,
        message: str = "",
        *,
        step: str,
        output: str = "",
        result: BootstrapResult | None = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.output = output
        self.result = result


class RemoteExistsError(BootstrapError):
    """`origin` is already configured with a different URL."""


class NothingToCommitError(BootstrapError):
    """The staged set is empty."""


class PushRejectedError(BootstrapError):
    """The remote refused the push (non-fast-forward or authorization)."""


class ToolInvocationError(BootstrapError):
    """The git executable failed or could not be started."""


class BootstrapCancelledError(BootstrapError):
    """Cancelled before the next git step was issued."""
