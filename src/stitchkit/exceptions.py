"""Exception hierarchy for stitchkit.

All exceptions inherit from :class:`StitchError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`stitchkit.exit_codes`.
The CLI entry point in :func:`stitchkit.app.main` catches ``StitchError`` and
exits with the matching code.

Errors raised from a backend response derive from :class:`ResponseError` and
keep the raw :class:`httpx.Response` together with the ``error`` and
``error_code`` fields of the JSON error body.

Subclass hierarchy::

    StitchError (exit 1)
    +-- ConfigError               (exit 1)
    +-- ProviderError             (exit 2)
    +-- RedirectError             (exit 3)
    +-- UnauthenticatedError      (exit 3)
    |   +-- SessionExpiredError   (exit 3)
    +-- ResponseError             (exit 5)
        +-- AuthenticationError   (exit 3)
        +-- InvalidSessionError   (exit 3)
        +-- TransportError        (exit 5)
        +-- RequestError          (exit 5)

Network failures raised by :mod:`httpx` are not wrapped; they reach the
caller unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from stitchkit.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REQUEST_ERROR,
)

if TYPE_CHECKING:
    import httpx


class StitchError(Exception):
    """Base exception for all stitchkit errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(StitchError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class ProviderError(StitchError):
    """Raised when an auth provider is not registered or cannot do what was asked."""

    exit_code = EXIT_INVALID_USAGE


class RedirectError(StitchError):
    """Raised when an OAuth redirect fragment carries an error or a foreign state."""

    exit_code = EXIT_AUTH_FAILURE


class UnauthenticatedError(StitchError):
    """Raised when an authenticated operation is attempted without a session.

    Raised before any network traffic takes place.
    """

    exit_code = EXIT_AUTH_FAILURE


class SessionExpiredError(UnauthenticatedError):
    """Raised when the session could not be renewed.

    Either the refresh call was rejected (the local session has already been
    cleared when this is raised), or the backend kept reporting an invalid
    session after one refresh and replay.

    Args:
        message: Human-readable error description.
        response: The response that ended the session, when there was one.
        error_code: The backend error code from that response.
    """

    def __init__(
        self,
        message: str,
        response: Optional[httpx.Response] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.response = response
        self.error_code = error_code


class ResponseError(StitchError):
    """Base class for errors decoded from a non-2xx backend response.

    Args:
        error: The ``error`` field of the body, or the HTTP reason phrase.
        response: The raw :class:`httpx.Response`.
        error_code: The ``error_code`` field of the body, if present.
    """

    exit_code = EXIT_REQUEST_ERROR

    def __init__(
        self,
        error: str,
        response: httpx.Response,
        error_code: Optional[str] = None,
    ):
        super().__init__(error)
        self.error = error
        self.error_code = error_code
        self.response = response

    @property
    def status_code(self) -> int:
        """HTTP status of the failed response."""
        return self.response.status_code


class AuthenticationError(ResponseError):
    """Raised when a provider rejects the supplied credentials (HTTP 401)."""

    exit_code = EXIT_AUTH_FAILURE


class InvalidSessionError(ResponseError):
    """Raised when the backend rejects the presented access token."""

    exit_code = EXIT_AUTH_FAILURE


class TransportError(ResponseError):
    """Raised when an error response has no usable JSON body.

    The ``error`` attribute holds the HTTP reason phrase
    (e.g. ``"Internal Server Error"``).
    """


class RequestError(ResponseError):
    """Raised for any other non-2xx response carrying ``{error, error_code}``."""
