"""Read-only view of an access token's JWT claims.

The client never verifies the token signature; that is the backend's job.
It only needs the ``exp`` claim to decide whether to renew the token before
sending a request.
"""

from __future__ import annotations

import math
import time
from typing import Any, Optional

import jwt

from stitchkit.exceptions import StitchError

EXPIRATION_WINDOW_SECONDS = 300
"""Tokens expiring within this many seconds are renewed ahead of use."""


class MalformedTokenError(StitchError):
    """Raised when an access token is not a decodable JWT."""


class AccessToken:
    """Decoded claims of a JWT access token.

    Args:
        raw: The encoded token as stored in the session.

    Raises:
        MalformedTokenError: If *raw* cannot be decoded as a JWT or its
            ``exp`` claim is not a finite number.

    Example::

        token = AccessToken(raw_jwt)
        if token.is_expired(skew=300):
            ...
    """

    def __init__(self, raw: str) -> None:
        self.raw = raw
        try:
            self.claims: dict[str, Any] = jwt.decode(
                raw, options={"verify_signature": False}
            )
        except jwt.PyJWTError as exc:
            raise MalformedTokenError(f"Access token is not a valid JWT: {exc}") from exc
        self._expires_at = _expiry(self.claims.get("exp"))

    @property
    def expires_at(self) -> Optional[float]:
        """The ``exp`` claim in epoch seconds, or ``None`` when absent."""
        return self._expires_at

    def is_expired(self, now: Optional[float] = None, skew: float = 0) -> bool:
        """Whether ``now + skew`` has reached the expiry time.

        A token without ``exp`` never expires by clock.
        """
        expires_at = self.expires_at
        if expires_at is None:
            return False
        if now is None:
            now = time.time()
        return now + skew >= expires_at


def _expiry(exp: Any) -> Optional[float]:
    if exp is None:
        return None
    if isinstance(exp, bool):
        raise MalformedTokenError(f"Access token has a non-numeric exp claim: {exp!r}")
    try:
        value = float(exp)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedTokenError(f"Access token has a non-numeric exp claim: {exp!r}") from exc
    if not math.isfinite(value):
        raise MalformedTokenError(f"Access token has a non-finite exp claim: {exp!r}")
    return value
