"""Parsing of OAuth redirect fragments.

After an OAuth login the platform redirects back to the application with the
outcome encoded in the URL fragment, for example::

    https://app.example.com/#_stitch_state=abc&_stitch_ua=at$rt$uid$did

:func:`parse_redirect_fragment` turns such a fragment into a
:class:`~stitchkit.models.RedirectFragmentResult`. It never raises; callers
inspect ``found``, ``state_valid``, and ``last_error`` independently.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import unquote

from stitchkit.models import RedirectFragmentResult, UserAuth

STATE_PARAM = "_stitch_state"
ERROR_PARAM = "_stitch_error"
USER_AUTH_PARAM = "_stitch_ua"
LINK_PARAM = "_stitch_link"


def decode_user_auth(value: str) -> UserAuth:
    """Split an ``access$refresh$user$device`` value into a :class:`UserAuth`.

    Raises:
        ValueError: If *value* does not have exactly four parts.
    """
    parts = value.split("$")
    if len(parts) != 4:
        raise ValueError(
            f"invalid user auth data: expected 4 '$'-separated parts, got {len(parts)}"
        )
    access_token, refresh_token, user_id, device_id = parts
    return UserAuth(
        access_token=access_token,
        refresh_token=refresh_token,
        user_id=user_id,
        device_id=device_id,
    )


def parse_redirect_fragment(
    fragment: str, expected_state: Optional[str]
) -> RedirectFragmentResult:
    """Decode the stitchkit parameters of a redirect fragment.

    Args:
        fragment: The URL fragment, with or without the leading ``#``.
        expected_state: The state issued with the login URL.

    Returns:
        A :class:`~stitchkit.models.RedirectFragmentResult`. An error
        parameter ends parsing; a malformed user-auth value records an error
        but leaves ``found`` as set by the other parameters.
    """
    found = False
    state_valid = False
    last_error: Optional[str] = None
    ua: Optional[UserAuth] = None

    for pair in fragment.lstrip("#").split("&"):
        if not pair:
            continue
        raw_key, _, raw_value = pair.partition("=")
        key = unquote(raw_key)
        value = unquote(raw_value)

        if key == ERROR_PARAM:
            last_error = value
            found = True
            break
        if key == USER_AUTH_PARAM:
            try:
                ua = decode_user_auth(value)
            except ValueError as exc:
                last_error = str(exc)
            else:
                found = True
        elif key == LINK_PARAM:
            found = True
        elif key == STATE_PARAM:
            found = True
            if expected_state and value == expected_state:
                state_valid = True

    return RedirectFragmentResult(
        found=found, state_valid=state_valid, last_error=last_error, ua=ua
    )
