"""Decoding of backend error responses.

The backend reports failures as JSON bodies of the form
``{"error": "...", "error_code": "..."}`` served with
``Content-Type: application/json``. :func:`error_from_response` classifies a
non-2xx :class:`httpx.Response` into the matching
:class:`~stitchkit.exceptions.ResponseError` subclass:

==========================================  ==============================
Response                                    Exception
==========================================  ==============================
non-JSON body (e.g. an HTML error page)     :class:`TransportError`
``error_code == "InvalidSession"``          :class:`InvalidSessionError`
HTTP 401                                    :class:`AuthenticationError`
anything else                               :class:`RequestError`
==========================================  ==============================
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from stitchkit.exceptions import (
    AuthenticationError,
    InvalidSessionError,
    RequestError,
    ResponseError,
    TransportError,
)

INVALID_SESSION_CODE = "InvalidSession"
JSON_CONTENT_TYPE = "application/json"


def extract_error_body(response: httpx.Response) -> Optional[dict[str, Any]]:
    """Return the JSON error document, or ``None`` when there is no usable one."""
    content_type = response.headers.get("content-type", "")
    if JSON_CONTENT_TYPE not in content_type:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body


def error_from_response(response: httpx.Response) -> ResponseError:
    """Build the exception describing a failed *response*.

    Args:
        response: A response with a non-2xx status.

    Returns:
        The classified exception; the caller decides whether to raise it.
    """
    reason = response.reason_phrase or f"HTTP {response.status_code}"
    body = extract_error_body(response)
    if body is None:
        return TransportError(reason, response)

    message = str(body.get("error") or reason)
    error_code = body.get("error_code")

    if error_code == INVALID_SESSION_CODE:
        return InvalidSessionError(message, response, error_code)
    if response.status_code == 401:
        return AuthenticationError(message, response, error_code)
    return RequestError(message, response, error_code)


def raise_for_error(response: httpx.Response) -> httpx.Response:
    """Return *response* unchanged when successful, otherwise raise its error."""
    if response.is_success:
        return response
    raise error_from_response(response)
