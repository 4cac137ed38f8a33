"""Request executor -- authenticated calls with refresh-and-replay.

:class:`RequestExecutor` sends every authenticated request through a small
state machine:

.. code-block:: text

    UNAUTHENTICATED --(no user)--> raise UnauthenticatedError, nothing sent

    AUTHENTICATED(token) --send--> 2xx             --> done
                                   InvalidSession  --> REFRESHING
                                   other error     --> raise

    REFRESHING --refresh ok----> REPLAYING(new token)
               --refresh fails-> UNAUTHENTICATED (session cleared, raise)

    REPLAYING(token) --send--> 2xx             --> done
                               InvalidSession  --> raise SessionExpiredError
                               other error     --> raise

Before the first send the executor asks the
:class:`~stitchkit.auth.manager.AuthManager` to renew a token that is expired
or about to expire, so the reactive path above is normally only taken when the
backend revoked the token early.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

import httpx

from stitchkit.auth.manager import AuthManager
from stitchkit.codec import BSONCodec, ExtendedJSONCodec
from stitchkit.endpoints import Endpoints
from stitchkit.exceptions import (
    InvalidSessionError,
    SessionExpiredError,
    UnauthenticatedError,
)
from stitchkit.output import get_output
from stitchkit.response import JSON_CONTENT_TYPE, error_from_response, raise_for_error


class RequestState(enum.Enum):
    """Where an authenticated request is in the refresh-and-replay protocol.

    ``UNAUTHENTICATED`` is never held by a running request; it is the state a
    failed refresh leaves the session in.
    """

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    REPLAYING = "replaying"


class RequestExecutor:
    """Issues HTTP calls on behalf of one session.

    Args:
        auth: The auth manager owning the session. Executors sharing a
            manager share its session and its in-flight refresh.
        endpoints: URL builder for the target application.
        http: The async HTTP client to send requests with.
        codec: Extended-JSON codec for function arguments and results.
            Defaults to :class:`~stitchkit.codec.BSONCodec`.

    Example::

        executor = RequestExecutor(manager, endpoints, http)
        result = await executor.call("sum", 1, 2)
    """

    def __init__(
        self,
        auth: AuthManager,
        endpoints: Endpoints,
        http: httpx.AsyncClient,
        codec: Optional[ExtendedJSONCodec] = None,
    ) -> None:
        self._auth = auth
        self._endpoints = endpoints
        self._http = http
        self._codec: ExtendedJSONCodec = codec if codec is not None else BSONCodec()

    @property
    def auth(self) -> AuthManager:
        return self._auth

    async def request(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        content: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
        refresh_on_failure: bool = True,
    ) -> httpx.Response:
        """Send a request and return the successful response.

        Args:
            method: HTTP method.
            url: Absolute URL, usually taken from
                :class:`~stitchkit.endpoints.Endpoints`.
            json_body: JSON-serialisable body.
            content: Pre-encoded body, sent as-is.
            params: Query parameters.
            headers: Extra request headers.
            authenticated: Attach the session's bearer token. Unauthenticated
                requests skip the refresh protocol entirely.
            refresh_on_failure: Refresh and replay once when the backend
                reports an invalid session.

        Returns:
            The 2xx :class:`httpx.Response`.

        Raises:
            UnauthenticatedError: If *authenticated* is set and there is no
                session. No request is sent.
            SessionExpiredError: If the session could not be renewed, or the
                replay was rejected as well.
            ResponseError: For any other error response.
        """
        if not authenticated:
            response = await self._send(method, url, None, json_body, content, params, headers)
            return raise_for_error(response)

        if not self._auth.authed_id():
            raise UnauthenticatedError("Must authenticate first")

        state = RequestState.AUTHENTICATED
        token = await self._auth.ensure_fresh_token()
        while True:
            response = await self._send(method, url, token, json_body, content, params, headers)
            if response.is_success:
                return response

            exc = error_from_response(response)
            if not isinstance(exc, InvalidSessionError) or not refresh_on_failure:
                raise exc

            if state is RequestState.REPLAYING:
                raise SessionExpiredError(
                    "Session is still invalid after refreshing the access token",
                    response=response,
                    error_code=exc.error_code,
                ) from exc

            state = RequestState.REFRESHING
            get_output().debug(f"Invalid session on {method} {url}, refreshing access token")
            token = await self._auth.refresh_token(stale_token=token)
            state = RequestState.REPLAYING

    async def call(self, name: str, *args: Any, service: Optional[str] = None) -> Any:
        """Invoke a backend function and return its decoded result.

        Arguments and the result are converted with the extended-JSON codec,
        so values such as :class:`bson.ObjectId` survive the round trip.

        Args:
            name: Function name, or the action name when *service* is given.
            *args: Positional arguments passed to the function.
            service: Name of the service the action belongs to.
        """
        body: dict[str, Any] = {"name": name, "arguments": list(args)}
        if service is not None:
            body["service"] = service

        response = await self.request(
            "POST",
            self._endpoints.function_call,
            content=self._codec.encode(body),
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )
        if not response.content:
            return None
        return self._codec.decode(response.text)

    async def get_json(self, url: str, *, authenticated: bool = True) -> Any:
        """GET *url* and return its plain JSON body."""
        response = await self.request("GET", url, authenticated=authenticated)
        if not response.content:
            return None
        return response.json()

    async def _send(
        self,
        method: str,
        url: str,
        token: Optional[str],
        json_body: Any,
        content: Optional[str],
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
    ) -> httpx.Response:
        merged_headers: dict[str, str] = dict(headers or {})
        if token:
            merged_headers["Authorization"] = f"Bearer {token}"

        kwargs: dict[str, Any] = {"headers": merged_headers}
        if params:
            kwargs["params"] = params
        if content is not None:
            kwargs["content"] = content
        elif json_body is not None:
            kwargs["json"] = json_body

        get_output().debug(f"{method} {url}")
        response = await self._http.request(method, url, **kwargs)
        get_output().debug(f"{response.status_code} {response.reason_phrase}")
        return response
