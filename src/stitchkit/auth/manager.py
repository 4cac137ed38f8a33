"""Auth manager -- session owner, provider registry, and token lifecycle.

The :class:`AuthManager` is the centre of the authentication subsystem. It

- owns the :class:`~stitchkit.auth.credential_store.CredentialStore` and is
  the only component that writes to it,
- keeps a registry mapping provider aliases (``"anon"``, ``"userpass"``,
  ``"apiKey"``, ...) to :class:`~stitchkit.auth.base.AuthProvider`
  factories,
- performs provider logins and attaches device information to them,
- decides when the access token needs renewal and renews it, collapsing
  concurrent renewals into a single call to the backend, and
- consumes OAuth redirect fragments.

For most use cases call :func:`create_default_manager` to get a manager
pre-loaded with every built-in provider.

See Also:
    :class:`~stitchkit.client.executor.RequestExecutor` -- consumes the
    session and drives the refresh-and-retry protocol.
"""

from __future__ import annotations

import asyncio
import base64
import json
import platform
import secrets
import time
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from stitchkit import __version__
from stitchkit.auth.base import AuthProvider, ProviderFactory
from stitchkit.auth.credential_store import CredentialStore
from stitchkit.auth.redirect import parse_redirect_fragment
from stitchkit.auth.tokens import EXPIRATION_WINDOW_SECONDS, AccessToken, MalformedTokenError
from stitchkit.endpoints import Endpoints
from stitchkit.exceptions import (
    ProviderError,
    RequestError,
    SessionExpiredError,
    UnauthenticatedError,
)
from stitchkit.models import DeviceInfo, RedirectFragmentResult, Session
from stitchkit.output import get_output
from stitchkit.response import error_from_response, raise_for_error

STATE_MISMATCH_ERROR = "OAuth state did not match the login request"


class AuthManager:
    """Owner of one client's session.

    Args:
        endpoints: URL builder for the target application.
        http: The async HTTP client used for login, refresh, and logout.
        store: Credential store holding the session. Defaults to an
            in-memory store.
        app_version: Application version reported in device info.
        clock: Returns the current time in epoch seconds; injectable for
            tests.

    Example::

        manager = create_default_manager(Endpoints("my-app"), httpx.AsyncClient())
        await manager.provider("userpass").authenticate(
            username="user@example.com", password="secret",
        )
        manager.authed_id()
    """

    def __init__(
        self,
        endpoints: Endpoints,
        http: httpx.AsyncClient,
        store: Optional[CredentialStore] = None,
        app_version: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._endpoints = endpoints
        self._http = http
        self._store = store if store is not None else CredentialStore()
        self._app_version = app_version
        self._clock = clock
        self._providers: dict[str, ProviderFactory] = {}
        self._refresh_task: Optional[asyncio.Task[str]] = None

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def endpoints(self) -> Endpoints:
        return self._endpoints

    # ------------------------------------------------------------------ #
    # Provider registry
    # ------------------------------------------------------------------ #

    def register_provider(self, alias: str, factory: ProviderFactory) -> None:
        """Register *factory* under *alias*, replacing any previous entry."""
        self._providers[alias] = factory

    def provider(self, name: str) -> AuthProvider:
        """Instantiate the provider registered under *name*.

        Raises:
            ProviderError: If no provider is registered for *name*.
        """
        factory = self._providers.get(name)
        if factory is None:
            available = ", ".join(sorted(self._providers)) or "(none)"
            raise ProviderError(
                f"No auth provider registered as '{name}'. Available providers: {available}"
            )
        return factory(self)

    def list_providers(self) -> list[str]:
        """Return the registered provider aliases, sorted."""
        return sorted(self._providers)

    # ------------------------------------------------------------------ #
    # Session reads
    # ------------------------------------------------------------------ #

    def session(self) -> Session:
        return self._store.load_session()

    def authed_id(self) -> Optional[str]:
        """The current user id, or ``None`` when logged out."""
        return self._store.get_user_auth().get("userId")

    def get_access_token(self) -> Optional[str]:
        return self._store.get_user_auth().get("accessToken")

    def get_refresh_token(self) -> Optional[str]:
        return self._store.load_session().refresh_token

    def get_device_id(self) -> Optional[str]:
        return self._store.get_device_id()

    def auth_error(self) -> Optional[str]:
        """The error recorded by the last :meth:`handle_redirect`, if any."""
        return self._store.get_error()

    # ------------------------------------------------------------------ #
    # Session writes
    # ------------------------------------------------------------------ #

    def set(self, raw: Union[Mapping[str, Any], BaseModel]) -> Session:
        """Merge a provider's login payload into the stored session.

        *raw* uses the backend's snake_case keys (``access_token``,
        ``refresh_token``, ``user_id``, ``device_id``); a
        :class:`~stitchkit.models.UserAuth` is accepted as well. Keys that
        are absent or empty leave the stored value untouched, so partial
        payloads (a refresh that only returns ``access_token``) never erase
        what an earlier login established.

        Returns:
            The session after the merge.
        """
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        return self._store.merge(
            user_id=_text(raw.get("user_id")),
            access_token=_text(raw.get("access_token")),
            refresh_token=_text(raw.get("refresh_token")),
            device_id=_text(raw.get("device_id")),
        )

    def clear(self) -> None:
        """Log out locally: forget user id and tokens, keep the device id."""
        self._store.clear_session()

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def device_info(self) -> DeviceInfo:
        """Describe this client to the backend.

        ``deviceId`` is only filled in when an earlier login was assigned
        one, so the backend can recognise a returning installation.
        """
        return DeviceInfo(
            app_id=self._endpoints.app_id,
            app_version=self._app_version or "",
            platform=platform.python_implementation().lower(),
            platform_version=platform.python_version(),
            sdk_version=__version__,
            device_id=self.get_device_id(),
        )

    def encoded_device_info(self) -> str:
        """Base64 JSON device document, as carried in query strings."""
        payload = json.dumps(self.device_info().to_wire(), separators=(",", ":"))
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

    async def login(
        self,
        provider_name: str,
        *,
        method: str = "POST",
        json_body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
        link: bool = False,
    ) -> Session:
        """Call a provider's login endpoint and store the resulting credentials.

        Args:
            provider_name: Backend provider name (e.g. ``"local-userpass"``).
            method: HTTP method of the login call.
            json_body: Request body, usually built by
                :meth:`~stitchkit.auth.base.AuthProvider.login_body`.
            params: Query parameters.
            link: Attach the new identity to the current user instead of
                starting a new session.

        Returns:
            The session after the login payload has been merged in.

        Raises:
            UnauthenticatedError: If *link* is set without a current session.
            AuthenticationError: If the provider rejects the credentials.
            TransportError: If the error response is not JSON.
            RequestError: For other error responses.
        """
        query: dict[str, str] = dict(params or {})
        headers: dict[str, str] = {}
        if link:
            token = self.get_access_token()
            if not self.authed_id() or not token:
                raise UnauthenticatedError("Linking an identity requires a logged-in user")
            query["link"] = "true"
            headers["Authorization"] = f"Bearer {token}"

        url = self._endpoints.provider(provider_name)
        get_output().debug(f"Logging in via {provider_name}: {method} {url}")
        response = await self._http.request(
            method,
            url,
            json=json_body,
            params=query or None,
            headers=headers,
        )
        raise_for_error(response)

        try:
            payload = response.json() if response.content else {}
        except ValueError as exc:
            raise RequestError("Unexpected login response from server", response) from exc
        if not isinstance(payload, dict):
            raise RequestError("Unexpected login response from server", response)
        session = self.set(payload)
        get_output().debug(f"Logged in as {session.user_id}")
        return session

    async def post_provider(
        self, provider_name: str, action: str, json_body: dict[str, Any]
    ) -> httpx.Response:
        """POST to an unauthenticated provider endpoint other than login.

        Used for account management calls such as registration or password
        resets.
        """
        url = self._endpoints.provider(provider_name, action)
        get_output().debug(f"POST {url}")
        response = await self._http.post(url, json=json_body)
        return raise_for_error(response)

    async def logout(self) -> None:
        """End the session on the backend and clear it locally.

        The local session is cleared even when the backend call fails; the
        failure is then re-raised. Logging out without a session is a no-op.
        """
        if not self.authed_id():
            self.clear()
            return

        bearer = self.get_refresh_token() or self.get_access_token()
        try:
            if bearer:
                response = await self._http.delete(
                    self._endpoints.session,
                    headers={"Authorization": f"Bearer {bearer}"},
                )
                raise_for_error(response)
        finally:
            self.clear()
            get_output().debug("Logged out")

    # ------------------------------------------------------------------ #
    # Token lifecycle
    # ------------------------------------------------------------------ #

    def is_access_token_expired_or_expiring(
        self, skew_seconds: float = EXPIRATION_WINDOW_SECONDS
    ) -> bool:
        """Whether the stored access token expires within *skew_seconds*.

        A missing or undecodable token counts as expired.
        """
        token = self.get_access_token()
        if not token:
            return True
        try:
            access_token = AccessToken(token)
        except MalformedTokenError:
            return True
        return access_token.is_expired(now=self._clock(), skew=skew_seconds)

    async def ensure_fresh_token(self) -> Optional[str]:
        """Renew the access token ahead of a request when it is about to expire.

        Nothing happens without a refresh token; the reactive path in the
        executor still covers that case.

        Returns:
            The access token to send.
        """
        token = self.get_access_token()
        if not self.get_refresh_token():
            return token
        if not self.is_access_token_expired_or_expiring():
            return token
        get_output().debug("Access token expired or expiring, refreshing before request")
        return await self.refresh_token(stale_token=token)

    async def refresh_token(self, stale_token: Optional[str] = None) -> str:
        """Exchange the refresh token for a new access token.

        Concurrent callers share one in-flight refresh. A caller passing the
        *stale_token* it was rejected with gets the current token straight
        away when another refresh has already replaced it.

        Returns:
            The new access token.

        Raises:
            SessionExpiredError: If the backend rejects the refresh token or
                there is none; the session has been cleared.
        """
        if stale_token is not None:
            current = self.get_access_token()
            if current and current != stale_token:
                return current

        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task
            task.add_done_callback(self._forget_refresh)
        return await asyncio.shield(task)

    def _forget_refresh(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        # every waiter may have been cancelled; mark the failure as retrieved
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> str:
        refresh = self.get_refresh_token()
        if not refresh:
            self.clear()
            raise SessionExpiredError("No refresh token available; log in again")

        get_output().debug("Refreshing access token")
        response = await self._http.post(
            self._endpoints.session,
            headers={"Authorization": f"Bearer {refresh}"},
        )
        if not response.is_success:
            exc = error_from_response(response)
            self.clear()
            raise SessionExpiredError(
                f"Session could not be refreshed: {exc.error}",
                response=response,
                error_code=exc.error_code,
            ) from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = None
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            self.clear()
            raise SessionExpiredError(
                "Session refresh returned no access token", response=response
            )
        if not self.authed_id():
            raise UnauthenticatedError("Logged out while the session was being refreshed")

        self._store.merge(access_token=str(access_token))
        get_output().debug("Access token refreshed")
        return str(access_token)

    # ------------------------------------------------------------------ #
    # OAuth redirects
    # ------------------------------------------------------------------ #

    def get_oauth_login_url(self, provider_name: str, redirect_url: str) -> str:
        """Build the URL that starts an OAuth login and remember its state."""
        state = secrets.token_urlsafe(32)
        self._store.set_state(state)
        query = urlencode(
            {
                "redirect": redirect_url,
                "state": state,
                "device": self.encoded_device_info(),
            }
        )
        return f"{self._endpoints.provider(provider_name)}?{query}"

    def handle_redirect(self, fragment: str) -> RedirectFragmentResult:
        """Consume the fragment an OAuth login redirected back with.

        On success the carried credentials become the session and any earlier
        redirect error is cleared. An error parameter, a malformed credential,
        or a state that does not match the pending login is recorded and
        exposed through :meth:`auth_error`.

        Returns:
            The parsed fragment.
        """
        result = parse_redirect_fragment(fragment, self._store.get_state())
        if not result.found and result.last_error is None:
            return result

        self._store.pop_state()
        if result.last_error is not None:
            self._store.set_error(result.last_error)
        elif not result.state_valid:
            self._store.set_error(STATE_MISMATCH_ERROR)
        else:
            if result.ua is not None:
                self.set(result.ua)
            self._store.set_error(None)
        return result


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def create_default_manager(
    endpoints: Endpoints,
    http: httpx.AsyncClient,
    store: Optional[CredentialStore] = None,
    app_version: Optional[str] = None,
    clock: Callable[[], float] = time.time,
) -> AuthManager:
    """Create an :class:`AuthManager` pre-loaded with all built-in providers.

    The following aliases are registered:

    - ``anon`` -- anonymous login.
    - ``userpass`` -- email/username and password.
    - ``apiKey`` / ``api_key`` -- server or user API key.
    - ``custom`` -- externally issued JWT.
    - ``google`` / ``facebook`` -- OAuth redirect flow.
    """
    from stitchkit.providers.anonymous import AnonymousProvider
    from stitchkit.providers.api_key import APIKeyProvider
    from stitchkit.providers.custom_token import CustomTokenProvider
    from stitchkit.providers.oauth import FacebookProvider, GoogleProvider
    from stitchkit.providers.userpass import UserPassProvider

    manager = AuthManager(endpoints, http, store, app_version=app_version, clock=clock)
    manager.register_provider("anon", AnonymousProvider)
    manager.register_provider("userpass", UserPassProvider)
    manager.register_provider("apiKey", APIKeyProvider)
    manager.register_provider("api_key", APIKeyProvider)
    manager.register_provider("custom", CustomTokenProvider)
    manager.register_provider("google", GoogleProvider)
    manager.register_provider("facebook", FacebookProvider)
    return manager
