"""High-level client -- one object per application.

:class:`StitchClient` wires the auth manager, the request executor, and an
HTTP client together and exposes the operations an application needs:
logging in and out, calling functions, and reading the user profile.

Example::

    async with StitchClient("my-app") as client:
        await client.login("user@example.com", "secret")
        total = await client.execute_function("sum", 1, 2)
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from stitchkit.auth.credential_store import CredentialStore
from stitchkit.auth.manager import AuthManager, create_default_manager
from stitchkit.auth.storage import StorageBackend
from stitchkit.client.executor import RequestExecutor
from stitchkit.codec import ExtendedJSONCodec
from stitchkit.endpoints import Endpoints
from stitchkit.models import AuthProviderConfig, RedirectFragmentResult
from stitchkit.output import get_output


class StitchClient:
    """Client for one application on the platform.

    Args:
        app_id: The application id.
        base_url: Override for the platform base URL.
        storage: Where the session is kept. Defaults to process memory;
            pass a :class:`~stitchkit.auth.storage.FileStorage` to keep the
            session between runs.
        http_client: HTTP client to use. A client passed in is left open by
            :meth:`aclose`; one created here is closed.
        codec: Extended-JSON codec for function calls.
        app_version: Application version reported in device info.
        timeout: Request timeout in seconds for a client created here.
        verify_ssl: Verify certificates for a client created here.
    """

    def __init__(
        self,
        app_id: str,
        base_url: Optional[str] = None,
        *,
        storage: Optional[StorageBackend] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        codec: Optional[ExtendedJSONCodec] = None,
        app_version: Optional[str] = None,
        timeout: float = 30,
        verify_ssl: bool = True,
    ) -> None:
        self._owns_http = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=timeout, verify=verify_ssl)
        self._http = http_client
        self._endpoints = Endpoints(app_id, base_url)
        self._auth = create_default_manager(
            self._endpoints,
            self._http,
            CredentialStore(storage),
            app_version=app_version,
        )
        self._executor = RequestExecutor(self._auth, self._endpoints, self._http, codec)

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> StitchClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def auth(self) -> AuthManager:
        return self._auth

    @property
    def endpoints(self) -> Endpoints:
        return self._endpoints

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    # ------------------------------------------------------------------ #
    # Authentication
    # ------------------------------------------------------------------ #

    async def login(
        self, email: Optional[str] = None, password: Optional[str] = None
    ) -> Optional[str]:
        """Log in with email and password, or anonymously when either is missing.

        Returns:
            The user id.
        """
        if email is None or password is None:
            return await self.authenticate("anon")
        return await self.authenticate("userpass", username=email, password=password)

    async def authenticate(self, provider: str, *args: Any, **options: Any) -> Optional[str]:
        """Log in through the provider registered as *provider*.

        An existing session is reused: when a user is already logged in no
        request is made. Call :meth:`logout` first to switch users.

        Returns:
            The user id.

        Raises:
            ProviderError: If *provider* is not registered.
            AuthenticationError: If the credentials are rejected.
        """
        authed = self._auth.authed_id()
        if authed:
            get_output().debug(f"Reusing session for {authed}")
            return authed
        session = await self._auth.provider(provider).authenticate(*args, **options)
        return session.user_id

    async def link_with_provider(self, provider: str, *args: Any, **options: Any) -> Optional[str]:
        """Attach another identity to the logged-in user.

        Raises:
            UnauthenticatedError: If nobody is logged in.
        """
        session = await self._auth.provider(provider).link(*args, **options)
        return session.user_id

    async def logout(self) -> None:
        """End the session. The device id is kept."""
        await self._auth.logout()

    def authed_id(self) -> Optional[str]:
        return self._auth.authed_id()

    def auth_error(self) -> Optional[str]:
        return self._auth.auth_error()

    def get_oauth_login_url(self, provider: str, redirect_url: str) -> str:
        """Login URL for an OAuth provider alias such as ``"google"``."""
        oauth_provider = self._auth.provider(provider)
        return self._auth.get_oauth_login_url(oauth_provider.provider_name, redirect_url)

    def handle_redirect(self, fragment: str) -> RedirectFragmentResult:
        return self._auth.handle_redirect(fragment)

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    async def user_profile(self) -> Any:
        """Return the logged-in user's profile document."""
        return await self._executor.get_json(self._endpoints.profile)

    async def get_auth_providers(self) -> list[AuthProviderConfig]:
        """List the auth providers enabled for the application."""
        data = await self._executor.get_json(self._endpoints.providers, authenticated=False)
        return [AuthProviderConfig.model_validate(item) for item in data or []]

    async def execute_function(self, name: str, *args: Any) -> Any:
        """Call the backend function *name* with *args*."""
        return await self._executor.call(name, *args)

    async def execute_service_function(self, service: str, action: str, *args: Any) -> Any:
        """Call *action* on the named *service*."""
        return await self._executor.call(action, *args, service=service)
