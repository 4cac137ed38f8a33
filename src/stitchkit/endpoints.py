"""URL construction for the platform's client API.

All paths hang off one base URL (``https://stitch.mongodb.com`` unless
overridden). Session-level endpoints live directly under the client API
prefix, while everything specific to an application lives under
``/app/<app_id>``::

    <base>/api/client/v2.0/auth/session                     refresh, logout
    <base>/api/client/v2.0/auth/profile                     user profile
    <base>/api/client/v2.0/app/<app>/auth/providers         provider listing
    <base>/api/client/v2.0/app/<app>/auth/providers/<p>/... provider calls
    <base>/api/client/v2.0/app/<app>/functions/call         function calls
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

DEFAULT_BASE_URL = "https://stitch.mongodb.com"
API_PREFIX = "/api/client/v2.0"


class Endpoints:
    """Builds absolute endpoint URLs for one application.

    Args:
        app_id: The application id on the platform.
        base_url: Override for :data:`DEFAULT_BASE_URL`. An empty string
            yields host-relative URLs.

    Example::

        urls = Endpoints("testapp", base_url="https://stitch2.mongodb.com")
        urls.function_call
        # 'https://stitch2.mongodb.com/api/client/v2.0/app/testapp/functions/call'
    """

    def __init__(self, app_id: str, base_url: Optional[str] = None) -> None:
        if base_url is None:
            base_url = DEFAULT_BASE_URL
        self.app_id = app_id
        self.base_url = base_url.rstrip("/")

    @property
    def root(self) -> str:
        return f"{self.base_url}{API_PREFIX}"

    @property
    def app_root(self) -> str:
        return f"{self.root}/app/{quote(self.app_id, safe='')}"

    @property
    def session(self) -> str:
        return f"{self.root}/auth/session"

    @property
    def profile(self) -> str:
        return f"{self.root}/auth/profile"

    @property
    def providers(self) -> str:
        return f"{self.app_root}/auth/providers"

    @property
    def function_call(self) -> str:
        return f"{self.app_root}/functions/call"

    def provider(self, provider_name: str, action: str = "login") -> str:
        """URL of *action* (e.g. ``login``, ``register``, ``reset/send``) for a provider."""
        return f"{self.providers}/{quote(provider_name, safe='')}/{action}"
