"""OAuth redirect providers.

An OAuth login happens outside the client: the user's browser is sent to
:meth:`OAuthRedirectProvider.login_url`, the platform completes the exchange
with the identity provider, and the browser is redirected back with the
resulting credentials in the URL fragment. :meth:`authenticate` consumes that
fragment.

Flow::

    provider = manager.provider("google")
    url = provider.login_url("https://app.example.com/callback")
    # ... open url in a browser, capture the redirect ...
    session = await provider.authenticate(fragment=redirected_url_fragment)
"""

from __future__ import annotations

from stitchkit.auth.base import AuthProvider
from stitchkit.exceptions import RedirectError
from stitchkit.models import Session


class OAuthRedirectProvider(AuthProvider):
    """Base class for providers that log in through a browser redirect."""

    def login_url(self, redirect_url: str) -> str:
        """URL to send the browser to; the platform redirects to *redirect_url*."""
        return self.manager.get_oauth_login_url(self.provider_name, redirect_url)

    async def authenticate(self, fragment: str) -> Session:
        """Adopt the session carried by a redirect *fragment*.

        Raises:
            RedirectError: If the fragment carries no credentials, reports an
                error, or answers a login this client did not start.
        """
        result = self.manager.handle_redirect(fragment)
        if not result.found:
            raise RedirectError("Redirect carried no login result")
        error = self.manager.auth_error()
        if error:
            raise RedirectError(error)
        if result.ua is None:
            raise RedirectError("Redirect carried no user credentials")
        return self.manager.session()


class GoogleProvider(OAuthRedirectProvider):
    provider_name = "oauth2-google"


class FacebookProvider(OAuthRedirectProvider):
    provider_name = "oauth2-facebook"
