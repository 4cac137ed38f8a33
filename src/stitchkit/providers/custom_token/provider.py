"""Custom token auth provider.

Accepts a JWT minted by an external identity system that the application has
been configured to trust. The token is passed through untouched.
"""

from __future__ import annotations

from stitchkit.auth.base import AuthProvider
from stitchkit.models import Session


class CustomTokenProvider(AuthProvider):
    """Log in with an externally issued JWT."""

    provider_name = "custom-token"

    async def authenticate(self, token: str) -> Session:
        return await self.manager.login(
            self.provider_name, json_body=self.login_body(token=token)
        )

    async def link(self, token: str) -> Session:
        """Attach the identity behind *token* to the current user."""
        return await self.manager.login(
            self.provider_name, json_body=self.login_body(token=token), link=True
        )
