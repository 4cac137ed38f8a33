"""API key auth provider.

Server keys and user keys share the same backend provider. The key is sent
once in the login body; subsequent requests use the returned access token.
"""

from __future__ import annotations

from stitchkit.auth.base import AuthProvider
from stitchkit.models import Session


class APIKeyProvider(AuthProvider):
    """Log in with an application or user API key."""

    provider_name = "api-key"

    async def authenticate(self, key: str) -> Session:
        """Exchange *key* for a session.

        Raises:
            AuthenticationError: If the backend does not accept the key.
        """
        return await self.manager.login(
            self.provider_name, json_body=self.login_body(key=key)
        )
