"""Anonymous auth provider -- a session without credentials.

The backend creates a fresh anonymous user on every login unless the request
carries a device id it has seen before. Since anonymous logins are ``GET``
requests, the device document travels base64-encoded in the ``device``
query parameter rather than in a body.
"""

from __future__ import annotations

from stitchkit.auth.base import AuthProvider
from stitchkit.models import Session


class AnonymousProvider(AuthProvider):
    """Log in as an anonymous user."""

    provider_name = "anon-user"

    async def authenticate(self) -> Session:
        return await self.manager.login(
            self.provider_name,
            method="GET",
            params={"device": self.manager.encoded_device_info()},
        )
