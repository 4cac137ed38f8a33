"""Username/password auth provider.

Besides logging in, the ``local-userpass`` backend provider manages the
accounts themselves: registration, email confirmation, and password resets.
Those calls are unauthenticated and do not touch the session.

Example::

    provider = manager.provider("userpass")
    await provider.register("user@example.com", "hunter22")
    await provider.email_confirm(token_id, token)
    await provider.authenticate(username="user@example.com", password="hunter22")
"""

from __future__ import annotations

from typing import Optional

from stitchkit.auth.base import AuthProvider
from stitchkit.models import Session


class UserPassProvider(AuthProvider):
    """Log in with a username (usually an email address) and password."""

    provider_name = "local-userpass"

    async def authenticate(
        self,
        username: Optional[str] = None,
        password: str = "",
        *,
        email: Optional[str] = None,
    ) -> Session:
        """Log in as *username*.

        ``email`` is accepted as an alias for *username*.

        Raises:
            ValueError: If neither *username* nor *email* is given.
            AuthenticationError: If the credentials are rejected.
        """
        return await self.manager.login(
            self.provider_name,
            json_body=self._credentials_body(username, password, email),
        )

    async def link(
        self,
        username: Optional[str] = None,
        password: str = "",
        *,
        email: Optional[str] = None,
    ) -> Session:
        """Attach a username/password identity to the current user."""
        return await self.manager.login(
            self.provider_name,
            json_body=self._credentials_body(username, password, email),
            link=True,
        )

    # --- account management ---

    async def register(self, email: str, password: str) -> None:
        """Create an account; the backend sends a confirmation email."""
        await self.manager.post_provider(
            self.provider_name, "register", {"email": email, "password": password}
        )

    async def send_email_confirm(self, email: str) -> None:
        """Resend the confirmation email for *email*."""
        await self.manager.post_provider(
            self.provider_name, "confirm/send", {"email": email}
        )

    async def email_confirm(self, token_id: str, token: str) -> None:
        """Confirm an email address with the token pair from the confirmation link."""
        await self.manager.post_provider(
            self.provider_name, "confirm", {"tokenId": token_id, "token": token}
        )

    async def send_password_reset(self, email: str) -> None:
        await self.manager.post_provider(
            self.provider_name, "reset/send", {"email": email}
        )

    async def password_reset(self, token_id: str, token: str, password: str) -> None:
        """Set a new password with the token pair from the reset link."""
        await self.manager.post_provider(
            self.provider_name,
            "reset",
            {"tokenId": token_id, "token": token, "password": password},
        )

    def _credentials_body(
        self, username: Optional[str], password: str, email: Optional[str]
    ) -> dict:
        name = username or email
        if not name:
            raise ValueError("A username or email is required")
        return self.login_body(username=name, password=password)
