"""Abstract base class for auth providers.

An auth provider knows how to turn one kind of credential (nothing, a
username and password, an API key, ...) into a session. Each concrete
provider:

1. declares the backend ``provider_name`` its login endpoint is mounted
   under (e.g. ``"local-userpass"``), and
2. implements :meth:`~AuthProvider.authenticate`, which builds the
   provider-specific request and hands it to
   :meth:`~stitchkit.auth.manager.AuthManager.login`.

Providers are not looked up through the class hierarchy. The
:class:`~stitchkit.auth.manager.AuthManager` keeps a registry mapping short
aliases (``"anon"``, ``"userpass"``, ``"apiKey"``, ...) to provider
factories and instantiates them on demand via
:meth:`~stitchkit.auth.manager.AuthManager.provider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

from stitchkit.exceptions import ProviderError
from stitchkit.models import Session

if TYPE_CHECKING:
    from stitchkit.auth.manager import AuthManager


class AuthProvider(ABC):
    """Abstract base class for auth providers.

    Args:
        manager: The auth manager whose session this provider populates.
    """

    provider_name: str = ""
    """Backend name of the provider, used in its endpoint paths."""

    def __init__(self, manager: AuthManager) -> None:
        self.manager = manager

    @abstractmethod
    async def authenticate(self, **credentials: Any) -> Session:
        """Log in with provider-specific *credentials*.

        Returns:
            The session as stored after a successful login.

        Raises:
            AuthenticationError: If the backend rejects the credentials.
            TransportError: If the backend answers with a non-JSON error.
            RequestError: For other error responses.
        """
        ...

    async def link(self, **credentials: Any) -> Session:
        """Attach this provider's identity to the currently logged-in user.

        Providers that can link override this.

        Raises:
            ProviderError: If the provider does not support linking.
        """
        raise ProviderError(f"Provider '{self.provider_name}' does not support linking")

    def login_body(self, **fields: Any) -> dict[str, Any]:
        """Return *fields* plus the device document under ``options.device``."""
        return {**fields, "options": {"device": self.manager.device_info().to_wire()}}


ProviderFactory = Callable[["AuthManager"], AuthProvider]
"""Anything that builds a provider for a manager (usually the provider class)."""
