"""Authentication and session management for stitchkit.

The main entry points are:

- :class:`AuthManager` -- owns the session, the provider registry, and the
  access-token lifecycle.
- :func:`create_default_manager` -- factory returning an :class:`AuthManager`
  with every built-in provider registered.
- :class:`AuthProvider` -- abstract base class for login strategies.
- :class:`CredentialStore` -- the persisted session.
- :func:`parse_redirect_fragment` -- decoder for OAuth redirect fragments.

Typical usage::

    from stitchkit.auth import create_default_manager

    manager = create_default_manager(endpoints, http)
    await manager.provider("anon").authenticate()
"""

from stitchkit.auth.base import AuthProvider
from stitchkit.auth.credential_store import CredentialStore
from stitchkit.auth.manager import AuthManager, create_default_manager
from stitchkit.auth.redirect import parse_redirect_fragment
from stitchkit.auth.storage import FileStorage, MemoryStorage, StorageBackend, create_storage
from stitchkit.auth.tokens import AccessToken

__all__ = [
    "AccessToken",
    "AuthManager",
    "AuthProvider",
    "CredentialStore",
    "FileStorage",
    "MemoryStorage",
    "StorageBackend",
    "create_default_manager",
    "create_storage",
    "parse_redirect_fragment",
]
