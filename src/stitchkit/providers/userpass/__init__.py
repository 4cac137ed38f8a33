"""Username/password login and account management.

See Also:
    :class:`~stitchkit.providers.userpass.provider.UserPassProvider`
"""

from stitchkit.providers.userpass.provider import UserPassProvider

__all__ = ["UserPassProvider"]
