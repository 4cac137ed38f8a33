"""Anonymous login.

See Also:
    :class:`~stitchkit.providers.anonymous.provider.AnonymousProvider`
"""

from stitchkit.providers.anonymous.provider import AnonymousProvider

__all__ = ["AnonymousProvider"]
