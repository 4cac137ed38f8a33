"""API key login.

See Also:
    :class:`~stitchkit.providers.api_key.provider.APIKeyProvider`
"""

from stitchkit.providers.api_key.provider import APIKeyProvider

__all__ = ["APIKeyProvider"]
