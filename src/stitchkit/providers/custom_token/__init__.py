"""Custom JWT login.

See Also:
    :class:`~stitchkit.providers.custom_token.provider.CustomTokenProvider`
"""

from stitchkit.providers.custom_token.provider import CustomTokenProvider

__all__ = ["CustomTokenProvider"]
