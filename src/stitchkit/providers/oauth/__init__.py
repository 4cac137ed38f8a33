"""OAuth redirect login (Google, Facebook).

See Also:
    :class:`~stitchkit.providers.oauth.provider.OAuthRedirectProvider`
"""

from stitchkit.providers.oauth.provider import (
    FacebookProvider,
    GoogleProvider,
    OAuthRedirectProvider,
)

__all__ = ["FacebookProvider", "GoogleProvider", "OAuthRedirectProvider"]
