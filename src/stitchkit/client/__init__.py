"""Client layer -- request execution and the application-facing facade.

- :class:`~stitchkit.client.executor.RequestExecutor` -- authenticated calls
  with proactive refresh and a single refresh-and-replay on invalid sessions.
- :class:`~stitchkit.client.stitch_client.StitchClient` -- one object per
  application bundling auth, execution, and the HTTP client.
"""

from stitchkit.client.executor import RequestExecutor
from stitchkit.client.stitch_client import StitchClient

__all__ = ["RequestExecutor", "StitchClient"]
