"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~stitchkit.exceptions.StitchError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login apart from
a network outage without parsing stderr.

Example::

    $ stitchkit call sum 1 2
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no session, or the session expired
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an unknown provider."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed, or no valid session is available."""

EXIT_REQUEST_ERROR = 5
"""The backend answered with an error response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
