"""stitchkit -- client SDK and CLI for a backend-as-a-service platform.

The package authenticates against an application hosted on the platform,
keeps the resulting session on disk, and invokes server-side functions over
HTTPS. Access tokens are renewed transparently, both ahead of expiry and
after the server rejects a session.

Typical usage::

    from stitchkit.client import StitchClient

    async with StitchClient("my-app-id") as client:
        await client.login("user@example.com", "secret")
        result = await client.execute_function("sum", 1, 2)

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and profile management.
    codec: Extended-JSON codec used for request and response bodies.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
