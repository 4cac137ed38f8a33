"""Shared plumbing for commands that talk to the backend.

Commands are synchronous typer callbacks; the client is async. Each
backend-facing command hands an ``async`` operation to
:func:`run_with_client`, which resolves the active profile, opens a
:class:`~stitchkit.client.StitchClient` whose session is persisted for that
profile, runs the operation, and turns library errors into exit codes.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
import typer

from stitchkit.exceptions import ConfigError, StitchError
from stitchkit.exit_codes import EXIT_CONNECTION_ERROR
from stitchkit.models import Profile
from stitchkit.output import debug, error, suggest

T = TypeVar("T")


def create_http_client(profile: Profile) -> httpx.AsyncClient:
    """Build the HTTP client for *profile*'s request settings."""
    return httpx.AsyncClient(
        timeout=profile.request.timeout,
        verify=profile.request.verify_ssl,
    )


def active_profile(ctx: typer.Context) -> Profile:
    """Resolve the profile selected by flags, environment, or config.

    Raises:
        ConfigError: If no profile can be resolved.
    """
    from stitchkit.config import resolve_config

    obj = ctx.obj or {}
    _, profile = resolve_config(
        cli_profile=obj.get("profile"),
        cli_base_url=obj.get("base_url"),
    )
    if profile is None:
        raise ConfigError("No profile selected")
    return profile


def run_with_client(
    ctx: typer.Context,
    operation: Callable[..., Awaitable[T]],
) -> T:
    """Run ``operation(client, profile)`` against the active profile.

    Raises:
        typer.Exit: With the error's exit code when the operation fails.
    """
    from stitchkit.auth.storage import create_storage
    from stitchkit.client import StitchClient

    async def _run(profile: Profile) -> T:
        async with create_http_client(profile) as http:
            client = StitchClient(
                profile.app_id,
                profile.base_url,
                storage=create_storage(profile.storage, profile.name),
                http_client=http,
                app_version=profile.app_version,
            )
            async with client:
                return await operation(client, profile)

    try:
        profile = active_profile(ctx)
        debug(f"Using profile {profile.name} (app {profile.app_id})")
        return asyncio.run(_run(profile))
    except ConfigError as exc:
        error(str(exc))
        suggest("Create a profile: stitchkit config init --name <name> --app-id <app>")
        raise typer.Exit(code=exc.exit_code) from None
    except StitchError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except httpx.HTTPError as exc:
        error(f"Connection failed: {exc}")
        raise typer.Exit(code=EXIT_CONNECTION_ERROR) from None


def read_secret(source: Optional[str], label: str) -> str:
    """Resolve a secret from an ``env:``/``file:``/``prompt`` source.

    ``prompt`` asks through typer with hidden input so it also works under a
    test runner.

    Raises:
        typer.Exit: With the config error's exit code when the source is
            unusable.
    """
    from stitchkit.config import resolve_credential

    if source is None or source == "prompt":
        return typer.prompt(label, hide_input=True)
    try:
        return resolve_credential(source)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
