"""Auth commands -- log in, log out, and inspect the session.

Provides the ``stitchkit auth`` sub-command group. Sessions are stored per
profile, so a login survives between invocations until ``auth logout``.

Typical workflow::

    stitchkit auth login --provider userpass --email me@example.com
    stitchkit auth status
    stitchkit auth logout
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from stitchkit.commands.common import read_secret, run_with_client
from stitchkit.output import error, format_response, info, print_record, print_table, success, suggest


auth_app = typer.Typer(no_args_is_help=True)

_LOGIN_PROVIDERS = ("anon", "userpass", "apiKey", "custom")


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    provider: str = typer.Option(
        "anon", "--provider", "-P", help="Provider: anon, userpass, apiKey, custom."
    ),
    email: Optional[str] = typer.Option(
        None, "--email", "-e", help="Username or email (userpass)."
    ),
    password_source: Optional[str] = typer.Option(
        None, "--password-source", help="Password source: env:VAR, file:/path, prompt."
    ),
    key_source: Optional[str] = typer.Option(
        None, "--key-source", help="API key source: env:VAR, file:/path, prompt."
    ),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", help="Custom JWT source: env:VAR, file:/path, prompt."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Discard the current session first."
    ),
) -> None:
    """Log in to the active profile's application.

    An existing session is kept unless ``--force`` is given.

    Raises:
        typer.Exit: With code 2 for an unknown provider or missing email,
            code 3 when the credentials are rejected.

    Example::

        stitchkit auth login
        stitchkit auth login -P userpass -e me@example.com --password-source env:APP_PASSWORD
        stitchkit auth login -P apiKey --key-source file:~/.app-key
    """
    if provider not in _LOGIN_PROVIDERS:
        error(f"Unknown provider '{provider}'. Choose one of: {', '.join(_LOGIN_PROVIDERS)}")
        raise typer.Exit(code=2)

    credentials: dict[str, Any] = {}
    if provider == "userpass":
        if not email:
            error("--email is required for userpass login.")
            raise typer.Exit(code=2)
        credentials = {
            "username": email,
            "password": read_secret(password_source, "Password"),
        }
    elif provider == "apiKey":
        credentials = {"key": read_secret(key_source, "API key")}
    elif provider == "custom":
        credentials = {"token": read_secret(token_source, "Token")}

    async def _login(client, profile) -> tuple[Optional[str], bool]:
        if force:
            client.auth.clear()
        elif client.authed_id():
            return client.authed_id(), False
        return await client.authenticate(provider, **credentials), True

    user_id, fresh = run_with_client(ctx, _login)
    if fresh:
        success(f"Logged in as {user_id}.")
    else:
        info(f"Already logged in as {user_id}.")
        suggest("Log in again: stitchkit auth login --force")


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """End the session of the active profile.

    Example::

        stitchkit auth logout
    """

    async def _logout(client, profile) -> bool:
        was_logged_in = client.authed_id() is not None
        await client.logout()
        return was_logged_in

    if run_with_client(ctx, _logout):
        success("Logged out.")
    else:
        info("Not logged in.")


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show the stored session without contacting the backend.

    Example::

        stitchkit auth status
    """
    from stitchkit.auth.tokens import AccessToken, MalformedTokenError

    async def _status(client, profile) -> dict[str, str]:
        session = client.auth.session()
        expires = "-"
        if session.access_token:
            try:
                expires_at = AccessToken(session.access_token).expires_at
            except MalformedTokenError:
                expires = "unreadable"
            else:
                expires = _format_expiry(expires_at)
        return {
            "Profile": profile.name,
            "App ID": profile.app_id,
            "User ID": session.user_id or "-",
            "Device ID": session.device_id or "-",
            "Refresh token": "yes" if session.refresh_token else "no",
            "Access token expires": expires,
        }

    print_record(run_with_client(ctx, _status), title="Session")


@auth_app.command("profile")
def auth_profile(ctx: typer.Context) -> None:
    """Print the logged-in user's profile.

    Example::

        stitchkit auth profile --json
    """

    async def _profile(client, profile) -> Any:
        return await client.user_profile()

    format_response(run_with_client(ctx, _profile))


@auth_app.command("providers")
def auth_providers(ctx: typer.Context) -> None:
    """List the auth providers enabled for the application.

    Example::

        stitchkit auth providers
    """

    async def _providers(client, profile) -> list[list[str]]:
        providers = await client.get_auth_providers()
        return [[p.type, p.name] for p in providers]

    rows = run_with_client(ctx, _providers)
    if not rows:
        info("No auth providers enabled.")
        return
    print_table(["Type", "Name"], rows, title="Auth Providers")


def _format_expiry(expires_at: Optional[float]) -> str:
    from datetime import datetime, timezone

    if expires_at is None:
        return "never"
    try:
        return datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return "unreadable"
