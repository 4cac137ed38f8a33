"""Typer application and CLI entry point for stitchkit.

This module builds the top-level Typer application and registers the
built-in sub-commands (``config``, ``auth``, ``call``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. Library errors exit with their own exit code,
network failures with :data:`~stitchkit.exit_codes.EXIT_CONNECTION_ERROR`,
and anything else is written to a crash log under the data directory.

See Also:
    :mod:`stitchkit.config`: Profile and global configuration resolution.
    :mod:`stitchkit.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import httpx
import typer

from stitchkit import __version__
from stitchkit.exit_codes import EXIT_CONNECTION_ERROR, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="stitchkit",
    help="Log in to and call functions of a backend-as-a-service application.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"stitchkit {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the profile's base URL."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~stitchkit.output.OutputManager` from CLI
    flags and stores the profile selection in ``ctx.obj`` for sub-commands.
    """
    from stitchkit.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["base_url"] = base_url
    ctx.obj["verbose"] = verbose


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (idempotent)."""
    if getattr(app, "_stitchkit_registered", False):
        return
    from stitchkit.commands.auth import auth_app
    from stitchkit.commands.config import config_app
    from stitchkit.commands.functions import call_command

    app.add_typer(config_app, name="config", help="Profiles and global settings.")
    app.add_typer(auth_app, name="auth", help="Log in, log out, inspect the session.")
    app.command("call")(call_command)
    app._stitchkit_registered = True  # type: ignore[attr-defined]


def _setup_signal_handlers() -> None:
    """Exit with 130 on Ctrl-C instead of printing a traceback."""

    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: BaseException) -> Path:
    """Save the traceback of *exc* under ``<data_dir>/logs`` and return the file."""
    from stitchkit.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    header = f"stitchkit {__version__}\nargv: {' '.join(sys.argv)}\n\n"
    body = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log_path.write_text(header + body, encoding="utf-8")
    return log_path


def _report(exc: Exception) -> int:
    """Print *exc* for the user and return the process exit code."""
    from stitchkit.exceptions import StitchError
    from stitchkit.output import error

    if isinstance(exc, StitchError):
        error(str(exc))
        return exc.exit_code
    if isinstance(exc, httpx.HTTPError):
        error(f"Connection failed: {exc}")
        return EXIT_CONNECTION_ERROR
    error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
    return EXIT_GENERIC_FAILURE


def main() -> None:
    """Console-script entry point.

    Raises:
        SystemExit: Always, with the command's exit code.
    """
    _setup_signal_handlers()
    register_commands()
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        sys.exit(_report(exc))
