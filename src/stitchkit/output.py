"""Terminal output for the stitchkit CLI and diagnostics for the library.

Two streams, two purposes:

* **stdout** carries results only: function return values, profiles,
  session records. JSON and rich output use relaxed extended JSON, so an
  object id prints as ``{"$oid": "..."}`` and can be pasted back into
  ``stitchkit call``. Plain output prints the bare hex.
* **stderr** carries everything else: status lines, warnings, errors and,
  with ``--verbose``, debug traces of logins, refreshes and replays.

Rich styling is used when stdout is a terminal; piped output is plain text.
``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` turn styling off.

Library code never prints directly. It calls :func:`get_output` (usually
only ``.debug``), and the CLI installs a configured manager at start-up.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from bson import json_util
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported output formats. ``AUTO`` resolves to ``RICH`` on a TTY."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# prefix shown in plain mode, rich markup template
_LEVELS: dict[str, tuple[str, str]] = {
    "info": ("", "{message}"),
    "success": ("", "[green]{message}[/green]"),
    "warning": ("Warning: ", "[yellow]Warning:[/yellow] {message}"),
    "error": ("Error: ", "[bold red]Error:[/bold red] {message}"),
    "suggest": ("→ ", "[dim]→ {message}[/dim]"),
    "debug": ("[debug] ", "[dim]\\[debug] {message}[/dim]"),
}


class OutputManager:
    """Renders results to stdout and diagnostics to stderr.

    Args:
        format: Desired output format. ``AUTO`` picks ``RICH`` for an
            interactive terminal and ``PLAIN`` otherwise.
        no_color: Disable colour and Rich markup.
        quiet: Drop info, success and suggestion lines.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._err_console = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Results (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Print a decoded backend value in the active format."""
        if self._format == OutputFormat.JSON:
            self.print_data(to_extended_json(data))
        elif self._format == OutputFormat.RICH and isinstance(data, (dict, list)):
            self._console.print(
                Syntax(to_extended_json(data), "json", theme="monokai", word_wrap=True)
            )
        elif self._format == OutputFormat.RICH:
            self._console.print(_scalar(data))
        else:
            for line in _plain_lines(data):
                self.print_data(line)

    def print_record(self, fields: Mapping[str, str], title: Optional[str] = None) -> None:
        """Print one record of named fields, such as the stored session.

        JSON mode emits a single object; plain mode one ``name<TAB>value``
        line per field.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(dict(fields), indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.RICH:
            table = Table(title=title, show_header=False)
            table.add_column(style="bold cyan")
            table.add_column()
            for name, value in fields.items():
                table.add_row(name, value)
            self._console.print(table)
        else:
            for name, value in fields.items():
                self.print_data(f"{name}\t{value}")

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows under *headers*.

        JSON mode emits a list of objects keyed by header; plain mode emits
        tab-separated lines with the headers first.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.RICH:
            table = Table(*headers, title=title, header_style="bold cyan")
            for row in rows:
                table.add_row(*row)
            self._console.print(table)
        else:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic("info", message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic("success", message)

    def warning(self, message: str) -> None:
        """Never suppressed."""
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        """Never suppressed."""
        self._diagnostic("error", message)

    def suggest(self, message: str) -> None:
        """A next step for the user. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._diagnostic("suggest", message)

    def debug(self, message: str) -> None:
        """Trace line, shown only with ``--verbose``."""
        if self._verbose:
            self._diagnostic("debug", message)

    def _diagnostic(self, level: str, message: str) -> None:
        prefix, markup = _LEVELS[level]
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._err_console.print(markup.format(message=message))


# ------------------------------------------------------------------ #
# Rendering helpers
# ------------------------------------------------------------------ #


def _extended_default(value: Any) -> Any:
    try:
        return json_util.default(value, json_options=json_util.RELAXED_JSON_OPTIONS)
    except (TypeError, ValueError):
        return str(value)


def to_extended_json(data: Any) -> str:
    """Serialise *data* as indented relaxed extended JSON.

    Object ids, dates and other BSON types keep their ``$``-tagged form;
    anything else that JSON cannot express is stringified.
    """
    return json.dumps(data, indent=2, ensure_ascii=False, default=_extended_default)


def _scalar(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=_extended_default)
    return str(value)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [f"{key}\t{_scalar(value)}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(_scalar(v) for v in item.values()) if isinstance(item, dict) else _scalar(item)
            for item in data
        ]
    return [_scalar(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_record(fields: Mapping[str, str], title: Optional[str] = None) -> None:
    get_output().print_record(fields, title)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
