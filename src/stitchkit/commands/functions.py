"""Call command -- invoke a backend function.

Arguments are parsed as extended JSON, so ``'{"$oid": "5899445b275d3ebe8f2ab8c0"}'``
is sent as an object id. Anything that is not valid JSON is passed as a
plain string.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from stitchkit.codec import BSONCodec
from stitchkit.commands.common import run_with_client
from stitchkit.output import format_response


def call_command(
    ctx: typer.Context,
    function: str = typer.Argument(help="Function name (or action name with --service)."),
    args: Optional[list[str]] = typer.Argument(
        None, help="Arguments, each as (extended) JSON."
    ),
    service: Optional[str] = typer.Option(
        None, "--service", "-s", help="Service the action belongs to."
    ),
) -> None:
    """Call a function and print its result.

    Example::

        stitchkit call sum 1 2
        stitchkit call findOne '{"_id": {"$oid": "5899445b275d3ebe8f2ab8c0"}}'
        stitchkit call send --service sms '"+15555550100"' '"hello"'
    """
    codec = BSONCodec()
    arguments = [_parse_argument(codec, raw) for raw in args or []]

    async def _call(client, profile) -> Any:
        if service is not None:
            return await client.execute_service_function(service, function, *arguments)
        return await client.execute_function(function, *arguments)

    format_response(run_with_client(ctx, _call))


def _parse_argument(codec: BSONCodec, raw: str) -> Any:
    try:
        return codec.decode(raw)
    except ValueError:
        return raw
