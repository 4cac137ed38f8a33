"""Extended-JSON codec used for function-call bodies and results.

Function arguments and results travel as extended JSON, where richer types
such as object ids are spelled with sentinel keys (``{"$oid": "..."}``).
The codec is a narrow collaborator: anything that implements
:class:`ExtendedJSONCodec` can be handed to the request executor. The
default :class:`BSONCodec` delegates to :mod:`bson.json_util` from pymongo.

Example::

    from bson import ObjectId

    codec = BSONCodec()
    wire = codec.encode({"x": ObjectId("5899445b275d3ebe8f2ab8c0")})
    assert codec.decode(wire)["x"] == ObjectId("5899445b275d3ebe8f2ab8c0")
"""

from __future__ import annotations

from typing import Any, Protocol

from bson import json_util
from bson.json_util import JSONOptions


class ExtendedJSONCodec(Protocol):
    """The two operations the executor needs from an extended-JSON library."""

    def encode(self, value: Any) -> str: ...

    def decode(self, text: str) -> Any: ...


class BSONCodec:
    """Extended-JSON codec backed by :mod:`bson.json_util`.

    Args:
        json_options: Serialisation options. Relaxed mode keeps plain
            numbers as JSON numbers while still tagging object ids and dates.
    """

    def __init__(self, json_options: JSONOptions = json_util.RELAXED_JSON_OPTIONS) -> None:
        self._json_options = json_options

    def encode(self, value: Any) -> str:
        return json_util.dumps(value, json_options=self._json_options)

    def decode(self, text: str) -> Any:
        return json_util.loads(text, json_options=self._json_options)
