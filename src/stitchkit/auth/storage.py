"""Key-value persistence backends for session credentials.

The credential store does not care where its values live; it talks to a
:class:`StorageBackend`. Two backends ship with stitchkit:

- :class:`MemoryStorage` -- a plain dict, lost when the process exits.
- :class:`FileStorage` -- a JSON document under
  ``~/.local/share/stitchkit/sessions/<namespace>.json`` (XDG), rewritten
  atomically with ``0o600`` permissions on every mutation.

:func:`create_storage` picks a backend by name and falls back to memory when
no durable location is available, so a read-only home directory degrades to
a per-process session instead of an error.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from stitchkit.config import atomic_write, get_sessions_dir
from stitchkit.exceptions import ConfigError
from stitchkit.output import get_output


class StorageBackend(ABC):
    """Abstract string-to-string store.

    :meth:`update` applies several changes as one write; ``None`` values
    remove their key.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def update(self, values: Mapping[str, Optional[str]]) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def remove(self, key: str) -> None:
        self.update({key: None})


class MemoryStorage(StorageBackend):
    """Process-local storage backed by a dict."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def update(self, values: Mapping[str, Optional[str]]) -> None:
        _apply(self._data, values)

    def clear(self) -> None:
        self._data.clear()


class FileStorage(StorageBackend):
    """Durable storage in a single JSON file.

    The whole document is rewritten on each mutation via
    :func:`~stitchkit.config.atomic_write`, so readers never observe a
    half-applied :meth:`update`. A missing or corrupted file starts empty.

    Args:
        path: Location of the JSON document.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data = self._read()

    @property
    def path(self) -> Path:
        """The filesystem path of the backing document."""
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def update(self, values: Mapping[str, Optional[str]]) -> None:
        data = dict(self._data)
        _apply(data, values)
        self._write(data)
        self._data = data

    def clear(self) -> None:
        if self._path.is_file():
            self._path.unlink()
        self._data = {}

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: dict[str, str]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)


def _apply(target: dict[str, str], values: Mapping[str, Optional[str]]) -> None:
    for key, value in values.items():
        if value is None:
            target.pop(key, None)
        else:
            target[key] = value


def create_storage(kind: str, namespace: str) -> StorageBackend:
    """Build the storage backend named *kind* for *namespace*.

    Args:
        kind: ``"file"`` or ``"memory"``.
        namespace: Distinguishes sessions of different profiles or apps;
            used as the file stem for file storage.

    Returns:
        The requested backend, or a :class:`MemoryStorage` when *kind* is
        ``"file"`` but the sessions directory cannot be created or written.

    Raises:
        ConfigError: If *kind* is not a known backend name.
    """
    if kind == "memory":
        return MemoryStorage()
    if kind != "file":
        raise ConfigError(f"Unknown session storage '{kind}': expected 'file' or 'memory'")

    try:
        directory = get_sessions_dir()
    except OSError as exc:
        get_output().debug(f"No durable session storage ({exc}); keeping session in memory")
        return MemoryStorage()
    if not os.access(directory, os.W_OK):
        get_output().debug(f"Session directory {directory} is read-only; keeping session in memory")
        return MemoryStorage()
    return FileStorage(directory / f"{namespace}.json")
