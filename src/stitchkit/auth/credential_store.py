"""Credential store -- the persisted half of a session.

Maps a :class:`~stitchkit.models.Session` onto a handful of keys in a
:class:`~stitchkit.auth.storage.StorageBackend`:

===================  ==================================================
Key                  Value
===================  ==================================================
``_stitch_ua``       JSON ``{"accessToken": ..., "userId": ...}``
``_stitch_rt``       refresh token
``_stitch_did``      device id (survives :meth:`clear_session`)
``_stitch_state``    pending OAuth state
``_stitch_error``    last OAuth redirect error
===================  ==================================================

Every session mutation is a single backend ``update`` performed under a
lock, so a concurrent reader sees either the old or the new session, never
a mix of both.
"""

from __future__ import annotations

import json
import threading
from typing import Optional

from stitchkit.auth.storage import MemoryStorage, StorageBackend
from stitchkit.models import Session

USER_AUTH_KEY = "_stitch_ua"
REFRESH_TOKEN_KEY = "_stitch_rt"
DEVICE_ID_KEY = "_stitch_did"
STATE_KEY = "_stitch_state"
ERROR_KEY = "_stitch_error"


class CredentialStore:
    """Read/write the session of one client.

    Args:
        backend: Where values are kept. Defaults to a fresh
            :class:`~stitchkit.auth.storage.MemoryStorage`.

    Example::

        store = CredentialStore()
        store.merge(user_id="abc", access_token="tok")
        assert store.load_session().user_id == "abc"
    """

    def __init__(self, backend: Optional[StorageBackend] = None) -> None:
        self._backend = backend if backend is not None else MemoryStorage()
        self._lock = threading.Lock()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def load_session(self) -> Session:
        """Return the stored session; missing fields are ``None``."""
        with self._lock:
            user_auth = self._user_auth()
            return Session(
                user_id=user_auth.get("userId"),
                access_token=user_auth.get("accessToken"),
                refresh_token=self._backend.get(REFRESH_TOKEN_KEY),
                device_id=self._backend.get(DEVICE_ID_KEY),
            )

    def get_user_auth(self) -> dict[str, str]:
        """Return the raw ``{"accessToken", "userId"}`` document (possibly empty)."""
        with self._lock:
            return self._user_auth()

    def get_device_id(self) -> Optional[str]:
        with self._lock:
            return self._backend.get(DEVICE_ID_KEY)

    def merge(
        self,
        *,
        user_id: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> Session:
        """Overlay the given fields on the stored session and persist it.

        Fields passed as ``None`` or empty keep their stored value.

        Returns:
            The session as stored after the merge.
        """
        with self._lock:
            user_auth = self._user_auth()
            if access_token:
                user_auth["accessToken"] = access_token
            if user_id:
                user_auth["userId"] = user_id

            changes: dict[str, Optional[str]] = {}
            if user_auth:
                changes[USER_AUTH_KEY] = json.dumps(user_auth)
            if refresh_token:
                changes[REFRESH_TOKEN_KEY] = refresh_token
            if device_id:
                changes[DEVICE_ID_KEY] = device_id
            if changes:
                self._backend.update(changes)

            return Session(
                user_id=user_auth.get("userId"),
                access_token=user_auth.get("accessToken"),
                refresh_token=refresh_token or self._backend.get(REFRESH_TOKEN_KEY),
                device_id=device_id or self._backend.get(DEVICE_ID_KEY),
            )

    def clear_session(self) -> None:
        """Forget the user and both tokens; the device id is kept."""
        with self._lock:
            self._backend.update({USER_AUTH_KEY: None, REFRESH_TOKEN_KEY: None})

    def clear_all(self) -> None:
        """Forget everything, including the device id."""
        with self._lock:
            self._backend.clear()

    # --- OAuth redirect bookkeeping ---

    def get_state(self) -> Optional[str]:
        with self._lock:
            return self._backend.get(STATE_KEY)

    def set_state(self, state: str) -> None:
        with self._lock:
            self._backend.set(STATE_KEY, state)

    def pop_state(self) -> Optional[str]:
        """Return the pending OAuth state and remove it."""
        with self._lock:
            state = self._backend.get(STATE_KEY)
            if state is not None:
                self._backend.remove(STATE_KEY)
            return state

    def get_error(self) -> Optional[str]:
        with self._lock:
            return self._backend.get(ERROR_KEY)

    def set_error(self, message: Optional[str]) -> None:
        """Record the last redirect error; ``None`` clears it."""
        with self._lock:
            self._backend.update({ERROR_KEY: message})

    def _user_auth(self) -> dict[str, str]:
        raw = self._backend.get(USER_AUTH_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str) and v}
