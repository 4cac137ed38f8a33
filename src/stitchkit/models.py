"""Canonical Pydantic models shared across all stitchkit modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Session models** -- what the auth subsystem reads, writes, and hands back:
    :class:`Session`, :class:`UserAuth`, :class:`DeviceInfo`,
    :class:`AuthProviderConfig`, and :class:`RedirectFragmentResult`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`GlobalConfig`, and
    :class:`Profile`.

All models use Pydantic v2. Wire-facing models accept both the snake_case
names used in Python and the camelCase names used on the wire.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Session models ---


class Session(BaseModel):
    """The persisted authentication state of one client.

    A session is authenticated exactly when :attr:`user_id` is set. The
    :attr:`device_id` outlives logout so that the backend can recognise a
    returning installation.

    Example::

        session = Session(user_id="5899445b", access_token="eyJ...")
        assert session.is_authenticated
    """

    user_id: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    device_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        """Whether a user id is present."""
        return bool(self.user_id)


class UserAuth(BaseModel):
    """The four-part credential carried by an OAuth redirect (``_stitch_ua``)."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    user_id: str
    device_id: str


class DeviceInfo(BaseModel):
    """Client metadata attached to every provider login request.

    Serialised with camelCase keys via :meth:`to_wire`. ``deviceId`` is only
    present when an earlier session established one.
    """

    model_config = ConfigDict(populate_by_name=True)

    app_id: str = Field(alias="appId")
    app_version: str = Field(default="", alias="appVersion")
    platform: str
    platform_version: str = Field(alias="platformVersion")
    sdk_version: str = Field(alias="sdkVersion")
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase document sent to the backend."""
        return self.model_dump(by_alias=True, exclude_none=True)


class AuthProviderConfig(BaseModel):
    """One entry of the application's auth provider listing."""

    model_config = ConfigDict(extra="allow")

    type: str
    name: str
    config: Optional[dict[str, Any]] = None


class RedirectFragmentResult(BaseModel):
    """Outcome of parsing an OAuth redirect fragment.

    Produced per parse call and never persisted. The three fields are
    independent: a fragment can carry a valid state and an error at once.
    """

    model_config = ConfigDict(frozen=True)

    found: bool = False
    state_valid: bool = False
    last_error: Optional[str] = None
    ua: Optional[UserAuth] = None


# --- Configuration models ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every call in a profile."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/stitchkit/config.json``.

    Fields here have the lowest precedence and can be overridden by project
    config, environment variables, or CLI flags. See
    :func:`~stitchkit.config.resolve_config` for the full precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """Per-application profile stored as JSON under the ``profiles/`` config directory.

    Each profile names the application to talk to and, optionally, a base URL
    override. Sessions obtained through the CLI are stored per profile.

    See Also:
        :func:`~stitchkit.config.load_profile`: Deserialise a profile by name.
        :func:`~stitchkit.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    app_id: str = Field(description="Application id on the platform")
    base_url: Optional[str] = Field(
        default=None, description="Override the platform base URL"
    )
    app_version: Optional[str] = Field(
        default=None, description="Version reported in device info"
    )
    storage: str = Field(
        default="file", description="Session storage backend: file, memory"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
