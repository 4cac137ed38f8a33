"""End-to-end tests for the stitchkit CLI.

Each test runs real commands through Typer's CliRunner against an isolated
config directory. The HTTP client the commands create is replaced by one
backed by :class:`httpx.MockTransport`, so the full path from argument
parsing through the client, the auth manager and the file-backed session
store is exercised.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from typer.testing import CliRunner

from stitchkit.app import app, register_commands
from stitchkit.config import get_sessions_dir, load_global_config, load_profile
from stitchkit.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE

HEX_ID = "5899445b275d3ebe8f2ab8c0"

BASE = "https://stitch.mongodb.com/api/client/v2.0"
APP = f"{BASE}/app/testapp"

register_commands()


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------


class _Backend:
    """Minimal backend answering the routes the CLI uses."""

    def __init__(self, access_token: str) -> None:
        self.access_token = access_token
        self.requests: list[httpx.Request] = []
        self.function_result: Any = 3
        self.login_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        route = (request.method, url)

        if route in (
            ("GET", f"{APP}/auth/providers/anon-user/login"),
            ("POST", f"{APP}/auth/providers/local-userpass/login"),
        ):
            if self.login_status != 200:
                return httpx.Response(
                    self.login_status,
                    json={"error": "invalid username/password", "error_code": "AuthError"},
                )
            return httpx.Response(
                200,
                json={
                    "user_id": HEX_ID,
                    "device_id": "dev-1",
                    "access_token": self.access_token,
                    "refresh_token": "test-refresh-token",
                },
            )
        if route == ("DELETE", f"{BASE}/auth/session"):
            return httpx.Response(204)
        if route == ("GET", f"{APP}/auth/providers"):
            return httpx.Response(
                200,
                json=[
                    {"type": "anon-user", "name": "anon-user"},
                    {"type": "local-userpass", "name": "local-userpass"},
                ],
            )
        if route == ("GET", f"{BASE}/auth/profile"):
            return httpx.Response(200, json={"user_id": HEX_ID, "type": "normal"})
        if route == ("POST", f"{APP}/functions/call"):
            return httpx.Response(200, json=self.function_result)
        raise AssertionError(f"Unexpected request: {route}")

    def last(self, method: str, suffix: str) -> httpx.Request:
        for request in reversed(self.requests):
            if request.method == method and request.url.path.endswith(suffix):
                return request
        raise AssertionError(f"No {method} request ending in {suffix}")


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch, fresh_token: str) -> _Backend:
    fake = _Backend(fresh_token)

    def _client(profile: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(fake))

    monkeypatch.setattr("stitchkit.commands.common.create_http_client", _client)
    return fake


@pytest.fixture
def invoke(cli_runner: CliRunner, isolated_config: Path) -> Callable[..., Any]:
    def _invoke(*args: str):
        return cli_runner.invoke(app, list(args))

    return _invoke


@pytest.fixture
def profile(invoke: Callable[..., Any]) -> str:
    result = invoke("config", "init", "--name", "dev", "--app-id", "testapp")
    assert result.exit_code == 0, result.output
    return "dev"


# ---------------------------------------------------------------------------
# Root command
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, invoke: Callable[..., Any]) -> None:
        from stitchkit import __version__

        result = invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, invoke: Callable[..., Any]) -> None:
        result = invoke("--help")
        assert result.exit_code == 0
        for name in ("config", "auth", "call"):
            assert name in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_init_first_profile_becomes_default(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "init", "-n", "dev", "-a", "testapp")
        assert result.exit_code == 0, result.output
        assert load_profile("dev").app_id == "testapp"
        assert load_global_config().default_profile == "dev"

    def test_init_second_profile_keeps_default(self, invoke: Callable[..., Any], profile: str) -> None:
        result = invoke(
            "config", "init", "-n", "local", "-a", "other", "--base-url", "http://localhost:9090"
        )
        assert result.exit_code == 0, result.output
        assert load_global_config().default_profile == "dev"
        assert load_profile("local").base_url == "http://localhost:9090"

    def test_init_rejects_unknown_storage(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "init", "-n", "dev", "-a", "testapp", "--storage", "redis")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "Unknown storage" in result.output

    def test_profiles_marks_default(self, invoke: Callable[..., Any], profile: str) -> None:
        invoke("config", "init", "-n", "prod", "-a", "prodapp")
        result = invoke("--json", "config", "profiles")
        assert result.exit_code == 0, result.output
        records = json.loads(result.stdout)
        assert {"Profile": "dev", "App ID": "testapp", "Base URL": "-", "Default": "*"} in records
        assert {"Profile": "prod", "App ID": "prodapp", "Base URL": "-", "Default": ""} in records

    def test_profiles_empty(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "profiles")
        assert result.exit_code == 0
        assert "No profiles configured" in result.output

    def test_set_nested_key(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "set", "output.format", "json")
        assert result.exit_code == 0, result.output
        assert load_global_config().output.format == "json"

    def test_set_bool_coercion(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "set", "auto_select_single_profile", "false")
        assert result.exit_code == 0, result.output
        assert load_global_config().auto_select_single_profile is False

    def test_set_unknown_key(self, invoke: Callable[..., Any]) -> None:
        result = invoke("config", "set", "nope", "1")
        assert result.exit_code == EXIT_INVALID_USAGE


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


class TestAuthCommands:
    def test_anonymous_login_persists_session(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        result = invoke("auth", "login")
        assert result.exit_code == 0, result.output
        assert f"Logged in as {HEX_ID}" in result.output

        stored = json.loads((get_sessions_dir() / "dev.json").read_text())
        assert stored["_stitch_rt"] == "test-refresh-token"
        assert stored["_stitch_did"] == "dev-1"
        assert json.loads(stored["_stitch_ua"])["userId"] == HEX_ID

    def test_second_login_reuses_session(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        invoke("auth", "login")
        result = invoke("auth", "login")
        assert result.exit_code == 0, result.output
        assert f"Already logged in as {HEX_ID}" in result.output
        logins = [r for r in backend.requests if r.url.path.endswith("/login")]
        assert len(logins) == 1

    def test_force_login_discards_session(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        invoke("auth", "login")
        result = invoke("auth", "login", "--force")
        assert result.exit_code == 0, result.output
        logins = [r for r in backend.requests if r.url.path.endswith("/login")]
        assert len(logins) == 2

    def test_userpass_login_reads_env_password(
        self,
        invoke: Callable[..., Any],
        profile: str,
        backend: _Backend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("APP_PASSWORD", "s3cret")
        result = invoke(
            "auth", "login", "-P", "userpass", "-e", "me@example.com",
            "--password-source", "env:APP_PASSWORD",
        )
        assert result.exit_code == 0, result.output
        body = json.loads(backend.last("POST", "/local-userpass/login").content)
        assert body["username"] == "me@example.com"
        assert body["password"] == "s3cret"
        assert body["options"]["device"]["appId"] == "testapp"

    def test_userpass_login_rejected(
        self,
        invoke: Callable[..., Any],
        profile: str,
        backend: _Backend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        backend.login_status = 401
        monkeypatch.setenv("APP_PASSWORD", "wrong")
        result = invoke(
            "auth", "login", "-P", "userpass", "-e", "me@example.com",
            "--password-source", "env:APP_PASSWORD",
        )
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "invalid username/password" in result.output

    def test_userpass_requires_email(self, invoke: Callable[..., Any], profile: str) -> None:
        result = invoke("auth", "login", "-P", "userpass")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "--email" in result.output

    def test_unknown_provider(self, invoke: Callable[..., Any], profile: str) -> None:
        result = invoke("auth", "login", "-P", "ldap")
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_missing_password_env(
        self, invoke: Callable[..., Any], profile: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("APP_PASSWORD", raising=False)
        result = invoke(
            "auth", "login", "-P", "userpass", "-e", "me@example.com",
            "--password-source", "env:APP_PASSWORD",
        )
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert "APP_PASSWORD" in result.output

    def test_status(self, invoke: Callable[..., Any], profile: str, backend: _Backend) -> None:
        invoke("auth", "login")
        result = invoke("--json", "auth", "status")
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows["User ID"] == HEX_ID
        assert rows["Device ID"] == "dev-1"
        assert rows["Refresh token"] == "yes"
        assert rows["Access token expires"] not in ("-", "never", "unreadable")

    @pytest.mark.parametrize("exp", ["soon", [1], {}, 10**20])
    def test_status_with_unreadable_expiry(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend, make_token, exp: object
    ) -> None:
        backend.access_token = make_token(None, exp=exp)
        invoke("auth", "login")
        result = invoke("--json", "auth", "status")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["Access token expires"] == "unreadable"

    def test_status_logged_out(self, invoke: Callable[..., Any], profile: str) -> None:
        result = invoke("--json", "auth", "status")
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows["User ID"] == "-"
        assert rows["Refresh token"] == "no"

    def test_logout(self, invoke: Callable[..., Any], profile: str, backend: _Backend) -> None:
        invoke("auth", "login")
        result = invoke("auth", "logout")
        assert result.exit_code == 0, result.output
        assert "Logged out." in result.output
        delete = backend.last("DELETE", "/auth/session")
        assert delete.headers["Authorization"] == "Bearer test-refresh-token"

        result = invoke("auth", "logout")
        assert "Not logged in." in result.output

    def test_profile(self, invoke: Callable[..., Any], profile: str, backend: _Backend) -> None:
        invoke("auth", "login")
        result = invoke("--json", "auth", "profile")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"user_id": HEX_ID, "type": "normal"}

    def test_profile_requires_login(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        result = invoke("auth", "profile")
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert backend.requests == []

    def test_providers(self, invoke: Callable[..., Any], profile: str, backend: _Backend) -> None:
        result = invoke("--json", "auth", "providers")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"Type": "anon-user", "Name": "anon-user"},
            {"Type": "local-userpass", "Name": "local-userpass"},
        ]
        assert "Authorization" not in backend.requests[0].headers

    def test_no_profile(self, invoke: Callable[..., Any], backend: _Backend) -> None:
        result = invoke("auth", "login")
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert "No profile selected" in result.output
        assert backend.requests == []


# ---------------------------------------------------------------------------
# call
# ---------------------------------------------------------------------------


class TestCallCommand:
    def test_call_sends_name_and_arguments(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        invoke("auth", "login")
        result = invoke("--json", "call", "sum", "1", "2")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == 3

        request = backend.last("POST", "/functions/call")
        assert json.loads(request.content) == {"name": "sum", "arguments": [1, 2]}
        assert request.headers["Authorization"].startswith("Bearer ")

    def test_call_object_id_argument(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        backend.function_result = {"_id": {"$oid": HEX_ID}}
        invoke("auth", "login")
        result = invoke("--json", "call", "findOne", json.dumps({"$oid": HEX_ID}))
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"_id": {"$oid": HEX_ID}}

        body = json.loads(backend.last("POST", "/functions/call").content)
        assert body["arguments"] == [{"$oid": HEX_ID}]

    def test_call_plain_string_argument(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        invoke("auth", "login")
        result = invoke("call", "greet", "world")
        assert result.exit_code == 0, result.output
        body = json.loads(backend.last("POST", "/functions/call").content)
        assert body["arguments"] == ["world"]

    def test_call_service_action(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        invoke("auth", "login")
        result = invoke("call", "send", "--service", "sms", '"hello"')
        assert result.exit_code == 0, result.output
        body = json.loads(backend.last("POST", "/functions/call").content)
        assert body == {"name": "send", "arguments": ["hello"], "service": "sms"}

    def test_call_requires_login(
        self, invoke: Callable[..., Any], profile: str, backend: _Backend
    ) -> None:
        result = invoke("call", "sum", "1", "2")
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "Must authenticate first" in result.output
        assert backend.requests == []


# ---------------------------------------------------------------------------
# Top-level error reporting
# ---------------------------------------------------------------------------


class TestErrorReporting:
    def test_library_error_uses_its_exit_code(
        self, isolated_config: Path, quiet_output, capsys
    ) -> None:
        from stitchkit.app import _report
        from stitchkit.exceptions import SessionExpiredError

        assert _report(SessionExpiredError("log in again")) == EXIT_AUTH_FAILURE
        assert "log in again" in capsys.readouterr().err

    def test_network_error(self, isolated_config: Path, quiet_output) -> None:
        from stitchkit.app import _report
        from stitchkit.exit_codes import EXIT_CONNECTION_ERROR

        assert _report(httpx.ConnectError("refused")) == EXIT_CONNECTION_ERROR

    def test_unexpected_error_writes_crash_log(
        self, isolated_config: Path, quiet_output, capsys
    ) -> None:
        from stitchkit.app import _report

        try:
            raise RuntimeError("kaboom")
        except RuntimeError as exc:
            code = _report(exc)

        assert code == EXIT_GENERIC_FAILURE
        logs = list((isolated_config / "data" / "stitchkit" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: kaboom" in logs[0].read_text()
        assert str(logs[0]) in capsys.readouterr().err
