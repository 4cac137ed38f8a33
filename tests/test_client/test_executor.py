"""Tests for the request executor and its refresh-and-replay protocol."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest
from bson import ObjectId

from stitchkit.auth.credential_store import CredentialStore
from stitchkit.auth.manager import create_default_manager
from stitchkit.client.executor import RequestExecutor
from stitchkit.endpoints import Endpoints
from stitchkit.exceptions import (
    RequestError,
    SessionExpiredError,
    TransportError,
    UnauthenticatedError,
)

HEX_ID = "5899445b275d3ebe8f2ab8c0"
BASE = "https://stitch.mongodb.com/api/client/v2.0"
SESSION_URL = f"{BASE}/auth/session"
FUNCTION_CALL_URL = f"{BASE}/app/testapp/functions/call"

INVALID_SESSION = {"error": "invalid session", "error_code": "InvalidSession"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=data)


def _make_executor(handler: Callable[[httpx.Request], Any]) -> RequestExecutor:
    endpoints = Endpoints("testapp")
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    manager = create_default_manager(endpoints, http, CredentialStore())
    return RequestExecutor(manager, endpoints, http)


def _log_in(executor: RequestExecutor, access_token: str, refresh_token: str = "rt") -> None:
    executor.auth.set(
        {"user_id": HEX_ID, "access_token": access_token, "refresh_token": refresh_token}
    )


class _Backend:
    """Fake backend: function calls succeed only with the current access token."""

    def __init__(self, current_token: str = "at-1", renewed_token: str = "at-2") -> None:
        self.current_token = current_token
        self.renewed_token = renewed_token
        self.function_calls: list[httpx.Request] = []
        self.refresh_calls: list[httpx.Request] = []
        self.refresh_fails = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == SESSION_URL and request.method == "POST":
            self.refresh_calls.append(request)
            if self.refresh_fails:
                return _json({"error": "refresh token expired", "error_code": "InvalidSession"}, 401)
            self.current_token = self.renewed_token
            return _json({"access_token": self.renewed_token})
        if url == FUNCTION_CALL_URL:
            self.function_calls.append(request)
            if request.headers.get("Authorization") != f"Bearer {self.current_token}":
                return _json(INVALID_SESSION, 401)
            return _json({"x": 1})
        raise AssertionError(f"Unexpected request: {request.method} {url}")


# ---------------------------------------------------------------------------
# Authentication gate
# ---------------------------------------------------------------------------


class TestUnauthenticated:
    @pytest.mark.asyncio
    async def test_call_without_session_sends_nothing(self) -> None:
        backend = _Backend()
        executor = _make_executor(backend)
        with pytest.raises(UnauthenticatedError):
            await executor.call("testfunc", 1)
        assert backend.function_calls == []
        assert backend.refresh_calls == []

    @pytest.mark.asyncio
    async def test_unauthenticated_request_skips_gate(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json([{"type": "anon-user", "name": "anon-user"}])

        executor = _make_executor(handler)
        data = await executor.get_json(f"{BASE}/app/testapp/auth/providers", authenticated=False)
        assert data[0]["type"] == "anon-user"
        assert "Authorization" not in seen[0].headers


# ---------------------------------------------------------------------------
# Function calls
# ---------------------------------------------------------------------------


class TestCall:
    @pytest.mark.asyncio
    async def test_body_is_extended_json(self, fresh_token: str) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"x": {"$oid": HEX_ID}})

        executor = _make_executor(handler)
        _log_in(executor, fresh_token)
        result = await executor.call("testfunc", {"x": ObjectId(HEX_ID)}, "hello")

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == FUNCTION_CALL_URL
        assert request.headers["Authorization"] == f"Bearer {fresh_token}"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {
            "name": "testfunc",
            "arguments": [{"x": {"$oid": HEX_ID}}, "hello"],
        }
        assert result["x"] == ObjectId(HEX_ID)

    @pytest.mark.asyncio
    async def test_service_call(self, fresh_token: str) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({})

        executor = _make_executor(handler)
        _log_in(executor, fresh_token)
        await executor.call("send", "+15555550100", service="sms")
        assert json.loads(seen[0].content) == {
            "name": "send",
            "arguments": ["+15555550100"],
            "service": "sms",
        }

    @pytest.mark.asyncio
    async def test_empty_reply(self, fresh_token: str) -> None:
        executor = _make_executor(lambda request: httpx.Response(204))
        _log_in(executor, fresh_token)
        assert await executor.call("noop") is None

    @pytest.mark.asyncio
    async def test_session_without_access_token_sends_no_bearer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"x": 1})

        executor = _make_executor(handler)
        executor.auth.set({"user_id": HEX_ID})
        assert await executor.call("testfunc") == {"x": 1}
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_structured_error_is_not_retried(self, fresh_token: str) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return _json({"error": "bad input", "error_code": "TestBadRequest"}, 400)

        executor = _make_executor(handler)
        _log_in(executor, fresh_token)
        with pytest.raises(RequestError) as exc_info:
            await executor.call("testfunc")
        assert exc_info.value.error_code == "TestBadRequest"
        assert exc_info.value.response.status_code == 400
        assert calls == 1

    @pytest.mark.asyncio
    async def test_html_error(self, fresh_token: str) -> None:
        executor = _make_executor(lambda request: httpx.Response(502, html="<h1>Bad Gateway</h1>"))
        _log_in(executor, fresh_token)
        with pytest.raises(TransportError) as exc_info:
            await executor.call("testfunc")
        assert exc_info.value.error == "Bad Gateway"


# ---------------------------------------------------------------------------
# Proactive refresh
# ---------------------------------------------------------------------------


class TestProactiveRefresh:
    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_call(self, expired_token: str) -> None:
        backend = _Backend(current_token="at-2")
        executor = _make_executor(backend)
        _log_in(executor, expired_token)

        assert await executor.call("testfunc") == {"x": 1}
        assert len(backend.refresh_calls) == 1
        assert len(backend.function_calls) == 1
        assert backend.function_calls[0].headers["Authorization"] == "Bearer at-2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exp", ["soon", [1], {}])
    async def test_unreadable_exp_refreshed_before_call(self, make_token, exp: object) -> None:
        backend = _Backend(current_token="at-2")
        executor = _make_executor(backend)
        _log_in(executor, make_token(None, exp=exp))

        assert await executor.call("testfunc") == {"x": 1}
        assert len(backend.refresh_calls) == 1
        assert backend.function_calls[0].headers["Authorization"] == "Bearer at-2"

    @pytest.mark.asyncio
    async def test_fresh_token_not_refreshed(self, fresh_token: str) -> None:
        backend = _Backend(current_token=fresh_token)
        executor = _make_executor(backend)
        _log_in(executor, fresh_token)

        await executor.call("testfunc")
        await executor.call("testfunc")
        assert backend.refresh_calls == []
        assert len(backend.function_calls) == 2


# ---------------------------------------------------------------------------
# Reactive refresh and replay
# ---------------------------------------------------------------------------


class TestRefreshAndReplay:
    @pytest.mark.asyncio
    async def test_invalid_session_refreshes_and_replays_once(self, fresh_token: str) -> None:
        backend = _Backend(current_token="revoked-elsewhere")
        executor = _make_executor(backend)
        _log_in(executor, fresh_token)

        assert await executor.call("testfunc") == {"x": 1}
        assert len(backend.refresh_calls) == 1
        assert len(backend.function_calls) == 2
        assert backend.function_calls[1].headers["Authorization"] == "Bearer at-2"
        assert executor.auth.get_access_token() == "at-2"

    @pytest.mark.asyncio
    async def test_second_invalid_session_is_terminal(self, fresh_token: str) -> None:
        calls = {"function": 0, "refresh": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == SESSION_URL:
                calls["refresh"] += 1
                return _json({"access_token": "at-2"})
            calls["function"] += 1
            return _json(INVALID_SESSION, 401)

        executor = _make_executor(handler)
        _log_in(executor, fresh_token)
        with pytest.raises(SessionExpiredError) as exc_info:
            await executor.call("testfunc")
        assert exc_info.value.error_code == "InvalidSession"
        assert calls == {"function": 2, "refresh": 1}

    @pytest.mark.asyncio
    async def test_refresh_failure_clears_session(self, fresh_token: str) -> None:
        backend = _Backend(current_token="revoked-elsewhere")
        backend.refresh_fails = True
        executor = _make_executor(backend)
        executor.auth.set(
            {"user_id": HEX_ID, "access_token": fresh_token, "refresh_token": "rt", "device_id": "d"}
        )

        with pytest.raises(SessionExpiredError):
            await executor.call("testfunc")
        assert len(backend.function_calls) == 1
        assert executor.auth.authed_id() is None
        assert executor.auth.get_device_id() == "d"

        with pytest.raises(UnauthenticatedError):
            await executor.call("testfunc")
        assert len(backend.function_calls) == 1

    @pytest.mark.asyncio
    async def test_refresh_disabled(self, fresh_token: str) -> None:
        from stitchkit.exceptions import InvalidSessionError

        backend = _Backend(current_token="revoked-elsewhere")
        executor = _make_executor(backend)
        _log_in(executor, fresh_token)
        with pytest.raises(InvalidSessionError):
            await executor.request("POST", FUNCTION_CALL_URL, json_body={}, refresh_on_failure=False)
        assert backend.refresh_calls == []

    @pytest.mark.asyncio
    async def test_concurrent_invalid_sessions_share_one_refresh(self, fresh_token: str) -> None:
        state = {"token": "revoked-elsewhere", "refreshes": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == SESSION_URL:
                state["refreshes"] += 1
                await asyncio.sleep(0.01)
                state["token"] = "at-2"
                return _json({"access_token": "at-2"})
            await asyncio.sleep(0)
            if request.headers.get("Authorization") != f"Bearer {state['token']}":
                return _json(INVALID_SESSION, 401)
            return _json({"ok": True})

        executor = _make_executor(handler)
        _log_in(executor, fresh_token)
        results = await asyncio.gather(*(executor.call("testfunc") for _ in range(5)))
        assert results == [{"ok": True}] * 5
        assert state["refreshes"] == 1
