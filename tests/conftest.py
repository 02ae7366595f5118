# tests/conftest.py
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

import pytest
from pydantic import SecretStr

from core.domain.models import Credentials, SessionMode
from core.interfaces.transport import TransportResponse
from core.services.session_manager import HANDSHAKE_PATH, LOGOFF_PATH

Responder = TransportResponse | Callable[["Call"], TransportResponse | Awaitable[TransportResponse]]

# ------------------------------------------------------------------------------
# 1. Global Configuration
# ------------------------------------------------------------------------------


@pytest.fixture(scope="session")
def anyio_backend():
    """Async tests run on asyncio (httpx and the client are asyncio-based)."""
    return "asyncio"


@pytest.fixture(autouse=True)
def setup_test_logging(caplog):
    """Capture DEBUG logs so failing tests show the request trail."""
    caplog.set_level(logging.DEBUG)


# ------------------------------------------------------------------------------
# 2. Fake ADT backend
# ------------------------------------------------------------------------------


@dataclass
class Call:
    mode: SessionMode
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: str | None = None


class FakeTransport:
    """`AdtTransport` that records every call and answers from a `FakeBackend`."""

    def __init__(self, backend: "FakeBackend", mode: SessionMode) -> None:
        self.backend = backend
        self.mode = mode
        self.calls: list[Call] = []
        self.closed = False

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        body: str | None = None,
    ) -> TransportResponse:
        call = Call(self.mode, method.upper(), path, dict(headers or {}), dict(params or {}), body)
        self.calls.append(call)
        self.backend.calls.append(call)
        return await self.backend.handle(call)

    async def aclose(self) -> None:
        self.closed = True


class FakeBackend:
    """Route table keyed by (method, path); later registrations win."""

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.transports: list[FakeTransport] = []
        self._routes: list[tuple[str, str, Responder]] = []
        self.on("GET", HANDSHAKE_PATH, TransportResponse(200, {"x-csrf-token": "token-1"}))
        self.on("GET", LOGOFF_PATH, TransportResponse(200))

    def on(self, method: str, path: str, responder: Responder) -> None:
        self._routes.insert(0, (method.upper(), path, responder))

    async def handle(self, call: Call) -> TransportResponse:
        for method, path, responder in self._routes:
            if method == call.method and path == call.path:
                result = responder(call) if callable(responder) else responder
                if inspect.isawaitable(result):
                    result = await result
                return result
        return TransportResponse(404, {}, "")

    def factory(self, credentials: Credentials, mode: SessionMode) -> FakeTransport:
        transport = FakeTransport(self, mode)
        self.transports.append(transport)
        return transport

    def requests(
        self,
        method: str | None = None,
        path: str | None = None,
        mode: SessionMode | None = None,
    ) -> list[Call]:
        return [
            c
            for c in self.calls
            if (method is None or c.method == method.upper())
            and (path is None or c.path == path)
            and (mode is None or c.mode is mode)
        ]

    def mutating_calls(self) -> list[Call]:
        return [c for c in self.calls if c.method in ("POST", "PUT", "DELETE") and "validation" not in c.path]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        base_url="https://sap.example.com:44300",
        username="developer",
        password=SecretStr("secret"),
        client="100",
        language="EN",
    )
