"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

from app.config import get_settings
from app.monitoring.registry import registry
from tandem.realtime.connection import Connection
from tandem.realtime.managers import build_engine, reset_realtime


class DummyWebSocket:
    """Records JSON frames sent by the engine."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        self.application_state = WebSocketState.DISCONNECTED

    def events(self, name: str | None = None) -> list[Any]:
        """Return frame types, or the data of every frame named *name*."""

        if name is None:
            return [frame["type"] for frame in self.sent]
        return [frame.get("data") for frame in self.sent if frame["type"] == name]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    registry.reset()
    yield
    registry.reset()


@pytest.fixture()
def make_connection():
    """Build unregistered connections backed by dummy sockets."""

    def factory(user_id: str = "user") -> Connection:
        return Connection(DummyWebSocket(), user_id)

    return factory


@pytest.fixture()
def engine():
    return build_engine()


@pytest.fixture()
def connect(engine):
    """Register a connection for *user_id* through the engine handshake."""

    async def factory(user_id: str, **profile: str) -> Connection:
        return await engine.connect(DummyWebSocket(), {"userId": user_id, **profile})

    return factory


@pytest.fixture()
def media_root(tmp_path) -> Iterator[Any]:
    settings = get_settings()
    original_root = settings.media_root
    original_limit = settings.max_upload_size
    settings.media_root = tmp_path / "uploads"
    try:
        yield settings.media_root
    finally:
        settings.media_root = original_root
        settings.max_upload_size = original_limit


@pytest.fixture()
def client(media_root) -> Iterator[TestClient]:
    """Yield a TestClient talking to a freshly reset realtime engine.

    Keepalive pings are disabled so every frame a test reads is one it caused.
    """

    from app.main import app

    settings = get_settings()
    original_timeout = settings.websocket_keepalive_timeout_seconds
    original_interval = settings.websocket_keepalive_ping_interval_seconds
    settings.websocket_keepalive_timeout_seconds = 0
    settings.websocket_keepalive_ping_interval_seconds = 0
    reset_realtime()
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        reset_realtime()
        settings.websocket_keepalive_timeout_seconds = original_timeout
        settings.websocket_keepalive_ping_interval_seconds = original_interval
