"""Tests for the Socket.IO binding of the realtime gateway."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from Realtime.gateway import AUTHENTICATE_EVENT
from Realtime.socket_server import SocketServer


@pytest.fixture()
def server() -> SocketServer:
    return SocketServer()


@pytest.fixture()
def gateway() -> AsyncMock:
    return AsyncMock()


def test_handlers_are_registered(server: SocketServer) -> None:
    handlers = server.sio.handlers["/"]

    for event in ("connect", AUTHENTICATE_EVENT, "disconnect", "*"):
        assert event in handlers


@pytest.mark.asyncio
async def test_connect_is_refused_without_gateway(server: SocketServer) -> None:
    with pytest.raises(ConnectionRefusedError):
        await server._on_connect("sid-1", {})


@pytest.mark.asyncio
async def test_handlers_delegate_to_gateway(server: SocketServer, gateway: AsyncMock) -> None:
    server.attach(gateway)

    await server._on_connect("sid-1", {})
    await server._on_authenticate("sid-1", "token")
    await server._on_any_event("chat", "sid-1", {"text": "hi"})
    await server._on_disconnect("sid-1", "client disconnect")

    gateway.on_connect.assert_awaited_once_with("sid-1")
    gateway.on_authenticate.assert_awaited_once_with("sid-1", "token")
    gateway.on_message.assert_awaited_once_with("sid-1", "chat")
    gateway.on_disconnect.assert_awaited_once_with("sid-1")


@pytest.mark.asyncio
async def test_authenticate_without_token_passes_none(server: SocketServer, gateway: AsyncMock) -> None:
    server.attach(gateway)

    await server._on_authenticate("sid-1")

    gateway.on_authenticate.assert_awaited_once_with("sid-1", None)


@pytest.mark.asyncio
async def test_detached_server_drops_authenticate(server: SocketServer, gateway: AsyncMock, monkeypatch) -> None:
    disconnect = AsyncMock()
    monkeypatch.setattr(server.sio, "disconnect", disconnect)
    server.attach(gateway)
    server.detach()

    await server._on_authenticate("sid-1", "token")
    await server._on_disconnect("sid-1")

    disconnect.assert_awaited_once_with("sid-1")
    gateway.on_authenticate.assert_not_awaited()
    gateway.on_disconnect.assert_not_awaited()


@pytest.mark.asyncio
async def test_transport_calls_socketio(server: SocketServer, monkeypatch) -> None:
    enter_room = AsyncMock()
    emit = AsyncMock()
    disconnect = AsyncMock()
    monkeypatch.setattr(server.sio, "enter_room", enter_room)
    monkeypatch.setattr(server.sio, "emit", emit)
    monkeypatch.setattr(server.sio, "disconnect", disconnect)

    await server.enter_room("sid-1", "user-1")
    await server.emit("authenticated", to="sid-1")
    await server.disconnect("sid-1")

    enter_room.assert_awaited_once_with("sid-1", "user-1")
    emit.assert_awaited_once_with("authenticated", None, to="sid-1")
    disconnect.assert_awaited_once_with("sid-1")
