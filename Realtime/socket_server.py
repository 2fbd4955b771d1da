"""
Socket.IO server for the frontend.

The frontend connects with ``socket.io-client`` and, once connected, emits
``authenticate`` with its JWT access token. The server answers with
``authenticated`` or drops the connection.
"""
import logging
from typing import Any, Optional

import socketio

from Realtime.gateway import AUTHENTICATE_EVENT, RealtimeGateway

logger = logging.getLogger(__name__)


class SocketServer:
    """
    Bind a python-socketio server to a RealtimeGateway.

    The socket server exists from import time so it can be mounted next to
    the HTTP app; the gateway is attached during application startup and
    detached on shutdown. Connections arriving without a gateway are refused.
    """

    def __init__(self, cors_allowed_origins: Any = "*") -> None:
        self.sio = socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=cors_allowed_origins,
            logger=False,
            engineio_logger=False,
        )
        self.gateway: Optional[RealtimeGateway] = None
        self.sio.on("connect", self._on_connect)
        self.sio.on(AUTHENTICATE_EVENT, self._on_authenticate)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("*", self._on_any_event)

    def attach(self, gateway: RealtimeGateway) -> None:
        self.gateway = gateway

    def detach(self) -> None:
        self.gateway = None

    # transport interface used by the gateway

    async def enter_room(self, handle: str, room: str) -> None:
        await self.sio.enter_room(handle, room)

    async def emit(self, event: str, data: Any = None, *, to: str) -> None:
        await self.sio.emit(event, data, to=to)

    async def disconnect(self, handle: str) -> None:
        await self.sio.disconnect(handle)

    # socket.io event handlers

    async def _on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        if self.gateway is None:
            raise ConnectionRefusedError("server_unavailable")
        await self.gateway.on_connect(sid)

    async def _on_authenticate(self, sid: str, token: Any = None) -> None:
        if self.gateway is None:
            await self.disconnect(sid)
            return
        await self.gateway.on_authenticate(sid, token)

    async def _on_any_event(self, event: str, sid: str, data: Any = None) -> None:
        if self.gateway is None:
            return
        await self.gateway.on_message(sid, event)

    async def _on_disconnect(self, sid: str, reason: Any = None) -> None:
        if self.gateway is None:
            return
        await self.gateway.on_disconnect(sid)
