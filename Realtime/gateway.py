"""
Realtime gateway: per-connection authentication state machine.

Each connection moves CONNECTED -> AUTHENTICATED -> CLOSED. ``next_state``
holds the transition table; ``RealtimeGateway`` applies the side effects
(room membership, presence bookkeeping, acknowledgements, forced
disconnects) through a transport, so it can be driven without a socket
server.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from Users.auth import CredentialVerifier, Identity, InvalidCredentials
from Realtime.registry import PresenceRegistry

logger = logging.getLogger(__name__)

AUTHENTICATE_EVENT = "authenticate"
AUTHENTICATED_EVENT = "authenticated"
ERROR_EVENT = "error"


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class GatewayEvent(str, Enum):
    AUTH_SUCCEEDED = "auth_succeeded"
    AUTH_FAILED = "auth_failed"
    AUTH_TIMED_OUT = "auth_timed_out"
    DISCONNECTED = "disconnected"


_TRANSITIONS: dict[tuple[ConnectionState, GatewayEvent], ConnectionState] = {
    (ConnectionState.CONNECTED, GatewayEvent.AUTH_SUCCEEDED): ConnectionState.AUTHENTICATED,
    (ConnectionState.CONNECTED, GatewayEvent.AUTH_FAILED): ConnectionState.CLOSED,
    (ConnectionState.CONNECTED, GatewayEvent.AUTH_TIMED_OUT): ConnectionState.CLOSED,
    (ConnectionState.CONNECTED, GatewayEvent.DISCONNECTED): ConnectionState.CLOSED,
    (ConnectionState.AUTHENTICATED, GatewayEvent.DISCONNECTED): ConnectionState.CLOSED,
    (ConnectionState.CLOSED, GatewayEvent.DISCONNECTED): ConnectionState.CLOSED,
}


class InvalidTransition(Exception):
    """Raised when an event is not allowed in the current state."""


def next_state(state: ConnectionState, event: GatewayEvent) -> ConnectionState:
    """
    Pure transition function of the connection state machine.

    Raises:
        InvalidTransition: If ``event`` cannot happen in ``state``.
    """
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(f"{event.value} not allowed in state {state.value}") from None


class Transport(Protocol):
    """What the gateway needs from the realtime server."""

    async def enter_room(self, handle: str, room: str) -> None: ...

    async def emit(self, event: str, data: Any = None, *, to: str) -> None: ...

    async def disconnect(self, handle: str) -> None: ...


class RealtimeGateway:
    """Authenticate realtime connections and keep the presence registry in sync."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        registry: PresenceRegistry,
        transport: Transport,
        auth_timeout: Optional[float] = 10.0,
    ) -> None:
        self._verifier = verifier
        self.registry = registry
        self._transport = transport
        self._auth_timeout = auth_timeout
        self._states: dict[str, ConnectionState] = {}
        self._identities: dict[str, str] = {}
        self._timeouts: dict[str, asyncio.Task] = {}

    def state_of(self, handle: str) -> ConnectionState:
        '''Current state of a connection; unknown handles count as closed.'''
        return self._states.get(handle, ConnectionState.CLOSED)

    def identity_of(self, handle: str) -> Optional[str]:
        return self._identities.get(handle)

    def _apply(self, handle: str, event: GatewayEvent) -> ConnectionState:
        state = next_state(self.state_of(handle), event)
        if state is ConnectionState.CLOSED:
            self._states.pop(handle, None)
            self._identities.pop(handle, None)
        else:
            self._states[handle] = state
        return state

    async def on_connect(self, handle: str) -> None:
        self._states[handle] = ConnectionState.CONNECTED
        logger.info("Realtime client connected", extra={"handle": handle})
        if self._auth_timeout:
            self._timeouts[handle] = asyncio.create_task(self._expire_unauthenticated(handle))

    async def on_authenticate(self, handle: str, token: Any) -> bool:
        """
        Run the authentication handshake for one connection.

        On success the connection joins the room named after the identity,
        presence is recorded and an acknowledgement is emitted. On any
        failure the connection is closed; the client has to reconnect.

        Returns:
            True if the connection is now authenticated.
        """
        state = self.state_of(handle)
        if state is ConnectionState.AUTHENTICATED:
            logger.info("Repeated authenticate ignored", extra={"handle": handle})
            return True
        if state is not ConnectionState.CONNECTED:
            return False

        identity = await self._verify(handle, token)

        # the client may have dropped, timed out or authenticated through a
        # concurrent call while the token was being checked
        state = self.state_of(handle)
        if state is not ConnectionState.CONNECTED:
            return state is ConnectionState.AUTHENTICATED

        self._cancel_timeout(handle)
        if identity is None:
            self._apply(handle, GatewayEvent.AUTH_FAILED)
            await self._transport.disconnect(handle)
            return False

        # no await until the connection is marked authenticated; any later
        # disconnect unregisters it
        self._apply(handle, GatewayEvent.AUTH_SUCCEEDED)
        self._identities[handle] = identity.key

        await self.registry.register(identity.key, handle)
        if self.state_of(handle) is not ConnectionState.AUTHENTICATED:
            await self.registry.unregister(handle)
            return False

        await self._transport.enter_room(handle, identity.key)
        if self.state_of(handle) is not ConnectionState.AUTHENTICATED:
            return False

        logger.info(
            "Realtime client authenticated", extra={"handle": handle, "user_id": identity.key}
        )
        await self._transport.emit(AUTHENTICATED_EVENT, to=handle)
        return True

    async def _verify(self, handle: str, token: Any) -> Optional[Identity]:
        if not isinstance(token, str) or not token:
            logger.info("Realtime auth failed: no token provided", extra={"handle": handle})
            return None
        try:
            return await run_in_threadpool(self._verifier.verify, token)
        except InvalidCredentials as exc:
            logger.info("Realtime auth failed: %s", exc, extra={"handle": handle})
            return None

    async def on_message(self, handle: str, event: str) -> bool:
        """
        Gate application traffic behind authentication.

        Returns:
            True if the connection may send ``event``.
        """
        if self.state_of(handle) is ConnectionState.AUTHENTICATED:
            return True
        logger.warning(
            "Dropped event from unauthenticated connection",
            extra={"handle": handle, "event": event},
        )
        if self.state_of(handle) is ConnectionState.CONNECTED:
            await self._transport.emit(
                ERROR_EVENT, {"message": "Authentication required"}, to=handle
            )
        return False

    async def on_disconnect(self, handle: str) -> None:
        self._cancel_timeout(handle)
        self._apply(handle, GatewayEvent.DISCONNECTED)
        identity = await self.registry.unregister(handle)
        logger.info("Realtime client disconnected", extra={"handle": handle})
        if identity is not None:
            logger.info(
                "Removed user from online map", extra={"handle": handle, "user_id": identity}
            )

    async def notify(self, identity: str, event: str, data: Any = None) -> bool:
        """
        Push an event to every connection in the identity's room.

        Returns:
            False when the identity has no live connection.
        """
        if not self.registry.is_online(identity):
            return False
        await self._transport.emit(event, data, to=identity)
        return True

    async def _expire_unauthenticated(self, handle: str) -> None:
        await asyncio.sleep(self._auth_timeout)  # type: ignore[arg-type]
        self._timeouts.pop(handle, None)
        if self.state_of(handle) is not ConnectionState.CONNECTED:
            return
        logger.info("Realtime auth timed out", extra={"handle": handle})
        self._apply(handle, GatewayEvent.AUTH_TIMED_OUT)
        await self._transport.disconnect(handle)

    def _cancel_timeout(self, handle: str) -> None:
        task = self._timeouts.pop(handle, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def shutdown(self) -> None:
        for task in list(self._timeouts.values()):
            task.cancel()
        self._timeouts.clear()
        self._states.clear()
        self._identities.clear()
        await self.registry.clear()


