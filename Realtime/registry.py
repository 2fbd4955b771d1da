"""In-memory presence registry: which identity holds which live connection."""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Map each identity to its current connection handle.

    One handle per identity: a later ``register`` for the same identity
    replaces the earlier handle. Mutations are serialized with an asyncio
    lock. Nothing is persisted; the registry starts empty and is cleared on
    shutdown.
    """

    def __init__(self) -> None:
        self._handles: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, identity: str, handle: str) -> Optional[str]:
        """
        Record ``handle`` as the live connection of ``identity``.

        Returns:
            The handle that was replaced, if any.
        """
        async with self._lock:
            previous = self._handles.get(identity)
            self._handles[identity] = handle
        if previous is not None and previous != handle:
            logger.info(
                "Presence handle replaced",
                extra={"identity": identity, "previous_handle": previous, "handle": handle},
            )
        return previous

    async def unregister(self, handle: str) -> Optional[str]:
        """
        Remove the entry whose handle matches.

        Linear in the number of live connections. A handle that was already
        replaced matches nothing, so it never removes the newer entry.

        Returns:
            The identity that was removed, or None.
        """
        async with self._lock:
            for identity, current in self._handles.items():
                if current == handle:
                    del self._handles[identity]
                    return identity
        return None

    def lookup(self, identity: str) -> Optional[str]:
        return self._handles.get(identity)

    def is_online(self, identity: str) -> bool:
        return identity in self._handles

    def online_identities(self) -> list[str]:
        return list(self._handles)

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._handles)
            self._handles.clear()
        logger.info("Presence registry cleared", extra={"entries": count})

    def __len__(self) -> int:
        return len(self._handles)
