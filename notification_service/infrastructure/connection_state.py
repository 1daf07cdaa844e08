"""Connection state tracking shared by the outbound connection managers."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionStateMachine:
    """Disconnected -> Connecting -> Connected, and back to Disconnected.

    Only the component that owns the connection calls the transition
    methods; everybody else reads :attr:`state` or :attr:`is_connected`,
    which always reflect the latest observed transition.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._state = ConnectionState.DISCONNECTED
        self._disconnected = asyncio.Event()
        self._disconnected.set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def begin_connecting(self) -> bool:
        """Move to ``CONNECTING``; returns ``False`` unless currently disconnected."""

        if self._state is not ConnectionState.DISCONNECTED:
            return False
        self._transition(ConnectionState.CONNECTING)
        self._disconnected.clear()
        return True

    def mark_connected(self) -> None:
        if self._state is ConnectionState.CONNECTED:
            return
        self._transition(ConnectionState.CONNECTED)
        self._disconnected.clear()

    def mark_disconnected(self, reason: str | None = None) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return
        self._transition(ConnectionState.DISCONNECTED, reason)
        self._disconnected.set()

    async def wait_disconnected(self) -> None:
        """Block until the connection is (or becomes) disconnected."""

        await self._disconnected.wait()

    def _transition(self, new_state: ConnectionState, reason: str | None = None) -> None:
        previous, self._state = self._state, new_state
        if reason:
            logger.info("%s: %s -> %s (%s)", self.name, previous.value, new_state.value, reason)
        else:
            logger.info("%s: %s -> %s", self.name, previous.value, new_state.value)


__all__ = ["ConnectionState", "ConnectionStateMachine"]
