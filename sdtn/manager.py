"""Registry of convergence layer adapters and delivery of received bundles."""

from __future__ import annotations

import asyncio
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable

from sdtn.bundle import Bundle

ReceiveCallback = Callable[[Bundle], None]


class ConvergenceLayer(ABC):
    """A transport that bundles can travel over."""

    @abstractmethod
    def address(self) -> str:
        """Return the address that identifies this adapter."""

    @abstractmethod
    async def activate(self) -> None:
        """Start the adapter; may run for as long as the adapter is in use."""


class ClaManager:
    """Keeps track of active adapters and hands received bundles to a callback.

    Copies made with :func:`copy.copy` share the same registry.
    """

    def __init__(self, receive_callback: ReceiveCallback) -> None:
        self._receive_callback = receive_callback
        self._active: dict[str, None] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    async def register(self, cla: ConvergenceLayer) -> bool:
        """Register an adapter and activate it in the background.

        Returns False, without activating, if its address is already registered.
        """
        address = cla.address()
        if address in self._active:
            print(f"CLA already registered: {address}")
            return False
        self._active[address] = None
        task = asyncio.create_task(self._activate(cla, address))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    @staticmethod
    async def _activate(cla: ConvergenceLayer, address: str) -> None:
        try:
            await cla.activate()
        except Exception as exc:
            print(f"Failed to activate CLA ({address}): {exc!r}", file=sys.stderr)
        else:
            print(f"CLA activated: {address}")

    def notify_receive(self, bundle: Bundle) -> None:
        """Schedule the receive callback for ``bundle`` on the running loop."""
        asyncio.get_running_loop().call_soon(self._receive_callback, bundle)

    async def list_active(self) -> list[str]:
        """Return the registered addresses in registration order."""
        return list(self._active)