"""
In-process message channel.

Two linked LocalMessageChannel ends behave like a window and its parent (or
a popup and its opener): each end sends from its own origin, and delivery is
scheduled on the event loop rather than performed inline, the same way
postMessage never delivers synchronously.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..utils.constants import ANY_ORIGIN
from .capabilities import MessageChannel, MessageEvent, MessageListener

logger = logging.getLogger(__name__)


class LocalMessageChannel(MessageChannel):
    """One end of an in-process, origin-tagged message channel."""

    def __init__(self, origin: str) -> None:
        self._origin = origin
        self._peer: Optional["LocalMessageChannel"] = None
        self._listeners: List[MessageListener] = []
        self._tasks: Set["asyncio.Task[None]"] = set()

    @classmethod
    def pair(
        cls, origin: str, peer_origin: str
    ) -> Tuple["LocalMessageChannel", "LocalMessageChannel"]:
        """Create two ends that deliver to each other."""
        first = cls(origin)
        second = cls(peer_origin)
        first.connect(second)
        return first, second

    @property
    def origin(self) -> str:
        return self._origin

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def connect(self, peer: "LocalMessageChannel") -> None:
        self._peer = peer
        peer._peer = self

    def send(self, message: Dict[str, Any], target_origin: str) -> None:
        if self._peer is None:
            logger.warning(f"Dropping message from {self._origin}: no peer connected")
            return
        if target_origin != ANY_ORIGIN and target_origin != self._peer.origin:
            logger.debug(
                f"Dropping message for {target_origin}; peer origin is {self._peer.origin}"
            )
            return

        event = MessageEvent(origin=self._origin, data=message)
        peer = self._peer
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; message not delivered")
            return
        loop.call_soon(peer._dispatch, event)

    def send_threadsafe(
        self,
        message: Dict[str, Any],
        target_origin: str,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        """Send from a thread that does not own ``loop``."""
        loop.call_soon_threadsafe(self.send, message, target_origin)

    def on_message(self, listener: MessageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _dispatch(self, event: MessageEvent) -> None:
        # Copy: listeners commonly unregister themselves while handling
        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                result = listener(event)
            except Exception as e:
                logger.error(f"Message listener failed: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
