"""
Capability interfaces for the environment the auth subsystem runs in.

The session and OAuth logic never touches browsers, windows or disks directly.
It talks to three narrow interfaces instead:

- MessageChannel: cross-context messaging (send, on_message, unregister)
- PopupLauncher: an external sign-in window (open, is_closed, close)
- KeyValueStore: durable string storage (get, set, delete)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union


@dataclass(frozen=True)
class MessageEvent:
    """A message delivered on a MessageChannel.

    Attributes:
        origin: Origin of the sender, e.g. ``http://localhost:9878``.
        data: The message payload. Well-formed payloads carry a ``type`` key.
    """

    origin: str
    data: Any

    @property
    def message_type(self) -> Optional[str]:
        if isinstance(self.data, dict):
            return self.data.get("type")
        return None


MessageListener = Callable[[MessageEvent], Union[None, Awaitable[None]]]


class MessageChannel(ABC):
    """One end of a cross-context message channel."""

    @property
    @abstractmethod
    def origin(self) -> str:
        """Origin this end sends from."""
        pass

    @abstractmethod
    def send(self, message: Dict[str, Any], target_origin: str) -> None:
        """Post a message to the other end.

        Delivery is asynchronous; the message is dropped when ``target_origin``
        is neither ``"*"`` nor the receiving end's origin.
        """
        pass

    @abstractmethod
    def on_message(self, listener: MessageListener) -> Callable[[], None]:
        """Register a listener for inbound messages.

        Returns:
            A callable that unregisters the listener. Calling it more than once
            is harmless.
        """
        pass


class PopupLauncher(ABC):
    """Opens and supervises an external sign-in window."""

    @abstractmethod
    def open(self, url: str) -> bool:
        """Open the window at ``url``. Returns False if it could not be opened."""
        pass

    @abstractmethod
    def is_closed(self) -> bool:
        """True once the window is gone, whoever closed it."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the window if it is still open."""
        pass


class KeyValueStore(ABC):
    """Durable string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        pass
