"""
Embedded-context handshake.

When the application runs inside a parent page, it asks that parent for an
already-authenticated identity and the per-user API keys:

1. ``{"type": "REQUEST_API_VALUES"}`` is posted to the parent (any origin).
2. The first ``API_VALUES_RESPONSE`` message is accepted; everything else is
   ignored.
3. If nothing acceptable arrives within the timeout the handshake resolves
   with no payload.

The listener and the timer are both torn down on whichever of (2) or (3)
happens first, so a call resolves exactly once and late responses are
dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.constants import (
    ANY_ORIGIN,
    API_VALUES_RESPONSE,
    HANDSHAKE_SECRET_NAMES,
    HANDSHAKE_TIMEOUT_SECONDS,
    OPENAI_API_KEY,
    REQUEST_API_VALUES,
)
from .capabilities import MessageChannel, MessageEvent
from .models import BackendConnectionParams, SecretBundle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddedAuthPayload:
    """The parts of an ``API_VALUES_RESPONSE`` the session model uses."""

    auth_token: str
    backend: BackendConnectionParams
    api_keys: Dict[str, Optional[str]]

    @classmethod
    def from_message(cls, data: Any) -> Optional["EmbeddedAuthPayload"]:
        """
        Extract a payload from a response message's ``data`` field.

        Returns:
            None when the token or either backend connection field is missing.
        """
        if not isinstance(data, dict):
            return None

        auth_token = data.get("authToken")
        url = data.get("SUPABASE_URL")
        anon_key = data.get("SUPABASE_ANON_KEY")
        if not auth_token or not url or not anon_key:
            return None

        return cls(
            auth_token=auth_token,
            backend=BackendConnectionParams(endpoint_url=url, anonymous_key=anon_key),
            api_keys={name: data.get(name) for name in HANDSHAKE_SECRET_NAMES},
        )

    def secret_bundle(self) -> SecretBundle:
        # Every handshake key is present; unprovisioned ones are empty strings
        return {name: value or "" for name, value in self.api_keys.items()}

    @property
    def openai_key(self) -> str:
        return self.api_keys.get(OPENAI_API_KEY) or ""


class EmbeddedHandshake:
    """Single-attempt request/response exchange with the parent context."""

    def __init__(
        self,
        channel: MessageChannel,
        timeout: float = HANDSHAKE_TIMEOUT_SECONDS,
    ) -> None:
        self._channel = channel
        self._timeout = timeout

    async def request(self) -> Optional[EmbeddedAuthPayload]:
        """
        Ask the parent for auth values and wait for the answer.

        Returns:
            The payload, or None on timeout or an incomplete response.
        """
        loop = asyncio.get_running_loop()
        result: "asyncio.Future[Any]" = loop.create_future()
        timer: Optional[asyncio.TimerHandle] = None

        def handle_message(event: MessageEvent) -> None:
            if event.message_type != API_VALUES_RESPONSE:
                return
            unregister()
            if timer is not None:
                timer.cancel()
            if not result.done():
                data = event.data.get("data") if isinstance(event.data, dict) else None
                result.set_result(data)

        def handle_timeout() -> None:
            unregister()
            if not result.done():
                logger.info(
                    f"No {API_VALUES_RESPONSE} within {self._timeout:.1f}s; "
                    "continuing without parent session"
                )
                result.set_result(None)

        unregister = self._channel.on_message(handle_message)
        timer = loop.call_later(self._timeout, handle_timeout)

        try:
            self._channel.send({"type": REQUEST_API_VALUES}, ANY_ORIGIN)
            data = await result
        finally:
            unregister()
            timer.cancel()

        if data is None:
            return None

        payload = EmbeddedAuthPayload.from_message(data)
        if payload is None:
            logger.warning("Parent context sent an incomplete auth payload")
        return payload
