"""
Auth context for the scheduling application.

AuthContext bundles the Session Model and the OAuth controller with the
capabilities they run on. It is constructed explicitly and passed to whatever
needs it; there is no module-level session state.
"""

import asyncio
import logging
from typing import Optional

import httpx

from ..auth.capabilities import KeyValueStore, MessageChannel, PopupLauncher
from ..auth.credential_cache import CredentialCache, TokenSetCache
from ..auth.google_auth import GoogleTokenClient
from ..auth.key_value_store import LocalJsonKeyValueStore
from ..auth.message_channel import LocalMessageChannel
from ..auth.models import Session
from ..auth.oauth_callback_server import BrowserPopupLauncher, MinimalOAuthServer
from ..auth.oauth_controller import GoogleOAuthController
from ..auth.remote_store import RemoteStoreClient
from ..auth.session_manager import SessionManager
from .config import AuthConfig, get_auth_config

logger = logging.getLogger(__name__)


class AuthContext:
    """Owns one SessionManager and one GoogleOAuthController."""

    def __init__(
        self,
        session: SessionManager,
        oauth: GoogleOAuthController,
        callback_server: Optional[MinimalOAuthServer] = None,
    ) -> None:
        self.session = session
        self.oauth = oauth
        self._callback_server = callback_server
        self._started = False

    @classmethod
    def create(
        cls,
        config: Optional[AuthConfig] = None,
        store: Optional[KeyValueStore] = None,
        parent_channel: Optional[MessageChannel] = None,
        message_channel: Optional[MessageChannel] = None,
        popup_launcher: Optional[PopupLauncher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AuthContext":
        """
        Build a context from configuration.

        Args:
            config: Auth configuration; the global one if omitted.
            store: Persistent key-value store; a JSON file in the state
                directory if omitted.
            parent_channel: Channel to the parent page when embedded.
            message_channel: Channel popup results arrive on. Must be given
                together with ``popup_launcher``.
            popup_launcher: Sign-in popup launcher. When omitted, the system
                browser and a local callback server are used.
            transport: Optional httpx transport for the remote store.

        Returns:
            A context ready for ``start()``.
        """
        config = config or get_auth_config()
        store = store or LocalJsonKeyValueStore(config.state_file)

        session = SessionManager(
            CredentialCache(store),
            RemoteStoreClient(timeout=config.http_timeout, transport=transport),
            parent_channel=parent_channel,
            handshake_timeout=config.handshake_timeout,
        )

        callback_server: Optional[MinimalOAuthServer] = None
        if popup_launcher is None:
            if message_channel is not None:
                raise ValueError("message_channel requires a popup_launcher")
            message_channel, server_end = LocalMessageChannel.pair(
                config.app_origin, config.app_origin
            )
            callback_server = MinimalOAuthServer(
                server_end,
                target_origin=config.app_origin,
                port=config.port,
                base_uri=config.base_uri,
                callback_path=config.callback_path,
            )
            popup_launcher = BrowserPopupLauncher(callback_server)
        elif message_channel is None:
            raise ValueError("popup_launcher requires a message_channel")

        oauth = GoogleOAuthController(
            GoogleTokenClient(
                config.google_client_id,
                config.google_client_secret,
                config.redirect_uri,
            ),
            TokenSetCache(store),
            message_channel,
            popup_launcher,
            app_origin=config.app_origin,
        )

        return cls(session, oauth, callback_server)

    async def start(self) -> Optional[Session]:
        """
        Bring the context up.

        The session is already hydrated from the cache. When embedded, the
        parent page gets a chance to replace it; then any stored Google
        tokens are restored.

        Returns:
            The current application session, if any.
        """
        if self._callback_server is not None:
            # Callback results are delivered on the loop that runs the context
            self._callback_server.bind_loop(asyncio.get_running_loop())

        if self.session.is_embedded():
            await self.session.attempt_embedded_login()

        if self.oauth.load_stored_tokens():
            logger.info("Restored stored Google tokens")

        self._started = True
        return self.session.get_current_user()

    async def close(self) -> None:
        """Cancel background work and stop the callback server."""
        await self.oauth.close()
        if self._callback_server is not None:
            await asyncio.to_thread(self._callback_server.stop)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def __aenter__(self) -> "AuthContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
