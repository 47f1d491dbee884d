"""
Session Model for the scheduling application.

Holds the authoritative record of who is logged in and which API keys are
available, and implements the three ways a session comes into being:

- hydration from the credential cache on construction
- direct username/password login against the remote store
- the embedded-context handshake with a parent page

Login and validation never raise for bad credentials or transport problems;
they log and return None so that UI flows only see "login failed".
"""

import logging
from typing import Optional

import httpx

from ..utils.constants import HANDSHAKE_TIMEOUT_SECONDS, OPENAI_API_KEY
from .capabilities import MessageChannel
from .credential_cache import CredentialCache
from .embedded_handshake import EmbeddedHandshake
from .models import (
    FALLBACK_BACKEND_PARAMS,
    BackendConnectionParams,
    SecretBundle,
    Session,
)
from .remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)

# Everything the remote store client or its JSON decoding can raise
TRANSPORT_ERRORS = (
    httpx.HTTPError,
    httpx.InvalidURL,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
)


class SessionManager:
    """
    In-memory session, secret bundle and backend connection params.

    Overlapping login or handshake calls are not serialized; whichever
    completes last owns the session.
    """

    def __init__(
        self,
        cache: CredentialCache,
        remote_store: Optional[RemoteStoreClient] = None,
        parent_channel: Optional[MessageChannel] = None,
        handshake_timeout: float = HANDSHAKE_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the session model and hydrate it from the cache.

        Args:
            cache: Credential cache backing this session.
            remote_store: Client for the remote credential store.
            parent_channel: Channel to the parent context when embedded.
            handshake_timeout: Seconds to wait for the parent's answer.
        """
        self._cache = cache
        self._remote_store = remote_store or RemoteStoreClient()
        self._parent_channel = parent_channel
        self._handshake_timeout = handshake_timeout

        self._session: Optional[Session] = None
        self._secrets: SecretBundle = {}
        self._backend: BackendConnectionParams = FALLBACK_BACKEND_PARAMS

        self._load_from_cache()

    def _load_from_cache(self) -> None:
        state = self._cache.load()
        if state.session is not None:
            self._session = state.session
        if state.secrets:
            self._secrets = dict(state.secrets)
        if state.backend is not None:
            self._backend = state.backend
        if not state.is_empty():
            logger.info("Hydrated session state from cache")

    def _save_to_cache(self) -> None:
        self._cache.save(self._session, self._secrets, self._backend)

    def is_embedded(self) -> bool:
        """True when the application runs inside a parent context."""
        return self._parent_channel is not None

    def get_current_user(self) -> Optional[Session]:
        return self._session

    def get_api_key(self, key_name: str = OPENAI_API_KEY) -> Optional[str]:
        """Return a provisioned API key, or None when absent or empty."""
        return self._secrets.get(key_name) or None

    def get_backend_connection_params(self) -> BackendConnectionParams:
        return self._backend

    async def validate_auth_token(self, token: str) -> Optional[Session]:
        """
        Validate a token issued by the remote store.

        Args:
            token: The opaque token to look up.

        Returns:
            An authenticated Session for the token's owner, or None if the
            token is unknown, expired, or the lookup failed.
        """
        try:
            row = await self._remote_store.find_active_token(self._backend, token)
            if row is None:
                logger.info("Auth token not found or expired")
                return None

            return Session(
                username=row["username"],
                is_admin=bool(row.get("is_admin", False)),
                authenticated=True,
            )
        except TRANSPORT_ERRORS as e:
            logger.error(f"Error validating auth token: {e}")
            return None

    async def login(self, username: str, password: str) -> Optional[Session]:
        """
        Log in with a username and password.

        The stored password is compared verbatim; no hashing happens on
        this side. Direct login never grants admin rights.

        Args:
            username: Account name in ``users_login``.
            password: Password as typed.

        Returns:
            The new Session, or None if the credentials do not match or the
            store could not be reached.
        """
        try:
            record = await self._remote_store.fetch_login_record(self._backend, username)
            if record is None or record.get("password") != password:
                logger.info(f"Login rejected for user '{username}'")
                return None

            openai_key = await self._remote_store.fetch_secret(self._backend, OPENAI_API_KEY)

            session = Session(
                username=record["username"], is_admin=False, authenticated=True
            )
        except TRANSPORT_ERRORS as e:
            logger.error(f"Error logging in: {e}")
            return None

        self._session = session
        self._secrets = {OPENAI_API_KEY: openai_key}
        self._cache.save_legacy_key(openai_key)
        self._save_to_cache()

        logger.info(f"User '{session.username}' logged in")
        return session

    async def attempt_embedded_login(self) -> Optional[Session]:
        """
        Inherit the parent page's session through the embedded handshake.

        The backend connection params are switched to the parent's values
        before the token is validated and stay switched if validation fails.

        Returns:
            The validated Session, or None when not embedded, on timeout,
            on an incomplete payload, or when the token does not validate.
        """
        if self._parent_channel is None:
            logger.debug("Not embedded; skipping handshake")
            return None

        handshake = EmbeddedHandshake(self._parent_channel, self._handshake_timeout)
        payload = await handshake.request()
        if payload is None:
            return None

        self._backend = payload.backend

        session = await self.validate_auth_token(payload.auth_token)
        if session is None:
            logger.warning("Parent context supplied a token that did not validate")
            return None

        self._session = session
        self._secrets = payload.secret_bundle()
        self._cache.save_legacy_key(payload.openai_key)
        self._save_to_cache()

        logger.info(f"User '{session.username}' signed in from parent context")
        return session

    def logout(self) -> None:
        """Forget the session, its secrets and backend params, and clear the cache."""
        self._session = None
        self._secrets = {}
        self._backend = FALLBACK_BACKEND_PARAMS
        self._cache.clear()
        logger.info("Logged out")
