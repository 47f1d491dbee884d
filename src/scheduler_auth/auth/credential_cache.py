"""
Credential Cache for scheduler auth.

Persists the last-known session, secret bundle and backend connection params
(and, separately, the OAuth token set) in a KeyValueStore. Nothing in this
module raises past its own boundary: unreadable entries are logged and
treated as not cached.
"""

import json
import logging
from typing import Optional, Tuple

from ..utils.constants import (
    KEY_BACKEND,
    KEY_GOOGLE_TOKENS,
    KEY_GOOGLE_USER,
    KEY_LEGACY_OPENAI,
    KEY_SECRETS,
    KEY_SESSION,
    SESSION_CACHE_KEYS,
    TOKEN_CACHE_KEYS,
)
from .capabilities import KeyValueStore
from .models import (
    BackendConnectionParams,
    CachedState,
    ProviderUserInfo,
    SecretBundle,
    Session,
    TokenSet,
)

logger = logging.getLogger(__name__)


class CredentialCache:
    """Durable cache for Session, SecretBundle and BackendConnectionParams."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> CachedState:
        """
        Read back whatever was cached.

        Returns:
            The cached state, or an empty CachedState if nothing is cached or
            any entry fails to deserialize.
        """
        try:
            state = CachedState()

            raw_session = self._store.get(KEY_SESSION)
            if raw_session:
                state.session = Session.from_dict(json.loads(raw_session))

            raw_secrets = self._store.get(KEY_SECRETS)
            if raw_secrets:
                secrets = json.loads(raw_secrets)
                if not isinstance(secrets, dict):
                    raise ValueError("secret bundle is not an object")
                state.secrets = {str(k): str(v) for k, v in secrets.items()}

            raw_backend = self._store.get(KEY_BACKEND)
            if raw_backend:
                state.backend = BackendConnectionParams.from_dict(
                    json.loads(raw_backend)
                )

            return state

        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error loading auth cache: {e}")
            return CachedState()

    def save(
        self,
        session: Optional[Session] = None,
        secrets: Optional[SecretBundle] = None,
        backend: Optional[BackendConnectionParams] = None,
    ) -> None:
        """Persist the given fields. Absent or empty fields leave the cache untouched."""
        try:
            if session is not None:
                self._store.set(KEY_SESSION, json.dumps(session.to_dict()))
            if secrets:
                self._store.set(KEY_SECRETS, json.dumps(secrets))
            if backend is not None and backend.is_complete():
                self._store.set(KEY_BACKEND, json.dumps(backend.to_dict()))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving auth cache: {e}")

    def save_legacy_key(self, value: str) -> None:
        """Write the single-key artifact older clients read the OpenAI key from."""
        if not value:
            return
        try:
            self._store.set(KEY_LEGACY_OPENAI, value)
        except OSError as e:
            logger.error(f"Error saving legacy API key: {e}")

    def clear(self) -> None:
        """Remove every key this cache writes, including the legacy artifact."""
        for key in SESSION_CACHE_KEYS:
            try:
                self._store.delete(key)
            except OSError as e:
                logger.error(f"Error clearing cached key '{key}': {e}")


class TokenSetCache:
    """Durable cache for the OAuth TokenSet and its ProviderUserInfo."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> Tuple[Optional[TokenSet], Optional[ProviderUserInfo]]:
        """
        Read back the cached token set and user info.

        Returns:
            ``(tokens, user_info)``; both None unless both entries are present
            and readable.
        """
        try:
            raw_tokens = self._store.get(KEY_GOOGLE_TOKENS)
            raw_user = self._store.get(KEY_GOOGLE_USER)
            if not raw_tokens or not raw_user:
                return None, None
            tokens = TokenSet.from_dict(json.loads(raw_tokens))
            user_info = ProviderUserInfo.from_dict(json.loads(raw_user))
            return tokens, user_info
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load stored tokens: {e}")
            return None, None

    def save(
        self,
        tokens: Optional[TokenSet],
        user_info: Optional[ProviderUserInfo] = None,
    ) -> None:
        try:
            if tokens is not None:
                self._store.set(KEY_GOOGLE_TOKENS, json.dumps(tokens.to_dict()))
            if user_info is not None:
                self._store.set(KEY_GOOGLE_USER, json.dumps(user_info.to_dict()))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to store tokens: {e}")

    def clear(self) -> None:
        for key in TOKEN_CACHE_KEYS:
            try:
                self._store.delete(key)
            except OSError as e:
                logger.error(f"Error clearing cached key '{key}': {e}")
