"""
Session and OAuth token management for the classroom scheduler.

This package provides:
- A credential cache over a pluggable key-value store
- The session model, direct login and the embedded-context handshake
- A popup-driven Google OAuth2 controller with expiry tracking and refresh
"""

from .capabilities import KeyValueStore, MessageChannel, MessageEvent, PopupLauncher
from .credential_cache import CredentialCache, TokenSetCache
from .key_value_store import InMemoryKeyValueStore, LocalJsonKeyValueStore
from .message_channel import LocalMessageChannel
from .models import (
    FALLBACK_BACKEND_PARAMS,
    BackendConnectionParams,
    CachedState,
    CalendarCredentials,
    ProviderUserInfo,
    RefreshOutcome,
    Session,
    TokenSet,
)
from .oauth_controller import GoogleOAuthController, OAuthState
from .session_manager import SessionManager

__all__ = [
    # Capabilities
    "KeyValueStore",
    "MessageChannel",
    "MessageEvent",
    "PopupLauncher",
    "InMemoryKeyValueStore",
    "LocalJsonKeyValueStore",
    "LocalMessageChannel",
    # Cache
    "CredentialCache",
    "TokenSetCache",
    # Models
    "FALLBACK_BACKEND_PARAMS",
    "BackendConnectionParams",
    "CachedState",
    "CalendarCredentials",
    "ProviderUserInfo",
    "RefreshOutcome",
    "Session",
    "TokenSet",
    # Session / OAuth
    "SessionManager",
    "GoogleOAuthController",
    "OAuthState",
]
