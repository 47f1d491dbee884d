"""
Data model for sessions, secrets and OAuth tokens.

Serialized forms keep the field names the browser client wrote to its local
storage so that previously cached state still loads.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Mapping of provider API-key names to values associated with a Session
SecretBundle = Dict[str, str]

FALLBACK_SUPABASE_URL = "https://qfitpwdrswvnbmzvkoyd.supabase.co"
FALLBACK_ANON_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.eyJpc3MiOiJzdXBhYmFzZSIsInJlZiI6InFmaX"
    "Rwd2Ryc3d2bmJtenZrb3lkIiwicm9sZSI6ImFub24iLCJpYXQiOjE3NjEzNTc4NTIsImV4cCI6"
    "MjA3NjkzMzg1Mn0.owLaj3VrcyR7_LW9xMwOTTFQupbDKlvAlVwYtbidiNE"
)


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Session:
    """Who is logged in to the scheduling application."""

    username: str
    is_admin: bool = False
    authenticated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "isAdmin": self.is_admin,
            "authenticated": self.authenticated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            username=data["username"],
            is_admin=bool(data.get("isAdmin", False)),
            authenticated=bool(data.get("authenticated", False)),
        )


@dataclass(frozen=True)
class BackendConnectionParams:
    """Address and anonymous key of the remote credential store."""

    endpoint_url: str
    anonymous_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.endpoint_url, "key": self.anonymous_key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackendConnectionParams":
        return cls(endpoint_url=data["url"], anonymous_key=data["key"])

    def is_complete(self) -> bool:
        return bool(self.endpoint_url and self.anonymous_key)


FALLBACK_BACKEND_PARAMS = BackendConnectionParams(
    endpoint_url=FALLBACK_SUPABASE_URL, anonymous_key=FALLBACK_ANON_KEY
)


@dataclass
class CachedState:
    """Partial state read back from the credential cache.

    Any field may be missing; an empty instance means nothing usable was cached.
    """

    session: Optional[Session] = None
    secrets: SecretBundle = field(default_factory=dict)
    backend: Optional[BackendConnectionParams] = None

    def is_empty(self) -> bool:
        return self.session is None and not self.secrets and self.backend is None


@dataclass(frozen=True)
class TokenSet:
    """OAuth access/refresh/ID tokens plus absolute expiry.

    ``expiry_epoch_millis`` is the time the token response was received plus
    the lifetime the provider reported. It is never extended locally.
    """

    access_token: str
    refresh_token: Optional[str]
    id_token: Optional[str]
    expiry_epoch_millis: int

    def is_expired(self, buffer_millis: int = 0, now: Optional[int] = None) -> bool:
        """True once ``now`` has reached ``expiry - buffer``."""
        current = now_millis() if now is None else now
        return current >= self.expiry_epoch_millis - buffer_millis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "idToken": self.id_token,
            "expiryDate": self.expiry_epoch_millis,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSet":
        return cls(
            access_token=data["accessToken"],
            refresh_token=data.get("refreshToken"),
            id_token=data.get("idToken"),
            expiry_epoch_millis=int(data["expiryDate"]),
        )


@dataclass(frozen=True)
class ProviderUserInfo:
    """Profile returned by the identity provider's userinfo endpoint."""

    id: str
    email: str
    name: str = ""
    picture: str = ""
    email_verified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
            "verified_email": self.email_verified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderUserInfo":
        return cls(
            id=str(data["id"]),
            email=data.get("email", ""),
            name=data.get("name", ""),
            picture=data.get("picture", ""),
            email_verified=bool(data.get("verified_email", False)),
        )


@dataclass(frozen=True)
class CalendarCredentials:
    """Credentials handed to calendar integrations.

    ``api_key`` carries the OAuth client identifier.
    """

    api_key: str
    access_token: str


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of a background token refresh started by ``load_stored_tokens``."""

    succeeded: bool
    error: Optional[BaseException] = None
