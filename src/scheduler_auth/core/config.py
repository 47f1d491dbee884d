"""
Shared configuration for scheduler auth.

This module centralizes configuration values read from the environment (and
from a ``.env`` file when one is present) to avoid hardcoded values scattered
throughout the codebase.
"""

import os
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from ..utils.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, HANDSHAKE_TIMEOUT_SECONDS

load_dotenv()

DEFAULT_PORT = 9878
DEFAULT_BASE_URI = "http://localhost"
DEFAULT_CALLBACK_PATH = "/auth/google/callback.html"
DEFAULT_STATE_DIR = "~/.config/classroom-scheduler"
STATE_FILE_NAME = "auth_state.json"


def _origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class AuthConfig:
    """
    Centralized auth configuration management.

    Provides a single source of truth for OAuth client settings, the local
    callback address, and where auth state is persisted.
    """

    def __init__(self) -> None:
        # OAuth client configuration
        self.google_client_id = os.getenv("GOOGLE_CLIENT_ID", "")
        self.google_client_secret = os.getenv("GOOGLE_CLIENT_SECRET", "")

        # Local callback server
        self.base_uri = os.getenv("SCHEDULER_AUTH_BASE_URI", DEFAULT_BASE_URI)
        self.port = int(os.getenv("SCHEDULER_AUTH_PORT", str(DEFAULT_PORT)))
        self.base_url = f"{self.base_uri}:{self.port}"
        self.redirect_uri = self._get_redirect_uri()

        # Persisted state
        self.state_dir = os.path.expanduser(
            os.getenv("SCHEDULER_AUTH_STATE_DIR", DEFAULT_STATE_DIR)
        )

        # Timeouts (seconds)
        self.handshake_timeout = float(
            os.getenv("SCHEDULER_AUTH_HANDSHAKE_TIMEOUT", str(HANDSHAKE_TIMEOUT_SECONDS))
        )
        self.http_timeout = float(
            os.getenv("SCHEDULER_AUTH_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT_SECONDS))
        )

    def _get_redirect_uri(self) -> str:
        explicit_uri = os.getenv("SCHEDULER_AUTH_REDIRECT_URI")
        if explicit_uri:
            return explicit_uri
        return f"{self.base_url}{DEFAULT_CALLBACK_PATH}"

    @property
    def app_origin(self) -> str:
        """Origin popup messages must come from: the redirect URI's origin."""
        return _origin_of(self.redirect_uri)

    @property
    def callback_path(self) -> str:
        return urlparse(self.redirect_uri).path or DEFAULT_CALLBACK_PATH

    @property
    def state_file(self) -> str:
        return os.path.join(self.state_dir, STATE_FILE_NAME)

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration (excluding secrets)."""
        return {
            "base_url": self.base_url,
            "redirect_uri": self.redirect_uri,
            "app_origin": self.app_origin,
            "state_file": self.state_file,
            "google_client_id_set": bool(self.google_client_id),
            "google_client_secret_set": bool(self.google_client_secret),
            "handshake_timeout": self.handshake_timeout,
            "http_timeout": self.http_timeout,
        }


# Global configuration instance
_auth_config: Optional[AuthConfig] = None


def get_auth_config() -> AuthConfig:
    """Get the global auth configuration instance."""
    global _auth_config
    if _auth_config is None:
        _auth_config = AuthConfig()
    return _auth_config


def reload_auth_config() -> AuthConfig:
    """Reload the auth configuration from environment variables."""
    global _auth_config
    _auth_config = AuthConfig()
    return _auth_config
