"""
Core utilities package for scheduler auth.

This package provides shared configuration and the auth context.
"""

from .config import (
    AuthConfig,
    get_auth_config,
    reload_auth_config,
)
from .context import AuthContext

__all__ = [
    # Config
    "AuthConfig",
    "get_auth_config",
    "reload_auth_config",
    # Context
    "AuthContext",
]
