"""Classroom Scheduler Auth - session and calendar OAuth management.

This package manages who is logged in to the classroom scheduler (directly or
by inheriting a parent page's session) and the Google OAuth tokens used for
calendar access.
"""
from .core import AuthConfig, AuthContext
from .auth import GoogleOAuthController, SessionManager

__version__ = "0.1.0"
__all__ = ["AuthConfig", "AuthContext", "GoogleOAuthController", "SessionManager"]
