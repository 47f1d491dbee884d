"""
Google OAuth Scopes for calendar access.

This module defines the OAuth scopes requested when connecting a Google
calendar: identity, email, profile, and calendar read/write.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)

# Base OAuth scopes required for user identification
OPENID_SCOPE = "openid"
EMAIL_SCOPE = "email"
PROFILE_SCOPE = "profile"

BASE_SCOPES = [OPENID_SCOPE, EMAIL_SCOPE, PROFILE_SCOPE]

# Google Calendar scopes
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
CALENDAR_EVENTS_SCOPE = "https://www.googleapis.com/auth/calendar.events"

CALENDAR_SCOPES = [CALENDAR_SCOPE, CALENDAR_EVENTS_SCOPE]

SCOPES = BASE_SCOPES + CALENDAR_SCOPES


def get_scopes() -> List[str]:
    """
    Get the list of OAuth scopes requested at sign-in.

    Returns:
        List of unique OAuth scopes, in request order.
    """
    return list(dict.fromkeys(SCOPES))
