"""Authentication MCP tools for the classroom scheduler."""

import logging

from ..auth.models import now_millis
from ..utils.constants import HANDSHAKE_SECRET_NAMES
from ..utils.errors import (
    AuthenticationCancelledError,
    SchedulerAuthError,
    format_error,
)
from .main import get_context, mcp

logger = logging.getLogger(__name__)


@mcp.tool()
async def app_login(username: str, password: str) -> str:
    """
    Log in to the scheduler with a username and password.

    Args:
        username: Scheduler account name.
        password: Account password.

    Returns:
        Confirmation or a generic failure message.
    """
    context = await get_context()
    session = await context.session.login(username, password)
    if session is None:
        return "**Login failed:** Invalid username or password"
    return f"Logged in as **{session.username}**."


@mcp.tool()
async def embedded_login() -> str:
    """
    Inherit the session of the page this scheduler is embedded in.

    Returns:
        Confirmation, or why no session was inherited.
    """
    context = await get_context()
    if not context.session.is_embedded():
        return "Not running inside a parent page; use app_login instead."

    session = await context.session.attempt_embedded_login()
    if session is None:
        return "**Login failed:** The parent page did not provide a valid session."
    role = "admin" if session.is_admin else "user"
    return f"Logged in as **{session.username}** ({role}) from the parent page."


@mcp.tool()
async def app_current_user() -> str:
    """
    Show who is logged in and which API keys are provisioned.

    Returns:
        Session summary. Key values are never shown.
    """
    context = await get_context()
    session = context.session.get_current_user()
    if session is None:
        return "Nobody is logged in."

    provisioned = [
        name for name in HANDSHAKE_SECRET_NAMES if context.session.get_api_key(name)
    ]
    lines = [
        f"**User:** {session.username}",
        f"**Admin:** {'yes' if session.is_admin else 'no'}",
        f"**API keys:** {', '.join(provisioned) if provisioned else 'none'}",
    ]
    return "\n".join(lines)


@mcp.tool()
async def app_logout() -> str:
    """Log out of the scheduler and clear cached credentials."""
    context = await get_context()
    context.session.logout()
    return "Logged out."


@mcp.tool()
async def connect_google_calendar() -> str:
    """
    Connect a Google calendar, signing in through the browser if needed.

    Returns:
        Confirmation, or the reason the connection failed.
    """
    context = await get_context()
    oauth = context.oauth

    if not oauth.is_configured():
        return (
            "**Error:** Google OAuth not configured. Please contact your "
            "administrator to set up Google integration."
        )

    try:
        if not oauth.is_authenticated():
            await oauth.sign_in()
    except AuthenticationCancelledError:
        return "Google sign-in was cancelled."
    except SchedulerAuthError as e:
        logger.error(f"Google Calendar connection failed: {e}")
        return f"**Error:** {format_error('Google Calendar connection', e)}"

    credentials = oauth.get_calendar_credentials()
    if credentials is None:
        return "**Error:** Failed to get Google Calendar credentials"

    user = oauth.get_current_user()
    email = user.email if user else "unknown account"
    return f"Google Calendar connected for **{email}**."


@mcp.tool()
async def google_calendar_status() -> str:
    """
    Report the Google calendar connection state.

    Returns:
        State, account, and minutes until the access token expires.
    """
    context = await get_context()
    oauth = context.oauth
    lines = [f"**State:** {oauth.state.value}"]

    user = oauth.get_current_user()
    if user is not None:
        lines.append(f"**Account:** {user.email}")

    tokens = oauth.tokens
    if tokens is not None:
        minutes = (tokens.expiry_epoch_millis - now_millis()) // 60000
        lines.append(f"**Token expires in:** {minutes} min")

    return "\n".join(lines)


@mcp.tool()
async def google_sign_out() -> str:
    """Disconnect the Google calendar and forget its tokens."""
    context = await get_context()
    context.oauth.sign_out()
    return "Signed out of Google."
