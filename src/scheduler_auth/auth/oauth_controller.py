"""
OAuth2 Flow Controller for Google calendar access.

Drives the authorization-code flow through a sign-in popup and owns the
resulting TokenSet and ProviderUserInfo. The token set is independent of the
application Session and is only used for calendar access.

States::

    UNCONFIGURED -> IDLE -> AWAITING_POPUP_RESULT -> AUTHENTICATED
                                                        |
                                                 TOKEN_EXPIRED (lazy)

TOKEN_EXPIRED is never entered by a timer; it is what ``state`` reports once
the access token is within the expiry buffer.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from ..utils.constants import (
    CLIENT_ID_PLACEHOLDER,
    CLIENT_SECRET_PLACEHOLDER,
    GOOGLE_AUTH_ERROR,
    GOOGLE_AUTH_SUCCESS,
    GOOGLE_PROVIDER,
    POPUP_POLL_INTERVAL_SECONDS,
    TOKEN_EXPIRY_BUFFER_MILLIS,
)
from ..utils.errors import (
    AuthenticationCancelledError,
    AuthenticationFailedError,
    ConfigurationError,
    PopupBlockedError,
    RefreshTokenMissingError,
    SchedulerAuthError,
)
from .capabilities import MessageChannel, MessageEvent, PopupLauncher
from .credential_cache import TokenSetCache
from .google_auth import GoogleTokenClient
from .models import CalendarCredentials, ProviderUserInfo, RefreshOutcome, TokenSet

logger = logging.getLogger(__name__)

RefreshListener = Callable[[RefreshOutcome], None]


class OAuthState(str, Enum):
    UNCONFIGURED = "unconfigured"
    IDLE = "idle"
    AWAITING_POPUP_RESULT = "awaiting_popup_result"
    AUTHENTICATED = "authenticated"
    TOKEN_EXPIRED = "token_expired"


class GoogleOAuthController:
    """
    Popup-based Google sign-in with token expiry tracking and refresh.

    Concurrent ``sign_in`` calls are not serialized; each runs its own popup
    and the last one to finish owns the token set.
    """

    def __init__(
        self,
        token_client: GoogleTokenClient,
        token_cache: TokenSetCache,
        message_channel: MessageChannel,
        popup_launcher: PopupLauncher,
        app_origin: str,
        poll_interval: float = POPUP_POLL_INTERVAL_SECONDS,
    ) -> None:
        """
        Initialize the controller.

        Args:
            token_client: Talks to Google's OAuth endpoints.
            token_cache: Persists the token set and user info.
            message_channel: Where the popup reports its result.
            popup_launcher: Opens and supervises the sign-in popup.
            app_origin: Only popup messages from this origin are accepted.
            poll_interval: Seconds between popup liveness checks.
        """
        self._token_client = token_client
        self._token_cache = token_cache
        self._channel = message_channel
        self._popup = popup_launcher
        self._app_origin = app_origin
        self._poll_interval = poll_interval

        self._tokens: Optional[TokenSet] = None
        self._user_info: Optional[ProviderUserInfo] = None
        self._pending_sign_ins = 0
        self._pending_refresh: Optional["asyncio.Task[None]"] = None
        self._refresh_listeners: List[RefreshListener] = []

    # -- state ------------------------------------------------------------

    def is_configured(self) -> bool:
        """True when both client id and secret are set to real values."""
        client_id = self._token_client.client_id
        client_secret = self._token_client.client_secret
        has_client_id = bool(client_id) and client_id != CLIENT_ID_PLACEHOLDER
        has_client_secret = (
            bool(client_secret) and client_secret != CLIENT_SECRET_PLACEHOLDER
        )
        return has_client_id and has_client_secret

    @property
    def state(self) -> OAuthState:
        if not self.is_configured():
            return OAuthState.UNCONFIGURED
        if self._pending_sign_ins:
            return OAuthState.AWAITING_POPUP_RESULT
        if self._tokens is None:
            return OAuthState.IDLE
        if self._is_token_expired():
            return OAuthState.TOKEN_EXPIRED
        return OAuthState.AUTHENTICATED

    @property
    def tokens(self) -> Optional[TokenSet]:
        return self._tokens

    @property
    def pending_refresh(self) -> Optional["asyncio.Task[None]"]:
        """The background refresh started by ``load_stored_tokens``, if any."""
        return self._pending_refresh

    def _is_token_expired(self) -> bool:
        if self._tokens is None:
            return True
        return self._tokens.is_expired(TOKEN_EXPIRY_BUFFER_MILLIS)

    def is_authenticated(self) -> bool:
        return (
            self._tokens is not None
            and self._user_info is not None
            and not self._is_token_expired()
        )

    def get_current_user(self) -> Optional[ProviderUserInfo]:
        return self._user_info

    def get_access_token(self) -> Optional[str]:
        """
        Return the access token if it is not within five minutes of expiry.

        Never refreshes; callers that get None must call
        ``refresh_access_token`` themselves.
        """
        if self._tokens is None or self._is_token_expired():
            return None
        return self._tokens.access_token

    def get_calendar_credentials(self) -> Optional[CalendarCredentials]:
        access_token = self.get_access_token()
        if not access_token:
            return None
        # The calendar API key slot carries the OAuth client id
        return CalendarCredentials(
            api_key=self._token_client.client_id, access_token=access_token
        )

    # -- sign-in ----------------------------------------------------------

    async def sign_in(self) -> None:
        """
        Run the popup sign-in flow to completion.

        Raises:
            ConfigurationError: If OAuth client credentials are not configured.
            PopupBlockedError: If the popup could not be opened.
            AuthenticationCancelledError: If the user closed the popup.
            AuthenticationFailedError: If Google reported an error or the
                code exchange failed.
        """
        if not self.is_configured():
            raise ConfigurationError(
                "Google OAuth not configured. Please set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET environment variables.",
                GOOGLE_PROVIDER,
            )

        auth_url = self._token_client.build_auth_url()

        self._pending_sign_ins += 1
        try:
            code = await self._wait_for_popup_result(auth_url)
            await self._complete_sign_in(code)
        finally:
            self._pending_sign_ins -= 1

    async def _wait_for_popup_result(self, auth_url: str) -> str:
        """
        Open the popup and wait for the first of: success message, error
        message, popup closed.

        Opening may start a local server or a browser, so it runs off the
        event loop.
        """
        loop = asyncio.get_running_loop()
        result: "asyncio.Future[str]" = loop.create_future()
        poll_task: Optional["asyncio.Task[None]"] = None

        def teardown(close_popup: bool) -> None:
            unregister()
            if poll_task is not None and poll_task is not asyncio.current_task():
                poll_task.cancel()
            if close_popup:
                self._popup.close()

        def handle_message(event: MessageEvent) -> None:
            if event.origin != self._app_origin:
                return
            if result.done():
                return

            if event.message_type == GOOGLE_AUTH_SUCCESS:
                teardown(close_popup=True)
                code = event.data.get("code")
                if not code:
                    result.set_exception(
                        AuthenticationFailedError(
                            "No authorization code received", GOOGLE_PROVIDER
                        )
                    )
                else:
                    result.set_result(code)
            elif event.message_type == GOOGLE_AUTH_ERROR:
                teardown(close_popup=True)
                result.set_exception(
                    AuthenticationFailedError(
                        str(event.data.get("error") or "Authentication failed"),
                        GOOGLE_PROVIDER,
                    )
                )

        async def poll_popup() -> None:
            while not result.done():
                await asyncio.sleep(self._poll_interval)
                if self._popup.is_closed() and not result.done():
                    logger.info("Sign-in popup closed before completion")
                    teardown(close_popup=False)
                    result.set_exception(AuthenticationCancelledError(GOOGLE_PROVIDER))

        unregister = self._channel.on_message(handle_message)
        try:
            opened = await asyncio.to_thread(self._popup.open, auth_url)
            if not opened:
                raise PopupBlockedError(GOOGLE_PROVIDER)
            if not result.done():
                poll_task = asyncio.ensure_future(poll_popup())
            return await result
        finally:
            teardown(close_popup=False)

    async def _complete_sign_in(self, code: str) -> None:
        try:
            tokens = await asyncio.to_thread(self._token_client.exchange_code, code)
            user_info = await asyncio.to_thread(
                self._token_client.fetch_user_info, tokens.access_token
            )
        except SchedulerAuthError as e:
            logger.error(f"Token exchange failed: {e}")
            raise AuthenticationFailedError(
                "Authentication failed. Please try again.", GOOGLE_PROVIDER
            ) from e

        self._tokens = tokens
        self._user_info = user_info
        self._token_cache.save(tokens, user_info)
        logger.info(f"Google sign-in complete for {user_info.email}")

    # -- refresh ----------------------------------------------------------

    async def refresh_access_token(self) -> None:
        """
        Exchange the stored refresh token for a new access token.

        Raises:
            RefreshTokenMissingError: If no refresh token is stored.
            TokenRefreshError: If Google refuses the refresh.
        """
        if self._tokens is None or not self._tokens.refresh_token:
            raise RefreshTokenMissingError(GOOGLE_PROVIDER)

        refreshed = await asyncio.to_thread(self._token_client.refresh, self._tokens)
        self._tokens = refreshed
        self._token_cache.save(refreshed, self._user_info)

    def add_refresh_listener(self, listener: RefreshListener) -> Callable[[], None]:
        """
        Observe the outcome of background refreshes.

        Returns:
            A callable that removes the listener.
        """
        self._refresh_listeners.append(listener)

        def remove() -> None:
            if listener in self._refresh_listeners:
                self._refresh_listeners.remove(listener)

        return remove

    def _notify_refresh(self, outcome: RefreshOutcome) -> None:
        for listener in list(self._refresh_listeners):
            try:
                listener(outcome)
            except Exception as e:
                logger.error(f"Refresh listener failed: {e}", exc_info=True)

    async def _background_refresh(self) -> None:
        try:
            await self.refresh_access_token()
        except Exception as e:
            logger.warning(f"Background token refresh failed, signing out: {e}")
            self.sign_out()
            self._notify_refresh(RefreshOutcome(succeeded=False, error=e))
            return
        logger.info("Background token refresh succeeded")
        self._notify_refresh(RefreshOutcome(succeeded=True))

    def load_stored_tokens(self) -> bool:
        """
        Restore the token set and user info from the cache.

        Returns:
            True if both were cached and the token is still fresh, or if it
            has expired but a refresh token exists. In the latter case a
            refresh runs in the background; if it fails the controller signs
            out and refresh listeners are told.
        """
        tokens, user_info = self._token_cache.load()
        if tokens is None or user_info is None:
            return False

        self._tokens = tokens
        self._user_info = user_info

        if not self._is_token_expired():
            return True

        if tokens.refresh_token:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    "Stored token expired and no event loop is running; "
                    "call refresh_access_token() to renew it"
                )
                return True
            self._pending_refresh = loop.create_task(self._background_refresh())
            return True

        return False

    # -- teardown ---------------------------------------------------------

    def sign_out(self) -> None:
        """Forget the token set and user info and clear them from the cache."""
        self._tokens = None
        self._user_info = None
        self._token_cache.clear()
        logger.info("Signed out of Google")

    async def close(self) -> None:
        """Cancel a background refresh that is still running."""
        task = self._pending_refresh
        self._pending_refresh = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
