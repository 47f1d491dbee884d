"""
Google OAuth token exchange for calendar access.

Wraps the provider's authorization, token and userinfo endpoints. Each call
makes a single request with no retry. Failures are reported as
AuthenticationFailedError (or its TokenRefreshError subclass) without the
upstream error body.

All methods are blocking; the OAuth controller runs them off the event loop.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from ..utils.constants import GOOGLE_AUTH_URI, GOOGLE_PROVIDER, GOOGLE_TOKEN_URI
from ..utils.errors import AuthenticationFailedError, TokenRefreshError
from .models import ProviderUserInfo, TokenSet, now_millis
from .scopes import get_scopes

logger = logging.getLogger(__name__)


def _expiry_to_epoch_millis(expiry: Optional[datetime]) -> int:
    """Convert google-auth's naive-UTC expiry to epoch milliseconds."""
    if expiry is None:
        return now_millis()
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)


class GoogleTokenClient:
    """Authorization URL, code exchange, refresh and userinfo for Google."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: Optional[List[str]] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or get_scopes()

    def _client_config(self) -> Dict[str, Any]:
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def create_flow(self) -> Flow:
        """Create an OAuth flow. PKCE is not used by this client."""
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def build_auth_url(self) -> str:
        """
        Build the authorization URL opened in the sign-in popup.

        Consent is always forced so Google issues a refresh token.
        """
        flow = self.create_flow()
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )
        return auth_url

    def exchange_code(self, code: str) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        Args:
            code: The code delivered to the redirect URI.

        Returns:
            The new TokenSet.

        Raises:
            AuthenticationFailedError: If the token endpoint rejects the code
                or cannot be reached.
        """
        # Google returns granted scopes that may differ from the request
        os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

        flow = self.create_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Token exchange failed: {type(e).__name__}")
            raise AuthenticationFailedError(
                "Authentication failed. Please try again.", GOOGLE_PROVIDER
            ) from e

        credentials = flow.credentials
        logger.info("Successfully exchanged authorization code for tokens")
        return TokenSet(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            id_token=getattr(credentials, "id_token", None),
            expiry_epoch_millis=_expiry_to_epoch_millis(credentials.expiry),
        )

    def refresh(self, tokens: TokenSet) -> TokenSet:
        """
        Obtain a new access token with the stored refresh token.

        The refresh token is kept unless Google rotates it.

        Raises:
            TokenRefreshError: If Google refuses the refresh or cannot be reached.
        """
        credentials = Credentials(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            id_token=tokens.id_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

        try:
            credentials.refresh(Request())
        except GoogleAuthError as e:
            logger.warning(f"Token refresh failed: {type(e).__name__}")
            raise TokenRefreshError(GOOGLE_PROVIDER) from e

        logger.info("Access token refreshed")
        return TokenSet(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token or tokens.refresh_token,
            id_token=getattr(credentials, "id_token", None) or tokens.id_token,
            expiry_epoch_millis=_expiry_to_epoch_millis(credentials.expiry),
        )

    def fetch_user_info(self, access_token: str) -> ProviderUserInfo:
        """
        Fetch the signed-in user's profile.

        Raises:
            AuthenticationFailedError: If the profile cannot be fetched.
        """
        try:
            service = build(
                "oauth2",
                "v2",
                credentials=Credentials(token=access_token),
                cache_discovery=False,
            )
            user_info = ProviderUserInfo.from_dict(service.userinfo().get().execute())
        except Exception as e:
            logger.error(f"Error fetching user info: {type(e).__name__}")
            raise AuthenticationFailedError(
                "Failed to fetch user info", GOOGLE_PROVIDER
            ) from e

        logger.info(f"Fetched user info: {user_info.email}")
        return user_info

