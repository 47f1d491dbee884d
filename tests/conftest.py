"""Shared fakes for the scheduler auth tests."""

import json
import os
import sys
import threading
from typing import Callable, Dict, List, Optional

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from scheduler_auth.auth.capabilities import PopupLauncher  # noqa: E402
from scheduler_auth.auth.models import ProviderUserInfo, TokenSet, now_millis  # noqa: E402

APP_ORIGIN = "http://localhost:9878"
BACKEND_URL = "https://store.example.supabase.co"
PARENT_URL = "https://parent.example.supabase.co"


class FakePopup(PopupLauncher):
    """Popup launcher whose window the test closes by hand."""

    def __init__(self, can_open: bool = True) -> None:
        self.can_open = can_open
        self.opened_urls: List[str] = []
        self.closed = False
        self.close_calls = 0
        self.open_thread: Optional[int] = None

    def open(self, url: str) -> bool:
        self.opened_urls.append(url)
        self.open_thread = threading.get_ident()
        return self.can_open

    def is_closed(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeTokenClient:
    """Stands in for GoogleTokenClient without touching the network."""

    def __init__(
        self,
        client_id: str = "client-123.apps.googleusercontent.com",
        client_secret: str = "secret-xyz",
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.exchanged_codes: List[str] = []
        self.refreshed: List[TokenSet] = []
        self.exchange_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self.rotate_refresh_token = False

    def build_auth_url(self) -> str:
        return f"https://accounts.google.com/o/oauth2/v2/auth?client_id={self.client_id}"

    def exchange_code(self, code: str) -> TokenSet:
        self.exchanged_codes.append(code)
        if self.exchange_error is not None:
            raise self.exchange_error
        return TokenSet(
            access_token=f"access-{code}",
            refresh_token="refresh-1",
            id_token="id-1",
            expiry_epoch_millis=now_millis() + 3600 * 1000,
        )

    def refresh(self, tokens: TokenSet) -> TokenSet:
        self.refreshed.append(tokens)
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenSet(
            access_token="access-refreshed",
            refresh_token="refresh-2" if self.rotate_refresh_token else tokens.refresh_token,
            id_token=tokens.id_token,
            expiry_epoch_millis=now_millis() + 3600 * 1000,
        )

    def fetch_user_info(self, access_token: str) -> ProviderUserInfo:
        return ProviderUserInfo(
            id="42",
            email="ada@school.example",
            name="Ada Lovelace",
            picture="https://example.com/ada.png",
            email_verified=True,
        )


class RemoteStoreStub:
    """In-memory stand-in for the remote store's REST surface."""

    def __init__(self) -> None:
        self.users: Dict[str, str] = {"alice": "s3cret"}
        self.secrets: Dict[str, str] = {"OPENAI_API_KEY": "sk-openai"}
        self.tokens: Dict[str, Dict] = {
            "tok-good": {"username": "bob", "is_admin": True},
        }
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[Callable[[httpx.Request], httpx.Response]] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return self.fail_with(request)

        table = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params

        if table == "users_login":
            username = params["username"].removeprefix("eq.")
            if username in self.users:
                return httpx.Response(
                    200, json=[{"username": username, "password": self.users[username]}]
                )
            return httpx.Response(200, json=[])

        if table == "secrets":
            name = params["key_name"].removeprefix("eq.")
            if name in self.secrets:
                return httpx.Response(200, json=[{"key_value": self.secrets[name]}])
            return httpx.Response(200, json=[])

        if table == "auth_tokens":
            token = params["token"].removeprefix("eq.")
            row = self.tokens.get(token)
            if row:
                return httpx.Response(
                    200, json=[dict(row, expires_at="2099-01-01T00:00:00Z")]
                )
            return httpx.Response(200, json=[])

        return httpx.Response(404, json={"message": "unknown table"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def stored_json(store, key: str):
    raw = store.get(key)
    return json.loads(raw) if raw is not None else None


@pytest.fixture
def remote_stub() -> RemoteStoreStub:
    return RemoteStoreStub()


@pytest.fixture
def popup() -> FakePopup:
    return FakePopup()


@pytest.fixture
def token_client() -> FakeTokenClient:
    return FakeTokenClient()
