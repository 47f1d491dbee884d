"""Tests for configuration and AuthContext wiring."""
import asyncio

import pytest

from scheduler_auth.auth.credential_cache import CredentialCache, TokenSetCache
from scheduler_auth.auth.key_value_store import InMemoryKeyValueStore, LocalJsonKeyValueStore
from scheduler_auth.auth.message_channel import LocalMessageChannel
from scheduler_auth.auth.models import ProviderUserInfo, Session, TokenSet, now_millis
from scheduler_auth.auth.oauth_callback_server import BrowserPopupLauncher
from scheduler_auth.core.config import AuthConfig, get_auth_config, reload_auth_config
from scheduler_auth.core.context import AuthContext
from scheduler_auth.utils.constants import API_VALUES_RESPONSE, REQUEST_API_VALUES

from conftest import APP_ORIGIN, PARENT_URL, FakePopup

ENV_VARS = [
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "SCHEDULER_AUTH_BASE_URI",
    "SCHEDULER_AUTH_PORT",
    "SCHEDULER_AUTH_REDIRECT_URI",
    "SCHEDULER_AUTH_STATE_DIR",
    "SCHEDULER_AUTH_HANDSHAKE_TIMEOUT",
    "SCHEDULER_AUTH_HTTP_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SCHEDULER_AUTH_STATE_DIR", str(tmp_path / "state"))
    return monkeypatch


class TestAuthConfig:
    """Tests for environment-driven configuration."""

    def test_defaults(self, clean_env, tmp_path):
        """Test default callback address and state location."""
        config = AuthConfig()

        assert config.google_client_id == ""
        assert config.port == 9878
        assert config.redirect_uri == "http://localhost:9878/auth/google/callback.html"
        assert config.app_origin == "http://localhost:9878"
        assert config.callback_path == "/auth/google/callback.html"
        assert config.state_file == str(tmp_path / "state" / "auth_state.json")
        assert config.handshake_timeout == 2.0
        assert config.http_timeout == 30.0

    def test_explicit_redirect_uri(self, clean_env):
        """Test that an explicit redirect URI sets origin and callback path."""
        clean_env.setenv("SCHEDULER_AUTH_REDIRECT_URI", "https://sched.example/oauth/done")

        config = AuthConfig()

        assert config.app_origin == "https://sched.example"
        assert config.callback_path == "/oauth/done"

    def test_overrides(self, clean_env):
        """Test numeric overrides from the environment."""
        clean_env.setenv("SCHEDULER_AUTH_PORT", "9999")
        clean_env.setenv("SCHEDULER_AUTH_HANDSHAKE_TIMEOUT", "0.5")

        config = AuthConfig()

        assert config.base_url == "http://localhost:9999"
        assert config.handshake_timeout == 0.5

    def test_summary_hides_secrets(self, clean_env):
        """Test that the environment summary only says whether secrets are set."""
        clean_env.setenv("GOOGLE_CLIENT_SECRET", "very-secret")

        summary = AuthConfig().get_environment_summary()

        assert summary["google_client_secret_set"] is True
        assert "very-secret" not in str(summary)

    def test_reload(self, clean_env):
        """Test that reload picks up environment changes."""
        first = reload_auth_config()
        assert get_auth_config() is first

        clean_env.setenv("GOOGLE_CLIENT_ID", "client-new")
        assert reload_auth_config().google_client_id == "client-new"


class TestAuthContext:
    """Tests for building and starting an AuthContext."""

    @pytest.mark.asyncio
    async def test_default_capabilities(self, clean_env):
        """Test that defaults use the JSON store and the browser launcher."""
        context = AuthContext.create(AuthConfig())

        assert isinstance(context.oauth._popup, BrowserPopupLauncher)
        assert isinstance(context.session._cache._store, LocalJsonKeyValueStore)
        assert await context.start() is None
        assert context._callback_server.loop_bound
        await context.close()
        assert not context.started

    def test_channel_without_launcher(self, clean_env):
        """Test that a message channel alone is rejected."""
        channel, _ = LocalMessageChannel.pair(APP_ORIGIN, APP_ORIGIN)
        with pytest.raises(ValueError):
            AuthContext.create(AuthConfig(), message_channel=channel)

    def test_launcher_without_channel(self, clean_env):
        """Test that a popup launcher alone is rejected."""
        with pytest.raises(ValueError):
            AuthContext.create(AuthConfig(), popup_launcher=FakePopup())

    @pytest.mark.asyncio
    async def test_start_restores_cached_state(self, clean_env, remote_stub):
        """Test that start returns the cached session and restores tokens."""
        store = InMemoryKeyValueStore()
        CredentialCache(store).save(Session(username="carol"))
        TokenSetCache(store).save(
            TokenSet("at", "rt", None, now_millis() + 3600 * 1000),
            ProviderUserInfo(id="42", email="ada@school.example"),
        )
        clean_env.setenv("GOOGLE_CLIENT_ID", "client-123")
        clean_env.setenv("GOOGLE_CLIENT_SECRET", "secret-xyz")
        app_end, _ = LocalMessageChannel.pair(APP_ORIGIN, APP_ORIGIN)

        async with AuthContext.create(
            AuthConfig(),
            store=store,
            message_channel=app_end,
            popup_launcher=FakePopup(),
            transport=remote_stub.transport(),
        ) as context:
            assert context.started
            assert context.session.get_current_user().username == "carol"
            assert context.oauth.get_access_token() == "at"

    @pytest.mark.asyncio
    async def test_start_runs_embedded_handshake(self, clean_env, remote_stub):
        """Test that an embedded context inherits the parent's session on start."""
        child, parent_end = LocalMessageChannel.pair(APP_ORIGIN, "https://portal.example")

        def respond(event):
            if event.message_type == REQUEST_API_VALUES:
                parent_end.send(
                    {
                        "type": API_VALUES_RESPONSE,
                        "data": {
                            "authToken": "tok-good",
                            "SUPABASE_URL": PARENT_URL,
                            "SUPABASE_ANON_KEY": "parent-anon",
                        },
                    },
                    "*",
                )

        parent_end.on_message(respond)
        app_end, _ = LocalMessageChannel.pair(APP_ORIGIN, APP_ORIGIN)

        context = AuthContext.create(
            AuthConfig(),
            store=InMemoryKeyValueStore(),
            parent_channel=child,
            message_channel=app_end,
            popup_launcher=FakePopup(),
            transport=remote_stub.transport(),
        )
        session = await asyncio.wait_for(context.start(), timeout=5)

        assert session == Session(username="bob", is_admin=True)
        assert context.session.get_api_key() is None
        await context.close()
