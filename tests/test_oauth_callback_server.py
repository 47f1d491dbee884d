"""Tests for the OAuth callback server and browser popup launcher."""
from unittest.mock import Mock

from fastapi.testclient import TestClient

from scheduler_auth.auth.oauth_callback_server import (
    BrowserPopupLauncher,
    MinimalOAuthServer,
    _create_result_html,
)
from scheduler_auth.utils.constants import GOOGLE_AUTH_ERROR, GOOGLE_AUTH_SUCCESS

from conftest import APP_ORIGIN

CALLBACK_PATH = "/auth/google/callback.html"


class TestMinimalOAuthServer:
    """Tests for the callback route."""

    def setup_method(self):
        self.channel = Mock()
        self.loop = Mock()
        self.server = MinimalOAuthServer(
            self.channel, target_origin=APP_ORIGIN, port=9878, callback_path=CALLBACK_PATH
        )
        self.server.bind_loop(self.loop)
        self.client = TestClient(self.server.app)

    def test_code_posts_success(self):
        """Test that a code in the redirect becomes a success message."""
        response = self.client.get(CALLBACK_PATH, params={"code": "abc", "scope": "email"})

        assert response.status_code == 200
        assert "Authentication Successful" in response.text
        self.channel.send_threadsafe.assert_called_once_with(
            {"type": GOOGLE_AUTH_SUCCESS, "code": "abc"}, APP_ORIGIN, self.loop
        )

    def test_error_posts_error(self):
        """Test that a provider error becomes an error message."""
        response = self.client.get(CALLBACK_PATH, params={"error": "access_denied"})

        assert response.status_code == 400
        self.channel.send_threadsafe.assert_called_once_with(
            {"type": GOOGLE_AUTH_ERROR, "error": "access_denied"}, APP_ORIGIN, self.loop
        )

    def test_missing_code(self):
        """Test that a redirect with neither code nor error is an error."""
        response = self.client.get(CALLBACK_PATH)

        assert response.status_code == 400
        message = self.channel.send_threadsafe.call_args.args[0]
        assert message["type"] == GOOGLE_AUTH_ERROR

    def test_no_loop_bound(self):
        """Test that callbacks before a loop is bound are dropped."""
        server = MinimalOAuthServer(self.channel, APP_ORIGIN, port=9878)
        response = TestClient(server.app).get(CALLBACK_PATH, params={"code": "abc"})

        assert response.status_code == 200
        self.channel.send_threadsafe.assert_not_called()

    def test_result_page_escapes_detail(self):
        """Test that provider-supplied text is escaped in the result page."""
        page = _create_result_html("Authentication Failed", "<script>x</script>")
        assert "<script>" not in page
        assert "&lt;script&gt;" in page

    def test_not_running_initially(self):
        """Test that a new server is not alive and stop is a no-op."""
        assert not self.server.is_alive()
        self.server.stop()
        assert not self.server.is_alive()

    def test_loop_bound(self):
        """Test that the server reports whether results have somewhere to go."""
        assert self.server.loop_bound is True
        assert MinimalOAuthServer(self.channel, APP_ORIGIN, port=9878).loop_bound is False

    def test_request_stop_does_not_wait(self):
        """Test that request_stop signals the server without joining its thread."""
        self.server.is_running = True
        self.server.server = Mock()
        self.server.server_thread = Mock()

        self.server.request_stop()

        assert self.server.server.should_exit is True
        assert not self.server.is_alive()
        self.server.server_thread.join.assert_not_called()

    def test_stop_waits_for_thread(self):
        """Test that stop joins a thread still shutting down."""
        self.server.is_running = True
        self.server.server = Mock()
        self.server.server_thread = Mock()
        self.server.server_thread.is_alive.return_value = True

        self.server.stop()

        assert self.server.server.should_exit is True
        self.server.server_thread.join.assert_called_once_with(timeout=3.0)


class TestBrowserPopupLauncher:
    """Tests for the browser-based popup launcher."""

    def setup_method(self):
        self.server = Mock()
        self.server.loop_bound = True
        self.server.start.return_value = (True, "")
        self.opener = Mock(return_value=True)
        self.launcher = BrowserPopupLauncher(self.server, opener=self.opener)

    def test_open_requires_bound_loop(self):
        """Test that opening fails when results could not be delivered."""
        self.server.loop_bound = False

        assert self.launcher.open("https://accounts.google.com/auth") is False
        self.server.start.assert_not_called()

    def test_open(self):
        """Test that open starts the server and the browser."""
        assert self.launcher.open("https://accounts.google.com/auth") is True

        self.server.start.assert_called_once()
        self.opener.assert_called_once_with("https://accounts.google.com/auth")

    def test_server_start_failure(self):
        """Test that a busy port counts as a blocked popup."""
        self.server.start.return_value = (False, "Port 9878 is already in use")

        assert self.launcher.open("https://accounts.google.com/auth") is False
        self.opener.assert_not_called()

    def test_browser_failure_stops_server(self):
        """Test that the server is stopped if no browser opens."""
        self.opener.return_value = False

        assert self.launcher.open("https://accounts.google.com/auth") is False
        self.server.stop.assert_called_once()

    def test_closed_when_server_not_alive(self):
        """Test that the popup is closed once the server stops."""
        self.server.is_alive.return_value = True
        assert self.launcher.is_closed() is False

        self.server.is_alive.return_value = False
        assert self.launcher.is_closed() is True

    def test_close_does_not_block(self):
        """Test that closing the popup only signals the server."""
        self.launcher.close()

        self.server.request_stop.assert_called_once()
        self.server.stop.assert_not_called()
