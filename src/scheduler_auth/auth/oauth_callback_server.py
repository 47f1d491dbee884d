"""
OAuth callback server and browser popup launcher.

Outside a browser there is no popup window to post messages back to its
opener. Instead the sign-in page is opened in the system browser and Google
redirects to a minimal local HTTP server, which turns the redirect into the
same ``GOOGLE_AUTH_SUCCESS`` / ``GOOGLE_AUTH_ERROR`` messages a popup would
post, sent from the server's own origin.
"""

import asyncio
import html
import logging
import socket
import threading
import time
import webbrowser
from typing import Callable, Optional, Tuple
from urllib.parse import urlparse

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from ..utils.constants import GOOGLE_AUTH_ERROR, GOOGLE_AUTH_SUCCESS
from .capabilities import PopupLauncher
from .message_channel import LocalMessageChannel

logger = logging.getLogger(__name__)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; margin-top: 15vh;">
    <h1>{title}</h1>
    <p>{detail}</p>
    <p>You can close this window and return to the scheduler.</p>
</body>
</html>
"""


def _create_result_html(title: str, detail: str) -> str:
    return _PAGE_TEMPLATE.format(title=html.escape(title), detail=html.escape(detail))


class MinimalOAuthServer:
    """
    Minimal HTTP server receiving Google's OAuth redirect.

    Runs uvicorn in a background thread and forwards each callback to the
    application's event loop as a popup message.
    """

    def __init__(
        self,
        channel: LocalMessageChannel,
        target_origin: str,
        port: int,
        base_uri: str = "http://localhost",
        callback_path: str = "/auth/google/callback.html",
    ) -> None:
        """
        Args:
            channel: The server's end of the channel to the application.
            target_origin: Origin of the application end.
            port: Port to listen on.
            base_uri: Scheme and host to listen on.
            callback_path: Path Google redirects to.
        """
        self.port = port
        self.base_uri = base_uri
        self.callback_path = callback_path
        self.app = FastAPI()
        self.server: Optional[uvicorn.Server] = None
        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

        self._channel = channel
        self._target_origin = target_origin
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._setup_callback_route()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop that callback messages are delivered on."""
        self._loop = loop

    @property
    def loop_bound(self) -> bool:
        return self._loop is not None

    def _post(self, message: dict) -> None:
        if self._loop is None:
            logger.error("OAuth callback received before an event loop was bound")
            return
        self._channel.send_threadsafe(message, self._target_origin, self._loop)

    def _setup_callback_route(self) -> None:
        """Setup the OAuth callback route."""

        @self.app.get(self.callback_path)
        async def oauth_callback(request: Request) -> HTMLResponse:
            """Handle OAuth callback from Google."""
            code = request.query_params.get("code")
            error = request.query_params.get("error")

            if error:
                logger.error(f"Google returned an error: {error}")
                self._post({"type": GOOGLE_AUTH_ERROR, "error": error})
                return HTMLResponse(
                    content=_create_result_html("Authentication Failed", error),
                    status_code=400,
                )

            if not code:
                error_message = "No authorization code received from Google"
                logger.error(error_message)
                self._post({"type": GOOGLE_AUTH_ERROR, "error": error_message})
                return HTMLResponse(
                    content=_create_result_html("Authentication Failed", error_message),
                    status_code=400,
                )

            logger.info("OAuth callback: received authorization code")
            self._post({"type": GOOGLE_AUTH_SUCCESS, "code": code})
            return HTMLResponse(
                content=_create_result_html(
                    "Authentication Successful", "Your Google calendar is connecting."
                )
            )

    def _hostname(self) -> str:
        return urlparse(self.base_uri).hostname or "localhost"

    def start(self) -> Tuple[bool, str]:
        """
        Start the server.

        Returns:
            Tuple of (success: bool, error_message: str)
        """
        if self.is_alive():
            logger.info("OAuth callback server is already running")
            return True, ""

        # A server asked to stop may still be releasing the port
        if self.server_thread is not None and self.server_thread.is_alive():
            self.server_thread.join(timeout=3.0)

        hostname = self._hostname()

        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((hostname, self.port))
        except OSError:
            error_msg = f"Port {self.port} is already in use"
            logger.error(error_msg)
            return False, error_msg

        def run_server() -> None:
            try:
                config = uvicorn.Config(
                    self.app,
                    host=hostname,
                    port=self.port,
                    log_level="warning",
                    access_log=False,
                )
                self.server = uvicorn.Server(config)
                asyncio.run(self.server.serve())
            except Exception as e:
                logger.error(f"OAuth callback server error: {e}", exc_info=True)
            finally:
                self.is_running = False

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()

        max_wait = 3.0
        start_time = time.time()
        while time.time() - start_time < max_wait:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                if s.connect_ex((hostname, self.port)) == 0:
                    self.is_running = True
                    logger.info(f"OAuth callback server started on {hostname}:{self.port}")
                    return True, ""
            time.sleep(0.1)

        error_msg = f"Failed to start OAuth callback server on {hostname}:{self.port}"
        logger.error(error_msg)
        return False, error_msg

    def is_alive(self) -> bool:
        return (
            self.is_running
            and self.server_thread is not None
            and self.server_thread.is_alive()
        )

    def request_stop(self) -> None:
        """Ask the server to exit without waiting for its thread."""
        if not self.is_running:
            return

        if self.server is not None:
            self.server.should_exit = True

        self.is_running = False
        logger.info("OAuth callback server stopping")

    def stop(self) -> None:
        """Stop the server and wait for its thread to finish."""
        self.request_stop()

        if self.server_thread and self.server_thread.is_alive():
            self.server_thread.join(timeout=3.0)
            logger.info("OAuth callback server stopped")


class BrowserPopupLauncher(PopupLauncher):
    """
    Opens the sign-in page in the system browser.

    The "popup" counts as closed once the callback server is no longer
    running, or if the browser could not be opened at all. ``open`` blocks
    while the server starts and must be called off the event loop; ``close``
    only signals the server and is safe to call on the loop.
    """

    def __init__(
        self,
        server: MinimalOAuthServer,
        opener: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._server = server
        self._opener = opener

    def open(self, url: str) -> bool:
        if not self._server.loop_bound:
            logger.error("OAuth callback server has no event loop to deliver results to")
            return False

        success, error_msg = self._server.start()
        if not success:
            logger.error(f"Cannot open sign-in popup: {error_msg}")
            return False

        if not self._opener(url):
            logger.error("Could not open a browser for sign-in")
            self._server.stop()
            return False

        logger.info("Opened Google sign-in in the system browser")
        return True

    def is_closed(self) -> bool:
        return not self._server.is_alive()

    def close(self) -> None:
        self._server.request_stop()
