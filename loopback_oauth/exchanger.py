"""
OAuth Token Exchanger

Runs the loopback redirect leg of an OAuth 2.0 authorization code flow:
opens the authorization URL in the user's browser, listens on a local port
for the redirect, hands the request to a caller-supplied handler that trades
the authorization code for a token, then stops the listener.
"""

import asyncio
import posixpath
import socketserver
import threading
import webbrowser
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from loopback_oauth._logging import verbose_logger, verbose_server_logger
from loopback_oauth.exceptions import ExchangeTimeoutError, ListenerError

# Default local port on which to listen for the authorization server's redirect
DEFAULT_LISTENER_PORT = 3000

# Default path at which the callback handler is served
DEFAULT_LISTENER_PATH = "/callback"

SUCCESS_MESSAGE = "Token retrieved successfully! Please close the browser window"
ERROR_MESSAGE_PREFIX = "Error retrieving token: "
NOT_FOUND_MESSAGE = "404 page not found\n"
ALREADY_HANDLED_MESSAGE = "Callback already handled\n"


def normalize_listener_path(path: str) -> str:
    """Collapse leading and trailing slashes so the route has exactly one leading slash."""
    return "/" + path.strip("/")


def clean_request_path(path: str) -> str:
    """
    Canonical form of a request path: repeated slashes collapsed and ``.``/``..``
    segments resolved. A trailing slash is kept.
    """
    cleaned = posixpath.normpath("/" + path.lstrip("/"))
    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def build_callback_url(port: int, path: str) -> str:
    return f"http://localhost:{port}{normalize_listener_path(path)}"


def get_default_callback_url() -> str:
    """Redirect URI to register with the authorization server for default settings."""
    return build_callback_url(DEFAULT_LISTENER_PORT, DEFAULT_LISTENER_PATH)


@dataclass(frozen=True)
class CallbackRequest:
    """Snapshot of the redirect request received by the local listener."""
    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)
    form: Dict[str, List[str]] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    raw_path: str = ""

    def get_param(self, name: str) -> Optional[str]:
        """
        First value of a callback parameter.

        Query string parameters take precedence over form-encoded body
        parameters (``response_mode=form_post``).
        """
        values = self.query.get(name) or self.form.get(name)
        return values[0] if values else None

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def code(self) -> Optional[str]:
        return self.get_param("code")

    @property
    def state(self) -> Optional[str]:
        return self.get_param("state")

    @property
    def error(self) -> Optional[str]:
        return self.get_param("error")

    @property
    def error_description(self) -> Optional[str]:
        return self.get_param("error_description")


# Exchanges the authorization code carried by the callback request for a token.
# Failure is reported by raising.
AuthCodeRequestHandler = Callable[[CallbackRequest], Any]


class _CallbackOutcome:
    """
    Single-slot result shared by the callback thread and the exchanging thread.

    A writer must ``claim()`` the slot before resolving it, so exactly one of
    the callback, the timeout or a listener failure decides the outcome.
    """

    def __init__(self):
        self._future: Future = Future()
        self._lock = threading.Lock()
        self._claimed = False

    def claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def set_result(self, token: Any) -> None:
        self._future.set_result(token)

    def set_exception(self, error: BaseException) -> None:
        self._future.set_exception(error)

    def wait(self, timeout: Optional[float] = None) -> bool:
        done, _ = wait([self._future], timeout=timeout)
        return bool(done)

    def result(self) -> Any:
        return self._future.result()


class _CallbackRequestHandler(BaseHTTPRequestHandler):
    """Serves the single callback route; everything else is a 404."""

    server: "_CallbackServer"
    server_version = "LoopbackOAuth"

    # Seconds an idle connection (e.g. a browser pre-connect) may hold a worker
    timeout = 10

    def do_GET(self):
        self._handle_callback()

    do_HEAD = do_GET
    do_POST = do_GET
    do_PUT = do_GET
    do_PATCH = do_GET
    do_DELETE = do_GET
    do_OPTIONS = do_GET

    def _handle_callback(self) -> None:
        # Split by hand: urlsplit reads a leading "//" as a network location
        path, _, query = self.path.partition("?")
        if path != self.server.callback_path:
            if clean_request_path(path) == self.server.callback_path:
                location = self.server.callback_path + (f"?{query}" if query else "")
                self._write_text(
                    HTTPStatus.MOVED_PERMANENTLY,
                    f"Moved Permanently: {location}\n",
                    headers={"Location": location},
                )
            else:
                self._write_text(HTTPStatus.NOT_FOUND, NOT_FOUND_MESSAGE)
            return

        outcome = self.server.outcome
        if not outcome.claim():
            verbose_server_logger.debug(
                f"Ignoring repeat callback request: {self.command} {self.path}"
            )
            self._write_text(HTTPStatus.CONFLICT, ALREADY_HANDLED_MESSAGE)
            return

        verbose_logger.info(f"Authorization callback received: {self.command} {self.server.callback_path}")

        try:
            token = self.server.callback_handler(self._build_callback_request())
        except BaseException as e:
            # SystemExit and KeyboardInterrupt included; they are re-raised by
            # token_exchange in the caller's thread
            verbose_logger.error(f"Callback handler failed: {e!r}")
            self._write_text(HTTPStatus.INTERNAL_SERVER_ERROR, f"{ERROR_MESSAGE_PREFIX}{e}\n")
            outcome.set_exception(e)
            return

        self._write_text(HTTPStatus.OK, SUCCESS_MESSAGE)
        outcome.set_result(token)

    def _build_callback_request(self) -> CallbackRequest:
        path, _, query = self.path.partition("?")

        body = b""
        content_length = int(self.headers.get("Content-Length") or 0)
        if content_length > 0:
            body = self.rfile.read(content_length)

        form: Dict[str, List[str]] = {}
        content_type = (self.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        if body and content_type == "application/x-www-form-urlencoded":
            form = parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True)

        return CallbackRequest(
            method=self.command,
            path=path,
            query=parse_qs(query, keep_blank_values=True),
            form=form,
            headers=dict(self.headers.items()),
            body=body,
            raw_path=self.path,
        )

    def _write_text(
        self,
        status: HTTPStatus,
        message: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        payload = message.encode("utf-8")
        self.close_connection = True
        try:
            self.send_response(status)
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.send_header("Connection", "close")
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(payload)
        except OSError as e:
            # Browser went away; the outcome is still recorded by the caller
            verbose_server_logger.debug(f"Could not write callback response: {e}")

    def log_message(self, format, *args):
        """Route the HTTP server's access log to the debug logger."""
        verbose_server_logger.debug(f"{self.address_string()} - {format % args}")


class _CallbackServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        server_address: Tuple[str, int],
        callback_path: str,
        callback_handler: AuthCodeRequestHandler,
    ):
        self.callback_path = callback_path
        self.callback_handler = callback_handler
        self.outcome = _CallbackOutcome()
        self.stopped = threading.Event()
        super().__init__(server_address, _CallbackRequestHandler)

    def server_bind(self):
        # Skip HTTPServer's reverse DNS lookup of the bind address
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = host or "localhost"
        self.server_port = port


@dataclass(frozen=True)
class OAuthTokenExchanger:
    """
    Configures the local web server and request handler that listen for the
    authorization server's redirect.

    Constructing with only a URL and a handler uses the default listener
    port and path; pass ``listener_port`` / ``listener_path`` to override.

    Example:
        exchanger = OAuthTokenExchanger(auth_url, handler)
        token = exchanger.token_exchange()
    """
    auth_server_request_url: str
    handler: AuthCodeRequestHandler
    listener_port: int = DEFAULT_LISTENER_PORT
    listener_path: str = DEFAULT_LISTENER_PATH
    listener_host: str = ""  # all interfaces
    open_browser: bool = True

    @property
    def callback_path(self) -> str:
        return normalize_listener_path(self.listener_path)

    @property
    def callback_url(self) -> str:
        return build_callback_url(self.listener_port, self.listener_path)

    def token_exchange(self, timeout: Optional[float] = None) -> Any:
        """
        Launch the local web server and run the handler on the first callback.

        Blocks until the listener stops.

        Args:
            timeout: Seconds to wait for a callback. ``None`` waits forever.

        Returns:
            Whatever the handler returned

        Raises:
            ListenerError: If the listener could not start or failed before a callback
            ExchangeTimeoutError: If ``timeout`` passed without a callback
            Exception: Whatever the handler raised, unchanged
        """
        server = self._start_listener()

        verbose_logger.info(f"Waiting for authorization callback on {self.callback_url}")

        if self.open_browser:
            self._launch_browser()

        supervisor = threading.Thread(
            target=self._supervise,
            args=(server, timeout),
            name="loopback-oauth-supervisor",
            daemon=True,
        )
        supervisor.start()

        try:
            server.serve_forever()
        except Exception as e:
            server.stopped.set()
            self._record_listener_failure(server, e)
        finally:
            server.stopped.set()
            # Release the supervisor if the listener stopped without any outcome
            if server.outcome.claim():
                server.outcome.set_exception(
                    ListenerError(
                        "Callback listener stopped before a callback was received",
                        host=self.listener_host,
                        port=self.listener_port,
                    )
                )
            self._close_listener(server)

        return server.outcome.result()

    async def token_exchange_async(self, timeout: Optional[float] = None) -> Any:
        """Run ``token_exchange`` in a worker thread."""
        return await asyncio.to_thread(self.token_exchange, timeout)

    def _start_listener(self) -> _CallbackServer:
        address = (self.listener_host, self.listener_port)
        try:
            return _CallbackServer(address, self.callback_path, self.handler)
        except (OSError, OverflowError) as e:
            # OverflowError: port outside 0-65535
            verbose_logger.error(
                f"Failed to start callback listener on {self.listener_host or '*'}:{self.listener_port}: {e}"
            )
            raise ListenerError(
                f"Could not start callback listener on port {self.listener_port}: {e}",
                host=self.listener_host,
                port=self.listener_port,
            ) from e

    def _launch_browser(self) -> None:
        try:
            opened = webbrowser.open(self.auth_server_request_url)
        except webbrowser.Error as e:
            verbose_logger.debug(f"Browser launch raised: {e}")
            opened = False

        if opened:
            verbose_logger.info("Opened browser for authorization")
        else:
            verbose_logger.warning(
                f"Could not open a browser. Visit this URL to authorize: {self.auth_server_request_url}"
            )

    def _record_listener_failure(self, server: _CallbackServer, error: Exception) -> None:
        if not server.outcome.claim():
            # The callback outcome takes precedence over listener errors
            verbose_logger.warning(f"Ignoring callback listener error after callback: {error}")
            return

        verbose_logger.error(f"Callback listener failed: {error}")
        listener_error = ListenerError(
            f"Callback listener failed: {error}",
            host=self.listener_host,
            port=self.listener_port,
        )
        listener_error.__cause__ = error
        server.outcome.set_exception(listener_error)

    @staticmethod
    def _supervise(server: _CallbackServer, timeout: Optional[float]) -> None:
        """Stop the listener once the outcome is decided or the deadline passes."""
        outcome = server.outcome
        if not outcome.wait(timeout):
            if outcome.claim():
                verbose_logger.warning(f"No authorization callback within {timeout} seconds")
                outcome.set_exception(ExchangeTimeoutError(timeout))
            else:
                # A callback is being handled; let it finish
                outcome.wait()

        if not server.stopped.is_set():
            server.shutdown()

    @staticmethod
    def _close_listener(server: _CallbackServer) -> None:
        # The listener has served its purpose; errors on close are not interesting
        try:
            server.server_close()
        except OSError as e:
            verbose_server_logger.debug(f"Ignoring error while closing callback listener: {e}")
