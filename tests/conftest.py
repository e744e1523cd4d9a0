"""
Shared fixtures for loopback OAuth tests.

The exchanger binds its listener before launching the browser, so a patched
``webbrowser.open`` doubles as a "listener is ready" signal.
"""

import socket
import threading
from concurrent.futures import Future
from unittest.mock import patch

import pytest

LISTENER_READY_TIMEOUT = 5


@pytest.fixture
def free_port():
    """A localhost port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def browser():
    """Patch webbrowser.open; ``browser.opened`` is set once it is called."""
    opened = threading.Event()

    def _open(url, *args, **kwargs):
        opened.set()
        return True

    with patch("webbrowser.open", side_effect=_open) as mock_open:
        mock_open.opened = opened
        yield mock_open


@pytest.fixture
def start_exchange(browser):
    """
    Run ``token_exchange`` on a daemon thread and wait for the listener.

    Returns a Future resolved with the exchange result.
    """

    def _start(exchanger, timeout=None):
        future = Future()

        def run():
            try:
                future.set_result(exchanger.token_exchange(timeout))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=run, name="test-token-exchange", daemon=True).start()
        assert browser.opened.wait(LISTENER_READY_TIMEOUT), "callback listener never started"
        return future

    return _start
