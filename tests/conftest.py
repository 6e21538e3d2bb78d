"""
Shared fixtures.
"""

import httpx
import pytest

from rakit import App, Request, Response
from rakit.utils.logger import CaptureHandler, Logger, LogLevel


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep RAKIT_* variables from the host out of the config."""
    import os

    for key in list(os.environ):
        if key.startswith("RAKIT_"):
            monkeypatch.delenv(key)


@pytest.fixture
def log_handler():
    return CaptureHandler()


@pytest.fixture
def app(log_handler):
    """Application logging to memory."""
    logger = Logger("rakit.test", level=LogLevel.DEBUG, handlers=[log_handler])
    return App("test", logger=logger)


@pytest.fixture
def dispatch(app):
    """Run one request through the app and return its response."""
    def _dispatch(method="GET", path="/", **kwargs):
        app.request = Request.create(method, path, app=app, **kwargs)
        app.response = Response(app=app)
        app.run()
        return app.response
    return _dispatch


@pytest.fixture
def client(app):
    """HTTP client talking to the app's WSGI interface."""
    transport = httpx.WSGITransport(app=app)
    with httpx.Client(transport=transport, base_url="http://testserver") as client:
        yield client
