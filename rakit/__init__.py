"""
Rakit - Tiny Python Web Micro-Framework
=======================================

A small synchronous web framework built around four pieces:

- Router: method + path patterns with optional segments, constraints,
  groups and named routes
- Container: signature-based dependency injection
- Pipeline: middleware and controller composed as a continuation chain
- App: provider lifecycle, dispatch loop, exception handlers and hooks

Quick Start:
    from rakit import App

    app = App()

    @app.get("/hello/:name")
    def hello(name):
        return f"Hello {name}!"

    app.serve()
"""

from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

from rakit.core.application import App, AppRegistry, create_app
from rakit.core.config import Config
from rakit.core.container import Container
from rakit.core.exceptions import (
    HttpError,
    HttpNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    RakitError,
    RedirectSignal,
    ResolutionError,
    RouteFrozenError,
    RouteNotFoundError,
)
from rakit.core.hooks import Hook
from rakit.core.provider import Provider
from rakit.core.request import Request
from rakit.core.response import Response
from rakit.core.router import Group, Route, Router


def __getattr__(name: str):
    """Lazy loading of utilities."""
    _imports = {
        "Logger": "rakit.utils.logger",
        "LogLevel": "rakit.utils.logger",
        "get_logger": "rakit.utils.logger",
        "configure_logging": "rakit.utils.logger",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'rakit' has no attribute '{name}'")


__all__ = [
    "__version__",
    "__license__",
    # Core
    "App",
    "AppRegistry",
    "create_app",
    "Config",
    "Container",
    "Hook",
    "Provider",
    "Request",
    "Response",
    "Group",
    "Route",
    "Router",
    # Errors
    "RakitError",
    "HttpError",
    "HttpNotFoundError",
    "InvalidArgumentError",
    "NotFoundError",
    "RedirectSignal",
    "ResolutionError",
    "RouteFrozenError",
    "RouteNotFoundError",
    # Utils (lazy)
    "Logger",
    "LogLevel",
    "get_logger",
    "configure_logging",
]
