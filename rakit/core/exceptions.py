"""
Rakit Exceptions
================

Error hierarchy shared by the container, router, pipeline and
application. Everything raised by the framework derives from
``RakitError`` so a single exception handler can catch it all.
"""

from __future__ import annotations

from typing import Optional


class RakitError(Exception):
    """Base for all framework errors."""


class HttpError(RakitError):
    """
    An error that maps directly to an HTTP status code.

    The dispatch loop copies ``status`` onto the response before the
    matching exception handler runs.
    """

    default_message = "HTTP Error"

    def __init__(self, status: int = 500, message: Optional[str] = None) -> None:
        self.status = status
        self.message = message or self.default_message
        super().__init__(self.message)


class HttpNotFoundError(HttpError):
    """404 - no route matched, or the application called ``not_found()``."""

    default_message = "Not Found"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(404, message)


class InvalidArgumentError(RakitError, ValueError):
    """Misregistered exception handler or provider."""


class ResolutionError(RakitError):
    """The container could not satisfy a dependency."""


class NotFoundError(RakitError, KeyError):
    """Container key is not registered."""

    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"Container entry {self.key!r} is not registered"


class RouteFrozenError(RakitError):
    """Builder call on a route whose pattern is already compiled."""


class RouteNotFoundError(RakitError):
    """URL requested for an unregistered route name."""


class RedirectSignal(RakitError):
    """
    Raised by ``App.redirect()`` to abort the chain.

    The dispatch loop sends the prepared redirect response without
    consulting exception handlers.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(url)
