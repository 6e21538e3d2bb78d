"""
Rakit Hooks
===========

Named event hooks. Several handlers may listen on the same name; applying
the hook calls each of them, in registration order, with the same
arguments. Handlers talk to each other by mutating the arguments they
receive (usually the response); return values are discarded.

Event names are free-form: strings, integer status codes (``404``) or
status class tokens (``"4xx"``). There is no wildcard matching.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Union

HookCallback = Callable[..., Any]


@dataclass
class HookHandler:
    """
    Registered hook handler.

    Attributes:
        callback: Handler function
        once: Run on the first apply only
    """

    callback: HookCallback
    once: bool = False
    executed: bool = False

    def execute(self, args: Sequence[Any]) -> None:
        if self.once and self.executed:
            return
        self.executed = True
        self.callback(*args)


class FrameworkHooks:
    """Hook names applied by the framework itself."""

    ERROR = "error"
    APP_EXIT = "app.exit"
    RESPONSE_REDIRECT = "response.redirect"
    RESPONSE_BEFORE_SEND = "response.before_send"


class Hook:
    """
    Registry of named hooks.

    Example:
        hook = Hook()

        @hook.on("response.before_send")
        def add_signature(response, app):
            response.body += " nyan"

        hook.on(404, lambda response, app: response.html("Nothing here"))

        hook.apply("response.before_send", [response, app])
    """

    def __init__(self, app: Optional[Any] = None) -> None:
        self.app = app
        self._handlers: Dict[Hashable, List[HookHandler]] = {}

    def on(
        self,
        name: Hashable,
        callback: Optional[HookCallback] = None,
        once: bool = False,
    ) -> Union[HookCallback, Callable[[HookCallback], HookCallback]]:
        """
        Add a handler to a hook.

        Can be used as a decorator when ``callback`` is omitted.
        """
        def add(func: HookCallback) -> HookCallback:
            self._handlers.setdefault(name, []).append(
                HookHandler(callback=func, once=once)
            )
            return func

        if callback is not None:
            return add(callback)
        return add

    def once(self, name: Hashable, callback: Optional[HookCallback] = None):
        """Add a handler that runs on the first apply only."""
        return self.on(name, callback, once=True)

    def apply(self, name: Hashable, args: Sequence[Any] = ()) -> None:
        """
        Call every handler registered for ``name``.

        Unknown names are a no-op. Errors raised by a handler propagate
        to the caller.
        """
        handlers = self._handlers.get(name)
        if not handlers:
            return

        for handler in list(handlers):
            handler.execute(args)

        self._handlers[name] = [h for h in handlers if not (h.once and h.executed)]

    def has(self, name: Hashable) -> bool:
        return bool(self._handlers.get(name))

    def handlers(self, name: Hashable) -> List[HookCallback]:
        return [h.callback for h in self._handlers.get(name, [])]

    def count(self, name: Hashable) -> int:
        return len(self._handlers.get(name, []))

    def names(self) -> List[Hashable]:
        return [name for name, handlers in self._handlers.items() if handlers]

    def __repr__(self) -> str:
        return f"<Hook names={len(self.names())}>"
