"""
Rakit Service Providers
=======================

Two-phase bootstrap units. ``register()`` runs as soon as the provider
is added to the app and should only bind things into the container.
``boot()`` runs once, in registration order, on the first ``App.run()``,
when every provider has registered and bindings can be used.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rakit.core.application import App


class Provider:
    """
    Base class for all providers.

    Example:
        class MailProvider(Provider):
            def register(self) -> None:
                self.app.container.singleton(Mailer, lambda config: Mailer(config))

            def boot(self) -> None:
                self.app.hook.on("error", self.report)
    """

    def __init__(self, app: "App") -> None:
        self.app = app
        self._booted = False

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def is_booted(self) -> bool:
        return self._booted

    def register(self) -> None:
        """Bind services into the container."""

    def boot(self) -> None:
        """Use services once every provider has registered."""

    def __repr__(self) -> str:
        return f"<Provider {self.name} booted={self._booted}>"
