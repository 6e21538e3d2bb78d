"""
Rakit Application Core
======================

The central orchestrator of the framework. ``App`` owns:
- The service container and the explicit action registry
- Configuration
- The router and named middleware
- Hooks
- Service providers and their two-phase lifecycle
- Exception handlers

Dispatch (``run``):
    boot providers -> match route -> attach route to request
    -> run the middleware/controller pipeline -> send response

Any exception raised on the way is caught in one place: the most
specific registered exception handler for the error's class hierarchy
handles it (or the default one, which renders the message), the
``"error"`` hook is applied first, and a response is always sent.

Example:
    from rakit import App

    app = App("blog", configs={"app": {"base_url": "https://example.com"}})

    def uppercase(request, response, next):
        next()
        return response.body.upper()

    app.middleware("uppercase", uppercase)

    @app.get("/hello/:name(/:age)")
    def hello(name, age=18):
        return f"Hello {name}, you are {age}"

    app.route("GET", "/shout/:name", hello).middleware("uppercase")

    @app.exception
    def not_found(e: HttpNotFoundError, app: App):
        app.response.html("Nothing here")

    app.serve()
"""

from __future__ import annotations

import inspect
import re
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Type,
    Union,
)

from rakit import __version__
from rakit.core.config import Config
from rakit.core.container import Container
from rakit.core.exceptions import (
    HttpError,
    HttpNotFoundError,
    InvalidArgumentError,
    RedirectSignal,
    RouteNotFoundError,
)
from rakit.core.hooks import FrameworkHooks, Hook
from rakit.core.pipeline import ActionRegistry, Pipeline
from rakit.core.provider import Provider
from rakit.core.request import Request
from rakit.core.response import Response
from rakit.core.router import Group, Route, Router
from rakit.utils.logger import Logger, LogLevel, get_logger

ExceptionHandler = Callable[..., Any]


def default_exception_handler(e: Exception, app: App) -> None:
    """Render the error message as the response body."""
    app.response.html(str(e))


class App:
    """
    Rakit Application.

    Attributes:
        name: Application name
        container: Service container
        config: Application configuration
        router: URL router
        hook: Hook registry
        actions: Registry for string action descriptors
        logger: Application logger
        request: Current request
        response: Current response
    """

    VERSION = __version__

    def __init__(
        self,
        name: str = "default",
        configs: Optional[Dict[str, Any]] = None,
        debug: Optional[bool] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.name = name
        self.container = Container()
        self.config = Config(configs)
        if debug is not None:
            self.config.set("app.debug", debug)

        self.router = Router()
        self.hook = Hook(self)
        self.actions = ActionRegistry(self.container)
        if logger is None:
            logger = get_logger(f"rakit.{name}")
            # get_logger only applies a level on creation
            if self.debug:
                logger.set_level(LogLevel.DEBUG)
        self.logger = logger

        self.request = Request(app=self)
        self.response = Response(app=self)

        self._booted = False
        self._middlewares: Dict[str, Any] = {}
        self._providers: List[Provider] = []
        self._exception_handlers: Dict[Type[BaseException], ExceptionHandler] = {}

        self._register_core_services()

    def _register_core_services(self) -> None:
        """Register framework core services."""
        services = {
            "app": (App, self),
            "config": (Config, self.config),
            "router": (Router, self.router),
            "hook": (Hook, self.hook),
            "logger": (Logger, self.logger),
        }
        for name, (cls, instance) in services.items():
            self.container.register(name, instance)
            self.container.register(cls, instance)

        # The current request/response change on every WSGI call
        for key in ("request", Request):
            self.container.register(key, self._current_request)
        for key in ("response", Response):
            self.container.register(key, self._current_response)

    def _current_request(self) -> Request:
        return self.request

    def _current_response(self) -> Response:
        return self.response

    @property
    def debug(self) -> bool:
        return self.config.get_bool("app.debug")

    @property
    def is_booted(self) -> bool:
        return self._booted

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def provide(self, provider: Union[Type[Provider], Provider]) -> Provider:
        """
        Register a service provider and call its ``register()``.

        Providers added after boot are booted immediately.

        Raises:
            InvalidArgumentError: If ``provider`` is not a Provider
        """
        if inspect.isclass(provider):
            provider = self.container.make(provider)

        if not isinstance(provider, Provider):
            raise InvalidArgumentError(
                f"Provider {type(provider).__name__} must be an instance of rakit.Provider"
            )

        provider.register()

        if self._booted:
            self._boot_provider(provider)
        else:
            self._providers.append(provider)
        return provider

    def middleware(self, name: str, target: Any) -> None:
        """Register a named middleware (callable or action descriptor)."""
        self._middlewares[name] = target

    @property
    def middlewares(self) -> Dict[str, Any]:
        return dict(self._middlewares)

    def register_action(self, name: str, target: Any) -> None:
        """Make ``target`` reachable from string descriptors like ``"name"`` or ``"name@method"``."""
        self.actions.register(name, target)

    def action(self, name: Optional[str] = None) -> Callable[[Any], Any]:
        """
        Decorator form of ``register_action``.

        Example:
            @app.action()
            class UserController:
                def show(self, id):
                    ...

            app.get("/users/:id", "UserController@show")
        """
        def decorator(target: Any) -> Any:
            self.register_action(name or target.__name__, target)
            return target
        return decorator

    def exception(self, handler: ExceptionHandler) -> ExceptionHandler:
        """
        Register an exception handler.

        The handler's first parameter annotation selects the exception
        class it handles. Usable as a decorator.

        Raises:
            InvalidArgumentError: If the first parameter is not annotated
                with Exception or a subclass of it
        """
        types = self.container.parameter_types(handler)
        exception_class = types[0] if types else None

        if not (inspect.isclass(exception_class) and issubclass(exception_class, Exception)):
            raise InvalidArgumentError(
                "Parameter 1 of exception handler must be Exception or a subclass of it"
            )

        self._exception_handlers[exception_class] = handler
        return handler

    def find_exception_handler(self, exception_class: Type[BaseException]) -> Optional[ExceptionHandler]:
        """Most specific handler along the class's MRO."""
        for cls in exception_class.__mro__:
            if cls in self._exception_handlers:
                return self._exception_handlers[cls]
        return None

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def route(
        self,
        methods: Union[str, Iterable[str]],
        path: str,
        action: Any = None,
    ) -> Any:
        """
        Register a route and return it for fluent configuration.

        Without ``action`` this is a decorator that registers the
        function and returns it unchanged.
        """
        if action is None:
            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self.router.register(methods, path, func)
                return func
            return decorator

        return self.router.register(methods, path, action)

    def get(self, path: str, action: Any = None) -> Any:
        """Register a GET route."""
        return self.route("GET", path, action)

    def post(self, path: str, action: Any = None) -> Any:
        """Register a POST route."""
        return self.route("POST", path, action)

    def put(self, path: str, action: Any = None) -> Any:
        """Register a PUT route."""
        return self.route("PUT", path, action)

    def patch(self, path: str, action: Any = None) -> Any:
        """Register a PATCH route."""
        return self.route("PATCH", path, action)

    def delete(self, path: str, action: Any = None) -> Any:
        """Register a DELETE route."""
        return self.route("DELETE", path, action)

    def group(self, prefix: str, builder: Callable[[Group], Any]) -> Group:
        """Register a route group; see ``Router.group``."""
        return self.router.group(prefix, builder)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def boot(self) -> bool:
        """
        Boot every registered provider once, in registration order.

        Returns:
            True on the first call, False afterwards
        """
        if self._booted:
            return False

        # Providers queued behind a failing one stay queued for the next boot
        booted = 0
        while self._providers:
            self._boot_provider(self._providers.pop(0))
            booted += 1

        self._booted = True
        self.logger.debug("Application booted", app=self.name, providers=booted)
        return True

    def _boot_provider(self, provider: Provider) -> None:
        provider.boot()
        provider._booted = True

    def run(self, method: Optional[str] = None, path: Optional[str] = None) -> "App":
        """
        Dispatch one request.

        Args:
            method: HTTP method (defaults to the current request's)
            path: Request path (defaults to the current request's)

        Returns:
            The app, after a response has been sent
        """
        if self.response.is_sent:
            self._reset_response()

        try:
            self.boot()

            path = path or self.request.path
            method = (method or self.request.method).upper()

            route = self.router.find_match(path, method)
            if route is None:
                self.logger.debug("No route matched", method=method, path=path)
                raise HttpNotFoundError()

            self.logger.debug("Route matched", method=method, path=path, route=route.path)
            self.request.define_route(route)

            pipeline = Pipeline(
                self.container,
                self.actions,
                self._middlewares,
                self.request,
                self.response,
                middlewares=route.middlewares,
                controller=route.action,
            )
            pipeline.run()
            self.response.send()

        except RedirectSignal as signal:
            self.logger.debug("Redirecting", url=signal.url)
            self._send_safely()

        except Exception as e:
            self._handle_exception(e)

        return self

    def _reset_response(self) -> None:
        """Start a new response on the same writer for the next dispatch."""
        writer = self.response.writer
        self.response = Response(app=self)
        self.response.writer = writer

    def _handle_exception(self, e: Exception) -> None:
        status = e.status if isinstance(e, HttpError) else 500
        self.response.set_status(status)

        if status >= 500:
            self.logger.error("Unhandled error", exception=e, path=self.request.path)
        else:
            self.logger.info("HTTP error", status=status, path=self.request.path)

        handler = self.find_exception_handler(type(e)) or default_exception_handler

        try:
            self.hook.apply(FrameworkHooks.ERROR, [e])
            self.container.call(handler, [e])
        except Exception as handler_error:
            self.logger.error("Exception handler failed", exception=handler_error)
            self.response.html("Internal Server Error", status=500)

        self._send_safely()

    def _send_safely(self) -> None:
        """Send the response; if a send hook fails, deliver a bare 500."""
        try:
            self.response.send()
        except Exception as e:
            self.logger.error("Sending response failed", exception=e)
            self.response.html("Internal Server Error", status=500)
            self.response.deliver()

    def stop(self) -> None:
        """Apply the ``app.exit`` hook and exit the process."""
        self.hook.apply(FrameworkHooks.APP_EXIT, [self])
        raise SystemExit()

    def not_found(self) -> None:
        raise HttpNotFoundError()

    def abort(self, status: int, message: Optional[str] = None) -> None:
        """Raise ``HttpNotFoundError`` for 404, ``HttpError`` otherwise."""
        if status == 404:
            raise HttpNotFoundError(message)
        raise HttpError(status, message)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def base_url(self, path: str = "") -> str:
        base = str(self.config.get("app.base_url", "http://localhost:8000")).rstrip("/")
        return base + "/" + path.strip("/")

    def index_url(self, path: str = "") -> str:
        """URL through the configured front controller (``app.index_file``)."""
        index_file = str(self.config.get("app.index_file", "") or "").strip("/")
        return self.base_url(index_file + "/" + path.strip("/"))

    def route_url(self, route: Union[str, Route], **params: Any) -> str:
        """
        URL for a named route (or a route object).

        Raises:
            RouteNotFoundError: If no route carries that name
        """
        if not isinstance(route, Route):
            found = self.router.find_route_by_name(route)
            if found is None:
                raise RouteNotFoundError(
                    f"Trying to get url from unregistered route named '{route}'"
                )
            route = found

        return self.index_url(route.url(**params))

    def redirect(self, target: str, status: int = 302) -> None:
        """
        Redirect to an absolute URL, a named route or an app path.

        Applies the ``response.redirect`` hook with ``(url, target)`` and
        aborts the current chain.
        """
        if re.match(r"^https?://", target):
            url = target
        elif self.router.find_route_by_name(target):
            url = self.route_url(target)
        else:
            url = self.index_url(target)

        self.hook.apply(FrameworkHooks.RESPONSE_REDIRECT, [url, target])
        self.response.redirect_to(url, status)
        raise RedirectSignal(url)

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    def __call__(self, environ: Dict[str, Any], start_response: Callable[..., Any]) -> List[bytes]:
        """
        WSGI application interface.

        Every call gets a fresh request and response. Not safe for
        concurrent use of a single app instance.
        """
        request = Request(environ, app=self)
        response = Response(app=self)
        chunks: List[bytes] = []

        def write(status: int, headers: List[Any], body: bytes) -> None:
            start_response(f"{status} {response.status_phrase}", headers)
            chunks.append(b"" if request.method == "HEAD" else body)

        response.writer = write
        self.request = request
        self.response = response

        self.run()
        return chunks

    def serve(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        reload: bool = False,
        app_path: Optional[str] = None,
        log_level: str = "info",
    ) -> None:
        """
        Serve the application with uvicorn's WSGI interface.

        Args:
            host: Bind address
            port: Bind port
            reload: Restart on code changes; needs ``app_path``
            app_path: Import string such as ``"blog.main:app"``
            log_level: uvicorn log level
        """
        import uvicorn

        if reload and not app_path:
            raise InvalidArgumentError("serve(reload=True) needs an import string in app_path")

        self.logger.info("Starting server", host=host, port=port, reload=reload)
        uvicorn.run(
            app_path if reload else self,
            reload=reload,
            host=host,
            port=port,
            interface="wsgi",
            log_level=log_level,
        )

    # ------------------------------------------------------------------
    # Container proxy
    # ------------------------------------------------------------------

    def __getitem__(self, key: Any) -> Any:
        return self.container.get(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        self.container.register(key, value)

    def __delitem__(self, key: Any) -> None:
        self.container.remove(key)

    def __contains__(self, key: Any) -> bool:
        return self.container.has(key)

    def __repr__(self) -> str:
        return f"<App {self.name!r} routes={len(self.router)}>"


class AppRegistry:
    """
    Named application instances, owned by the hosting process.

    The first app added becomes the default.

    Example:
        apps = AppRegistry()
        apps.add(App("site"))
        apps.add(App("admin"))

        apps.get()         # the "site" app
        apps.get("admin")
    """

    def __init__(self) -> None:
        self._apps: Dict[str, App] = {}
        self._default: Optional[str] = None

    def add(self, app: App, name: Optional[str] = None) -> App:
        name = name or app.name
        self._apps[name] = app
        if self._default is None:
            self._default = name
        return app

    def get(self, name: Optional[str] = None) -> App:
        name = name or self._default
        if name is None or name not in self._apps:
            raise KeyError(f"Application '{name}' is not registered")
        return self._apps[name]

    def set_default(self, name: str) -> None:
        if name not in self._apps:
            raise KeyError(f"Application '{name}' is not registered")
        self._default = name

    @property
    def default_name(self) -> Optional[str]:
        return self._default

    def __contains__(self, name: str) -> bool:
        return name in self._apps

    def __len__(self) -> int:
        return len(self._apps)


def create_app(name: str = "default", debug: bool = False, **kwargs: Any) -> App:
    """Factory for App instances; useful for application factories and tests."""
    return App(name=name, debug=debug, **kwargs)
