"""
Rakit Action Pipeline
=====================

Composes the matched route's middleware and its controller into a chain
of continuations.

Given middleware ``[m1 .. mk]`` and controller ``c``, the pipeline
builds ``k + 1`` zero-argument links up front. Link ``i`` closes over
the index of link ``i + 1`` and, when invoked:

1. picks up link ``i + 1`` as its ``next`` (the controller has none)
2. resolves its descriptor to a callable
3. calls it through the container; middleware receive
   ``(request, response, next, *extra)``, the controller receives the
   matched route parameters
4. stores a ``dict``/``list``/``tuple`` return as JSON and a ``str``
   return as HTML; anything else leaves the body alone
5. returns ``response.body``

Running the pipeline invokes link 1. A middleware that never calls
``next()`` short-circuits everything after it; one that calls ``next()``
first can post-process the body the rest of the chain produced.

Errors are never caught here; they travel up to ``App.run()``.

Action descriptors:
    "hello"                    - FunctionRef, a registered function
    "UserController@show"      - MethodRef, a registered class or instance
    "role:admin,editor"        - any of the above plus extra string params
    my_function                - InlineCallable
    (controller, "show")       - MethodRef with a concrete owner
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from rakit.core.exceptions import InvalidArgumentError, ResolutionError

if TYPE_CHECKING:
    from rakit.core.container import Container
    from rakit.core.request import Request
    from rakit.core.response import Response


@dataclass(frozen=True)
class FunctionRef:
    """A callable registered by name."""
    name: str
    params: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodRef:
    """A method on a registered class or instance (``"Class@method"``)."""
    owner: Any
    method: str
    params: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InlineCallable:
    """A callable passed directly."""
    target: Callable[..., Any]
    params: Tuple[str, ...] = ()


ActionRef = Union[FunctionRef, MethodRef, InlineCallable]


def split_params(descriptor: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Split ``"name:p1,p2"`` into ``("name", ("p1", "p2"))``.

    Only the first colon separates the parameters.
    """
    name, separator, raw = descriptor.partition(":")
    if not separator or raw == "":
        return name, ()
    return name, tuple(raw.split(","))


def parse_action(descriptor: Any) -> ActionRef:
    """Turn a string, tuple or callable descriptor into an ``ActionRef``."""
    if isinstance(descriptor, (FunctionRef, MethodRef, InlineCallable)):
        return descriptor

    if isinstance(descriptor, str):
        name, params = split_params(descriptor)
        owner, at, method = name.partition("@")
        if at:
            if not owner or not method:
                raise InvalidArgumentError(f"Malformed action descriptor '{descriptor}'")
            return MethodRef(owner, method, params)
        if not name:
            raise InvalidArgumentError("Empty action descriptor")
        return FunctionRef(name, params)

    if isinstance(descriptor, tuple) and len(descriptor) == 2 and isinstance(descriptor[1], str):
        return MethodRef(descriptor[0], descriptor[1])

    if callable(descriptor):
        return InlineCallable(descriptor)

    raise InvalidArgumentError(f"Cannot use {descriptor!r} as an action")


class ActionRegistry:
    """
    Explicit name-to-target registry for string action descriptors.

    Targets are functions, classes (instantiated through the container on
    every resolution) or instances.

    Example:
        actions = ActionRegistry(container)
        actions.register("UserController", UserController)
        actions.resolve(parse_action("UserController@show"))
    """

    def __init__(self, container: "Container") -> None:
        self.container = container
        self._targets: Dict[str, Any] = {}

    def register(self, name: str, target: Any) -> None:
        self._targets[name] = target

    def has(self, name: str) -> bool:
        return name in self._targets

    def names(self) -> List[str]:
        return list(self._targets)

    def lookup(self, name: str) -> Any:
        if name not in self._targets:
            raise ResolutionError(f"Action '{name}' is not registered")
        return self._targets[name]

    def resolve(self, ref: ActionRef) -> Callable[..., Any]:
        """Produce the callable an ``ActionRef`` points at."""
        if isinstance(ref, InlineCallable):
            return ref.target

        if isinstance(ref, FunctionRef):
            target = self.lookup(ref.name)
            if inspect.isclass(target):
                target = self.container.make(target)
            if not callable(target):
                raise ResolutionError(f"Action '{ref.name}' is not callable")
            return target

        owner = self.lookup(ref.owner) if isinstance(ref.owner, str) else ref.owner
        if inspect.isclass(owner):
            owner = self.container.make(owner)

        method = getattr(owner, ref.method, None)
        if method is None or not callable(method):
            raise ResolutionError(
                f"Method '{ref.method}' not found on {type(owner).__name__}"
            )
        return method


Link = Callable[[], Any]


class Pipeline:
    """
    Middleware and controller chain for one request.

    Example:
        pipeline = Pipeline(
            container, actions, {"auth": check_auth},
            request, response,
            middlewares=["auth", uppercase],
            controller="HomeController@index",
        )
        body = pipeline.run()
    """

    def __init__(
        self,
        container: "Container",
        actions: ActionRegistry,
        named_middlewares: Dict[str, Any],
        request: "Request",
        response: "Response",
        middlewares: Sequence[Any],
        controller: Any,
    ) -> None:
        self.container = container
        self.actions = actions
        self.named_middlewares = named_middlewares
        self.request = request
        self.response = response
        self.middlewares = list(middlewares)
        self.controller = controller

    def build(self) -> List[Link]:
        """Create every link up front; each one closes over the next index."""
        descriptors = self.middlewares + [self.controller]
        last = len(descriptors) - 1
        links: List[Link] = []

        for index, descriptor in enumerate(descriptors):
            links.append(self._make_link(links, index, descriptor, index == last))

        return links

    def run(self) -> Any:
        """Invoke the first link and return the final response body."""
        links = self.build()
        return links[0]()

    def _make_link(
        self,
        links: List[Link],
        index: int,
        descriptor: Any,
        is_controller: bool,
    ) -> Link:
        def link() -> Any:
            next_link: Optional[Link] = links[index + 1] if index + 1 < len(links) else None

            if is_controller:
                callable_, params = self.resolve_controller(descriptor)
            else:
                callable_, params = self.resolve_middleware(
                    descriptor, [self.request, self.response, next_link]
                )

            returned = self.container.call(callable_, params)

            if isinstance(returned, (dict, list, tuple)):
                self.response.json(returned)
            elif isinstance(returned, str):
                self.response.html(returned)

            return self.response.body

        return link

    def resolve_controller(self, descriptor: Any) -> Tuple[Callable[..., Any], List[Any]]:
        """Controller arguments are the matched route params, in pattern order."""
        route = self.request.route()
        params: List[Any] = list(route.params.values()) if route is not None else []

        ref = parse_action(descriptor)
        return self.actions.resolve(ref), params + list(ref.params)

    def resolve_middleware(
        self,
        descriptor: Any,
        params: List[Any],
    ) -> Tuple[Callable[..., Any], List[Any]]:
        """
        Resolve ``"name"`` / ``"name:p1,p2"`` or a direct middleware.

        A registered middleware name maps to its stored target; any other
        name is treated as an action descriptor.
        """
        if isinstance(descriptor, str):
            name, extra = split_params(descriptor)
            params = params + list(extra)
            target = self.named_middlewares.get(name, name)
        else:
            target = descriptor

        ref = parse_action(target)
        return self.actions.resolve(ref), params + list(ref.params)
