"""
Rakit Router
============

URL routing with:
- Named path segments and optional groups
- Per-parameter regex constraints
- Route groups with shared prefix, middleware and constraints
- Named routes and URL generation

Matching is a linear scan in registration order; the first route whose
method set and compiled pattern both match wins. A constraint failure
does not stop the scan, the router simply moves on to the next route.

Route Patterns:
    /users                  - Static path
    /users/:id              - Required segment
    /hello/:name(/:age)     - Optional trailing segment
    /posts/:slug.:format    - Several parameters in one segment

Example:
    router = Router()

    router.get("/users/:id", "UserController@show").where("id", r"\\d+")

    def admin_routes(group):
        group.get("/dashboard", "AdminController@dashboard")
        group.get("/users", "AdminController@users")

    router.group("/admin", admin_routes).middleware("auth:admin")
"""

from __future__ import annotations

import copy
import re
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Pattern,
    Sequence,
    Union,
)
from urllib.parse import quote

from rakit.core.exceptions import InvalidArgumentError, RouteFrozenError


class HTTPMethod(str, Enum):
    """HTTP methods supported by the router."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


DEFAULT_PARAM_PATTERN = r"[^/]+"

# ":name" parameter, "(" / ")" optional group delimiters, or literal text
_TOKEN = re.compile(r"(?P<param>:[A-Za-z_][A-Za-z0-9_]*)|(?P<open>\()|(?P<close>\))|(?P<text>[^:()]+|:)")
_PARAM_REF = re.compile(r"/?:([A-Za-z_][A-Za-z0-9_]*)")


def normalize_path(path: str) -> str:
    """Ensure a single leading slash and no trailing slash (except root)."""
    path = "/" + path.strip("/")
    return path


def join_paths(prefix: str, path: str) -> str:
    """Concatenate a group prefix and a route path."""
    prefix = prefix.rstrip("/")
    if not path or path == "/":
        return prefix or "/"
    if path.startswith("("):
        return prefix + path
    return prefix + "/" + path.lstrip("/")


def parse_methods(methods: Union[str, Iterable[str]]) -> List[str]:
    """Accept ``"GET"``, ``"GET|POST"`` or a list; return upper-case, deduplicated."""
    if isinstance(methods, str):
        methods = re.split(r"[|,\s]+", methods)

    parsed: List[str] = []
    for method in methods:
        method = method.strip().upper()
        if not method:
            continue
        if method not in HTTPMethod.__members__:
            raise InvalidArgumentError(f"Unsupported HTTP method '{method}'")
        if method not in parsed:
            parsed.append(method)

    if not parsed:
        raise InvalidArgumentError("A route needs at least one HTTP method")
    return parsed


class Route:
    """
    A registered route.

    Builder methods (``middleware``, ``where``, ``name``) return the
    route so calls can be chained. The path pattern is compiled on the
    first match attempt; after that the constraints are frozen.

    Attributes:
        methods: Allowed HTTP methods, in registration order
        path: Path pattern (e.g. ``/hello/:name(/:age)``)
        action: Controller callable or ``"Class@method"`` descriptor
        conditions: Parameter name to regex constraint
        params: Parameters extracted by a match (only on matched copies)
        groups: Enclosing groups, outermost first
    """

    def __init__(
        self,
        methods: Union[str, Iterable[str]],
        path: str,
        action: Any,
    ) -> None:
        self.methods: List[str] = parse_methods(methods)
        self.path: str = normalize_path(path)
        self.action = action
        self.conditions: Dict[str, str] = {}
        self.params: Dict[str, str] = {}
        self.groups: List["Group"] = []
        self.param_names: List[str] = []
        self._name: Optional[str] = None
        self._middlewares: List[Any] = []
        self._inherited: Dict["Group", List[Any]] = {}
        self._pattern: Optional[Pattern[str]] = None

    # ------------------------------------------------------------------
    # Builder
    # ------------------------------------------------------------------

    def middleware(self, *descriptors: Any) -> "Route":
        """Attach middleware descriptors (``"auth"``, ``"role:admin,editor"``, callables)."""
        for descriptor in descriptors:
            if isinstance(descriptor, (list, tuple)):
                self._middlewares.extend(descriptor)
            else:
                self._middlewares.append(descriptor)
        return self

    def where(
        self,
        param: Union[str, Dict[str, str]],
        pattern: Optional[str] = None,
    ) -> "Route":
        """
        Constrain a parameter with a regex.

        Raises:
            RouteFrozenError: If the route has already been compiled
        """
        if self._pattern is not None:
            raise RouteFrozenError(
                f"Route '{self.path}' is already compiled; constraints are frozen"
            )

        if isinstance(param, dict):
            self.conditions.update(param)
        else:
            if pattern is None:
                raise InvalidArgumentError(f"Missing pattern for parameter '{param}'")
            self.conditions[param] = pattern
        return self

    def name(self, name: str) -> "Route":
        """Name the route for URL generation."""
        self._name = name
        return self

    def _inherit(self, group: "Group", descriptors: Sequence[Any]) -> None:
        self._inherited.setdefault(group, []).extend(descriptors)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def route_name(self) -> Optional[str]:
        return self._name

    @property
    def middlewares(self) -> List[Any]:
        """Group middleware (outermost group first) followed by the route's own."""
        inherited = [
            descriptor
            for group in self.groups
            for descriptor in self._inherited.get(group, [])
        ]
        return inherited + self._middlewares

    @property
    def is_compiled(self) -> bool:
        return self._pattern is not None

    @property
    def pattern(self) -> Pattern[str]:
        if self._pattern is None:
            self._pattern = self._compile()
        return self._pattern

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def _compile(self) -> Pattern[str]:
        """Convert the path pattern to a regex."""
        parts: List[str] = []
        names: List[str] = []
        depth = 0

        for token in _TOKEN.finditer(self.path):
            if token.group("param"):
                name = token.group("param")[1:]
                names.append(name)
                constraint = self.conditions.get(name, DEFAULT_PARAM_PATTERN)
                parts.append(f"(?P<{name}>{constraint})")
            elif token.group("open"):
                depth += 1
                parts.append("(?:")
            elif token.group("close"):
                depth -= 1
                parts.append(")?")
            else:
                parts.append(re.escape(token.group("text")))

        if depth != 0:
            raise InvalidArgumentError(f"Unbalanced parentheses in route '{self.path}'")

        body = "".join(parts)
        if body == "/":
            regex = "^/$"
        else:
            regex = "^" + body + "/?$"

        self.param_names = names
        return re.compile(regex)

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Match a path against this route.

        Returns the extracted parameters (absent optional parameters are
        left out) or None.
        """
        match = self.pattern.match(path)
        if not match:
            return None

        return {
            name: value
            for name, value in match.groupdict().items()
            if value is not None
        }

    def allows(self, method: str) -> bool:
        return method.upper() in self.methods

    def bind(self, params: Dict[str, str]) -> "Route":
        """Copy of this route carrying matched parameters."""
        matched = copy.copy(self)
        matched.params = dict(params)
        return matched

    def url(self, **params: Any) -> str:
        """
        Generate a path from this route.

        Example:
            Route("GET", "/hello/:name(/:age)", handler).url(name="john")
            # -> "/hello/john"
        """
        path = self.path.replace("(", "").replace(")", "")

        def substitute(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in params or params[name] is None:
                return ""
            prefix = "/" if match.group(0).startswith("/") else ""
            return prefix + quote(str(params[name]), safe="")

        return _PARAM_REF.sub(substitute, path) or "/"

    def __repr__(self) -> str:
        return f"<Route {'|'.join(self.methods)} {self.path}>"


class Group:
    """
    A group of routes with shared prefix, middleware and constraints.

    Middleware and constraints applied to the group are copied onto every
    route inside it (recursively) when the builder method is called, and
    onto routes added to the group later.

    Example:
        def api(group):
            group.get("/users", list_users)
            group.group("/admin", admin_routes)

        router.group("/api", api).middleware("auth").where("id", r"\\d+")
    """

    def __init__(
        self,
        router: "Router",
        prefix: str,
        parent: Optional["Group"] = None,
    ) -> None:
        self.router = router
        self.prefix = prefix
        self.parent = parent
        self.conditions: Dict[str, str] = {}
        self._middlewares: List[Any] = []
        self._children: List[Union[Route, "Group"]] = []

    @property
    def lineage(self) -> List["Group"]:
        """Enclosing groups and self, outermost first."""
        chain: List[Group] = []
        group: Optional[Group] = self
        while group is not None:
            chain.insert(0, group)
            group = group.parent
        return chain

    def add(self, child: Union[Route, "Group"]) -> None:
        self._children.append(child)

        if isinstance(child, Route):
            child.groups = self.lineage
            for group in child.groups:
                if group._middlewares:
                    child._inherit(group, group._middlewares)
                for param, pattern in group.conditions.items():
                    child.conditions.setdefault(param, pattern)

    def routes(self) -> Iterator[Route]:
        """All routes in this group and nested groups."""
        for child in self._children:
            if isinstance(child, Group):
                yield from child.routes()
            else:
                yield child

    def middleware(self, *descriptors: Any) -> "Group":
        flat: List[Any] = []
        for descriptor in descriptors:
            if isinstance(descriptor, (list, tuple)):
                flat.extend(descriptor)
            else:
                flat.append(descriptor)

        self._middlewares.extend(flat)
        for route in self.routes():
            route._inherit(self, flat)
        return self

    def where(
        self,
        param: Union[str, Dict[str, str]],
        pattern: Optional[str] = None,
    ) -> "Group":
        """
        Constrain a parameter on every route in the group.

        Raises:
            RouteFrozenError: If a route in the group has already been matched
        """
        conditions = param if isinstance(param, dict) else {param: pattern}
        for name, regex in conditions.items():
            if regex is None:
                raise InvalidArgumentError(f"Missing pattern for parameter '{name}'")
            self.conditions[name] = regex
            for route in self.routes():
                if name not in route.conditions:
                    try:
                        route.where(name, regex)
                    except RouteFrozenError as e:
                        raise RouteFrozenError(
                            f"Cannot constrain group '{self.prefix}': route '{route.path}' "
                            "has already been matched"
                        ) from e
        return self

    def route(self, methods: Union[str, Iterable[str]], path: str, action: Any) -> Route:
        return self.router.register(methods, path, action, group=self)

    def get(self, path: str, action: Any) -> Route:
        return self.router.register("GET", path, action, group=self)

    def post(self, path: str, action: Any) -> Route:
        return self.router.register("POST", path, action, group=self)

    def put(self, path: str, action: Any) -> Route:
        return self.router.register("PUT", path, action, group=self)

    def patch(self, path: str, action: Any) -> Route:
        return self.router.register("PATCH", path, action, group=self)

    def delete(self, path: str, action: Any) -> Route:
        return self.router.register("DELETE", path, action, group=self)

    def group(self, prefix: str, builder: Callable[["Group"], Any]) -> "Group":
        return self.router.group(prefix, builder, parent=self)

    def __repr__(self) -> str:
        return f"<Group {self.prefix} children={len(self._children)}>"


class Router:
    """
    URL Router for Rakit applications.

    Example:
        router = Router()

        router.get("/", home)
        router.get("/hello/:name(/:age)", hello)
        router.route(["GET", "POST"], "/contact", "ContactController@handle")

        route = router.find_match("/hello/john", "GET")
        route.params  # {"name": "john"}
    """

    def __init__(self) -> None:
        self._routes: List[Route] = []
        self._group_stack: List[Group] = []

    def register(
        self,
        methods: Union[str, Iterable[str]],
        path: str,
        action: Any,
        group: Optional[Group] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            methods: ``"GET"``, ``"GET|POST"`` or a list of methods
            path: Path pattern, relative to the group
            action: Controller callable or descriptor
            group: Owning group; defaults to the group whose builder is running

        Returns:
            The route, for fluent configuration
        """
        if group is None and self._group_stack:
            group = self._group_stack[-1]
        if group is not None:
            path = join_paths(group.prefix, path)

        route = Route(methods, path, action)
        if group is not None:
            group.add(route)

        self._routes.append(route)
        return route

    def get(self, path: str, action: Any) -> Route:
        """Register a GET route."""
        return self.register("GET", path, action)

    def post(self, path: str, action: Any) -> Route:
        """Register a POST route."""
        return self.register("POST", path, action)

    def put(self, path: str, action: Any) -> Route:
        """Register a PUT route."""
        return self.register("PUT", path, action)

    def patch(self, path: str, action: Any) -> Route:
        """Register a PATCH route."""
        return self.register("PATCH", path, action)

    def delete(self, path: str, action: Any) -> Route:
        """Register a DELETE route."""
        return self.register("DELETE", path, action)

    def group(
        self,
        prefix: str,
        builder: Callable[[Group], Any],
        parent: Optional[Group] = None,
    ) -> Group:
        """
        Create a route group.

        ``builder`` is called with the group. Routes registered on the
        router or the app while it runs belong to the innermost open group;
        routes registered on a ``Group`` always belong to that group.
        """
        if parent is None and self._group_stack:
            parent = self._group_stack[-1]
        full_prefix = join_paths(parent.prefix, prefix) if parent else normalize_path(prefix)

        group = Group(self, full_prefix, parent)
        if parent is not None:
            parent.add(group)

        self._group_stack.append(group)
        try:
            builder(group)
        finally:
            self._group_stack.pop()

        return group

    def find_match(self, path: str, method: str) -> Optional[Route]:
        """
        Find the first route matching a request.

        Args:
            path: Request path
            method: HTTP method

        Returns:
            A copy of the matched route with ``params`` filled, or None
        """
        path = "/" + path.lstrip("/")
        method = method.upper()

        for route in self._routes:
            if not route.allows(method):
                continue
            params = route.match(path)
            if params is not None:
                return route.bind(params)

        return None

    def find_route_by_name(self, name: str) -> Optional[Route]:
        for route in self._routes:
            if route.route_name == name:
                return route
        return None

    def routes(self) -> List[Route]:
        """Get all registered routes."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)
