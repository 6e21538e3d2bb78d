"""
Rakit Request
=============

A read-only view over one WSGI environ. The body is pulled from
``wsgi.input`` the first time something asks for it.

Example:
    def update_user(request: Request, id):
        data = request.json()
        page = request.query.get_int("page", 1)
        token = request.headers.get("Authorization")
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from http.cookies import SimpleCookie
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Union
from urllib.parse import parse_qs, urlencode

import orjson

if TYPE_CHECKING:
    from rakit.core.router import Route

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _flatten(multi: Dict[str, List[str]]) -> Dict[str, Union[str, List[str]]]:
    return {key: values if len(values) > 1 else values[0] for key, values in multi.items()}


@dataclass
class QueryParams:
    """Parsed query string. ``?tag=a&tag=b`` keeps both values under ``tag``."""

    values: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def parse(cls, query_string: str) -> "QueryParams":
        return cls(parse_qs(query_string, keep_blank_values=True))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        found = self.values.get(key)
        return found[0] if found else default

    def get_list(self, key: str) -> List[str]:
        return list(self.values.get(key, ()))

    def get_int(self, key: str, default: int = 0) -> int:
        raw = self.get(key)
        if raw is not None and raw.lstrip("-").isdigit():
            return int(raw)
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        return default if raw is None else raw.lower() in _TRUTHY

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def to_dict(self) -> Dict[str, Union[str, List[str]]]:
        return _flatten(self.values)


class Headers:
    """Request headers keyed by lower-case name (``CONTENT_TYPE`` -> ``content-type``)."""

    _UNPREFIXED = ("CONTENT_TYPE", "CONTENT_LENGTH")

    def __init__(self, environ: Dict[str, Any]) -> None:
        self._items: Dict[str, str] = {
            self._header_name(key): value
            for key, value in environ.items()
            if value != "" and (key.startswith("HTTP_") or key in self._UNPREFIXED)
        }

    @staticmethod
    def _header_name(environ_key: str) -> str:
        if environ_key.startswith("HTTP_"):
            environ_key = environ_key[5:]
        return environ_key.replace("_", "-").lower()

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._items.get(name.lower(), default)

    def __getitem__(self, name: str) -> str:
        return self._items[name.lower()]

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._items)


class Request:
    """
    One incoming call.

    The WSGI adapter builds one per call; ``Request.create()`` builds one
    without a server.

    Attributes:
        method: Upper-case HTTP method
        query: Parsed query string
        headers: Request headers
        cookies: Request cookies
        state: Free-form storage for middleware
    """

    def __init__(self, environ: Optional[Dict[str, Any]] = None, app: Optional[Any] = None) -> None:
        self.environ: Dict[str, Any] = environ if environ is not None else {}
        self.app = app

        self.method: str = self.environ.get("REQUEST_METHOD", "GET").upper()
        self.query_string: str = self.environ.get("QUERY_STRING", "")
        self.query = QueryParams.parse(self.query_string)
        self.headers = Headers(self.environ)

        self.cookies: Dict[str, str] = {}
        cookie_header = self.headers.get("cookie", "")
        if cookie_header:
            cookie = SimpleCookie()
            cookie.load(cookie_header)
            self.cookies = {key: morsel.value for key, morsel in cookie.items()}

        self.state: Dict[str, Any] = {}

        self._route: Optional["Route"] = None
        self._body: Optional[bytes] = None
        self._json: Any = None
        self._form: Optional[Dict[str, Any]] = None

    @classmethod
    def create(
        cls,
        method: str = "GET",
        path: str = "/",
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Union[bytes, str] = b"",
        app: Optional[Any] = None,
    ) -> "Request":
        """Build a request without a server, e.g. for ``app.run()``."""
        if isinstance(body, str):
            body = body.encode("utf-8")

        path, _, query_string = path.partition("?")
        if query:
            query_string = urlencode(query, doseq=True)

        environ: Dict[str, Any] = {
            "REQUEST_METHOD": method.upper(),
            "PATH_INFO": path,
            "QUERY_STRING": query_string,
            "CONTENT_LENGTH": str(len(body)) if body else "",
            "wsgi.input": io.BytesIO(body),
            "wsgi.url_scheme": "http",
            "SERVER_NAME": "localhost",
            "SERVER_PORT": "80",
        }
        for name, value in (headers or {}).items():
            key = name.upper().replace("-", "_")
            if key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
                environ[key] = value
            else:
                environ["HTTP_" + key] = value

        return cls(environ, app)

    @property
    def path(self) -> str:
        raw = self.environ.get("PATH_INFO", "") or "/"
        # PEP 3333 hands PATH_INFO over as latin-1 decoded bytes
        try:
            return raw.encode("latin-1").decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            return raw

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def define_route(self, route: "Route") -> None:
        """Attach the matched route; its ``params`` become controller arguments."""
        self._route = route

    def route(self) -> Optional["Route"]:
        return self._route

    @property
    def params(self) -> Dict[str, str]:
        return dict(self._route.params) if self._route else {}

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def body(self) -> bytes:
        """Read the request body once; later calls return the cached bytes."""
        if self._body is not None:
            return self._body

        try:
            length = int(self.environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0

        stream = self.environ.get("wsgi.input")
        self._body = stream.read(length) if stream is not None and length > 0 else b""
        return self._body

    def text(self, encoding: str = "utf-8") -> str:
        return self.body().decode(encoding)

    def json(self) -> Any:
        """Parse the body as JSON (None for an empty body)."""
        if self._json is not None:
            return self._json

        body = self.body()
        if not body:
            return None

        self._json = orjson.loads(body)
        return self._json

    def form(self) -> Dict[str, Any]:
        """Parse an url-encoded body; other content types give an empty dict."""
        if self._form is not None:
            return self._form

        content_type = self.headers.get("content-type", "")
        if "application/x-www-form-urlencoded" in content_type:
            parsed = parse_qs(self.text(), keep_blank_values=True)
            self._form = _flatten(parsed)
        else:
            self._form = {}
        return self._form

    def input(self, key: str, default: Any = None) -> Any:
        """Look a value up in the form, then a JSON object body, then the query."""
        form = self.form()
        if key in form:
            return form[key]

        if self.is_json:
            data = self.json()
            if isinstance(data, dict) and key in data:
                return data[key]

        return self.query.get(key, default)

    # ------------------------------------------------------------------
    # Info
    # ------------------------------------------------------------------

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def is_json(self) -> bool:
        return "application/json" in (self.content_type or "")

    @property
    def is_ajax(self) -> bool:
        return self.headers.get("x-requested-with", "").lower() == "xmlhttprequest"

    @property
    def host(self) -> str:
        return self.headers.get("host") or self.environ.get("SERVER_NAME", "")

    @property
    def url(self) -> str:
        scheme = self.environ.get("wsgi.url_scheme", "http")
        query = f"?{self.query_string}" if self.query_string else ""
        return f"{scheme}://{self.host}{self.path}{query}"

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
