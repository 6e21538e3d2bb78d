"""
Rakit Response Object
=====================

Mutable HTTP response shared by the whole middleware chain. Handlers
either return a value (the pipeline stores it through ``json()`` or
``html()``) or mutate ``body`` directly.

``send()`` is terminal: it applies the send hooks, marks the response as
sent and hands status, headers and body to the writer installed by the
host (the WSGI adapter installs one per call).
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional, Tuple

import orjson

from rakit.core.hooks import FrameworkHooks

STATUS_PHRASES = {status.value: status.phrase for status in HTTPStatus}

ResponseWriter = Callable[[int, List[Tuple[str, str]], bytes], None]


@dataclass
class Cookie:
    """One ``Set-Cookie`` value."""

    name: str
    value: str
    max_age: Optional[int] = None
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "Lax"

    def to_header(self) -> str:
        attributes = (
            ("Max-Age", self.max_age),
            ("Path", self.path or None),
            ("Domain", self.domain),
            ("Secure", self.secure or None),
            ("HttpOnly", self.httponly or None),
            ("SameSite", self.samesite or None),
        )
        segments = [f"{self.name}={self.value}"]
        for label, setting in attributes:
            if setting is True:
                segments.append(label)
            elif setting is not None:
                segments.append(f"{label}={setting}")
        return "; ".join(segments)


class Response:
    """
    HTTP Response.

    Example:
        response.html("<h1>Hello</h1>")
        response.json({"id": 1}, status=201)
        response.header("X-Frame-Options", "DENY").set_status(202)
    """

    charset: str = "utf-8"

    def __init__(self, app: Optional[Any] = None) -> None:
        self.app = app
        self.status: int = 200
        self.headers: Dict[str, str] = {"Content-Type": f"text/html; charset={self.charset}"}
        self.body: str = ""
        self.writer: Optional[ResponseWriter] = None
        self._cookies: List[Cookie] = []
        self._sent = False

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def html(self, content: Any, status: Optional[int] = None) -> "Response":
        self.body = "" if content is None else str(content)
        self.headers["Content-Type"] = f"text/html; charset={self.charset}"
        if status is not None:
            self.status = status
        return self

    def text(self, content: Any, status: Optional[int] = None) -> "Response":
        self.body = "" if content is None else str(content)
        self.headers["Content-Type"] = f"text/plain; charset={self.charset}"
        if status is not None:
            self.status = status
        return self

    def json(self, value: Any, status: Optional[int] = None) -> "Response":
        self.body = orjson.dumps(value).decode("utf-8")
        self.headers["Content-Type"] = "application/json"
        if status is not None:
            self.status = status
        return self

    def redirect_to(self, url: str, status: int = 302) -> "Response":
        self.status = status
        self.headers["Location"] = url
        self.body = ""
        return self

    # ------------------------------------------------------------------
    # Status and headers
    # ------------------------------------------------------------------

    def set_status(self, status: int) -> "Response":
        self.status = status
        return self

    def get_status(self) -> int:
        return self.status

    @property
    def status_phrase(self) -> str:
        return STATUS_PHRASES.get(self.status, "Unknown")

    def header(self, name: str, value: str) -> "Response":
        self.headers[name] = value
        return self

    def set_cookie(
        self,
        name: str,
        value: str,
        max_age: Optional[int] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: str = "Lax",
    ) -> "Response":
        self._cookies.append(Cookie(
            name=name,
            value=value,
            max_age=max_age,
            path=path,
            domain=domain,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        ))
        return self

    def delete_cookie(self, name: str, path: str = "/", domain: Optional[str] = None) -> "Response":
        """Expire ``name`` on the client."""
        return self.set_cookie(name=name, value="", max_age=0, path=path, domain=domain)

    def encoded_body(self) -> bytes:
        return self.body.encode(self.charset)

    def header_list(self) -> List[Tuple[str, str]]:
        """Headers as (name, value) pairs, cookies and Content-Length included."""
        headers = [(k, v) for k, v in self.headers.items() if k.lower() != "content-length"]
        headers.append(("Content-Length", str(len(self.encoded_body()))))
        for cookie in self._cookies:
            headers.append(("Set-Cookie", cookie.to_header()))
        return headers

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    @property
    def is_sent(self) -> bool:
        return self._sent

    def send(self) -> None:
        """
        Send the response.

        Applies ``response.before_send``, then the literal status code
        hook (e.g. ``404``) and the status class hook (e.g. ``"4xx"``),
        each with ``(response, app)``. Sending twice is a no-op.
        """
        if self._sent:
            return

        hook = getattr(self.app, "hook", None)
        if hook is not None:
            args = [self, self.app]
            hook.apply(FrameworkHooks.RESPONSE_BEFORE_SEND, args)
            hook.apply(self.status, args)
            hook.apply(f"{self.status // 100}xx", args)

        self.deliver()

    def deliver(self) -> None:
        """Hand the response to the writer without applying hooks."""
        if self._sent:
            return

        self._sent = True

        if self.writer is not None:
            self.writer(self.status, self.header_list(), self.encoded_body())

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.status_phrase}>"
