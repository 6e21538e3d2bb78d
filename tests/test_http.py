"""
Request and Response Tests
"""

import orjson
import pytest

from rakit import Request, Response, Router


class TestRequest:

    def test_create(self):
        request = Request.create("post", "/users?page=2&tag=a&tag=b")

        assert request.method == "POST"
        assert request.path == "/users"
        assert request.query.get("page") == "2"
        assert request.query.get_int("page") == 2
        assert request.query.get_list("tag") == ["a", "b"]

    def test_headers_are_case_insensitive(self):
        request = Request.create(headers={"X-Token": "abc", "Content-Type": "text/plain"})

        assert request.headers.get("x-token") == "abc"
        assert request.headers["X-TOKEN"] == "abc"
        assert request.content_type == "text/plain"

    def test_json_body(self):
        request = Request.create(
            "POST", "/",
            headers={"Content-Type": "application/json"},
            body=orjson.dumps({"name": "John"}),
        )

        assert request.is_json
        assert request.json() == {"name": "John"}
        assert request.input("name") == "John"

    def test_empty_json_body(self):
        assert Request.create("POST", "/").json() is None

    def test_form_body(self):
        request = Request.create(
            "POST", "/",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body="name=John&age=30",
        )

        assert request.form() == {"name": "John", "age": "30"}
        assert request.input("age") == "30"

    def test_input_falls_back_to_query(self):
        request = Request.create("GET", "/search", query={"q": "rakit"})

        assert request.input("q") == "rakit"
        assert request.input("missing", "none") == "none"

    def test_body_is_read_once(self):
        request = Request.create("POST", "/", body=b"payload")

        assert request.body() == b"payload"
        assert request.body() == b"payload"
        assert request.text() == "payload"

    def test_cookies(self):
        request = Request.create(headers={"Cookie": "session=abc; theme=dark"})
        assert request.cookies == {"session": "abc", "theme": "dark"}

    def test_route_params(self):
        router = Router()
        router.get("/users/:id", "show")
        request = Request.create("GET", "/users/9")

        assert request.route() is None
        assert request.params == {}

        request.define_route(router.find_match("/users/9", "GET"))

        assert request.route().path == "/users/:id"
        assert request.param("id") == "9"
        assert request.param("missing", "x") == "x"

    def test_url(self):
        request = Request.create("GET", "/a?b=1", headers={"Host": "example.com"})
        assert request.url == "http://example.com/a?b=1"

    def test_ajax(self):
        assert Request.create(headers={"X-Requested-With": "XMLHttpRequest"}).is_ajax


class TestResponse:

    def test_defaults(self):
        response = Response()

        assert response.status == 200
        assert response.body == ""
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_json(self):
        response = Response().json({"id": 1}, status=201)

        assert response.body == '{"id":1}'
        assert response.status == 201
        assert response.headers["Content-Type"] == "application/json"

    def test_text_and_html(self):
        response = Response()

        assert response.text("plain").headers["Content-Type"].startswith("text/plain")
        assert response.html("<b>x</b>").headers["Content-Type"].startswith("text/html")
        assert response.body == "<b>x</b>"

    def test_status(self):
        response = Response().set_status(404)

        assert response.get_status() == 404
        assert response.status_phrase == "Not Found"

    def test_header_list(self):
        response = Response().html("héllo").header("X-Frame-Options", "DENY")
        response.set_cookie("session", "abc", max_age=60)

        headers = response.header_list()

        assert ("X-Frame-Options", "DENY") in headers
        assert ("Content-Length", str(len("héllo".encode("utf-8")))) in headers
        assert ("Set-Cookie", "session=abc; Max-Age=60; Path=/; HttpOnly; SameSite=Lax") in headers

    def test_redirect_to(self):
        response = Response().redirect_to("/login")

        assert response.status == 302
        assert response.headers["Location"] == "/login"

    def test_send_writes_once(self):
        written = []
        response = Response().html("done")
        response.writer = lambda status, headers, body: written.append((status, body))

        response.send()
        response.send()

        assert written == [(200, b"done")]
        assert response.is_sent

    def test_send_without_app_or_writer(self):
        response = Response()
        response.send()
        assert response.is_sent


@pytest.mark.parametrize("status, token", [(201, "2xx"), (302, "3xx"), (503, "5xx")])
def test_status_class_hooks(app, status, token):
    seen = []
    app.hook.on(token, lambda response, app: seen.append(response.status))

    Response(app=app).set_status(status).send()

    assert seen == [status]
