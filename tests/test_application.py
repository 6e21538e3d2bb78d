"""
Application Tests
"""

import pytest

from rakit import (
    App,
    AppRegistry,
    Config,
    HttpError,
    HttpNotFoundError,
    InvalidArgumentError,
    Provider,
    Request,
    Response,
    RouteNotFoundError,
)
from rakit.utils.logger import LogLevel


class Counter:
    def __init__(self):
        self.value = 0


class CounterProvider(Provider):
    registered = 0
    booted = 0

    def register(self):
        CounterProvider.registered += 1
        self.app.container.singleton(Counter, Counter)

    def boot(self):
        CounterProvider.booted += 1
        self.app.container.get(Counter).value += 1


@pytest.fixture(autouse=True)
def reset_provider_counts():
    CounterProvider.registered = 0
    CounterProvider.booted = 0


class TestDispatch:

    def test_hello(self, app, dispatch):
        app.get("/", lambda: "Hello World!")

        response = dispatch("GET", "/")

        assert response.status == 200
        assert response.body == "Hello World!"
        assert response.is_sent

    def test_decorator_registration(self, app, dispatch):
        @app.get("/hello/:name")
        def hello(name):
            return f"Hello {name}"

        assert hello("x") == "Hello x"
        assert dispatch("GET", "/hello/John").body == "Hello John"

    def test_optional_param_uses_controller_default(self, app, dispatch):
        @app.get("/hello/:name(/:age)")
        def hello(name, age=18):
            return f"{name}:{age!r}"

        assert dispatch("GET", "/hello/John").body == "John:18"
        assert dispatch("GET", "/hello/John/30").body == "John:'30'"

    def test_repeated_run_sends_each_response(self, app):
        sent = []
        app.get("/a", lambda: "A")
        app.get("/b", lambda: "B")
        app.hook.on("response.before_send", lambda response, app: sent.append(response.body))

        app.run("GET", "/a")
        first = app.response
        app.run("GET", "/b")

        assert sent == ["A", "B"]
        assert first.body == "A"
        assert app.response.body == "B"
        assert app.response.is_sent

    def test_explicit_method_and_path_win(self, app, dispatch):
        app.post("/submit", lambda: "posted")
        app.request = Request.create("GET", "/elsewhere", app=app)

        app.run("post", "/submit")

        assert app.response.body == "posted"

    def test_uppercase_middleware(self, app, dispatch):
        def uppercase(request, response, next):
            next()
            return response.body.upper()

        app.middleware("uppercase", uppercase)
        app.get("/hello", lambda: "Hello World!").middleware("uppercase")

        assert dispatch("GET", "/hello").body == "HELLO WORLD!"

    def test_group_middleware(self, app, dispatch):
        def tag(request, response, next, label):
            next()
            return f"{response.body}[{label}]"

        app.middleware("tag", tag)
        app.group(
            "/admin",
            lambda group: group.get("/dashboard", lambda: "dash").middleware("tag:route"),
        ).middleware("tag:group")

        assert dispatch("GET", "/admin/dashboard").body == "dash[route][group]"

    def test_class_controller(self, app, dispatch):
        @app.action()
        class UserController:
            def __init__(self, config: Config):
                self.config = config

            def show(self, id, request: Request):
                return {"id": id, "path": request.path}

        app.get("/users/:id", "UserController@show")

        response = dispatch("GET", "/users/5")

        assert response.body == '{"id":"5","path":"/users/5"}'
        assert response.headers["Content-Type"] == "application/json"

    def test_services_injected_by_type_and_name(self, app, dispatch):
        def show(request: Request, response: Response, app: App, config):
            return f"{request.method} {response is app.response} {config is app.config}"

        app.get("/", show)

        assert dispatch("GET", "/").body == "GET True True"

    def test_app_is_reusable(self, app, dispatch):
        app.get("/one", lambda: "1")
        app.get("/two", lambda: "2")

        assert dispatch("GET", "/one").body == "1"
        assert dispatch("GET", "/two").body == "2"


class TestErrors:

    def test_not_found_default(self, app, dispatch):
        response = dispatch("GET", "/missing")

        assert response.status == 404
        assert response.body == "Not Found"
        assert response.is_sent

    def test_most_specific_handler(self, app, dispatch):
        @app.exception
        def any_error(e: Exception, app: App):
            app.response.html("generic")

        @app.exception
        def not_found(e: HttpNotFoundError, app: App):
            app.response.html("nothing here")

        assert dispatch("GET", "/missing").body == "nothing here"

    def test_base_handler_catches_subclasses(self, app, dispatch):
        @app.exception
        def any_error(e: Exception, app: App):
            app.response.html(f"caught {type(e).__name__}")

        app.get("/", lambda: {}["missing"])

        response = dispatch("GET", "/")

        assert response.body == "caught KeyError"
        assert response.status == 500

    def test_unhandled_error_renders_message_with_500(self, app, dispatch, log_handler):
        def broken():
            raise ValueError("something broke")

        app.get("/", broken)

        response = dispatch("GET", "/")

        assert response.status == 500
        assert response.body == "something broke"

        errors = [r for r in log_handler.records if r.levelno == LogLevel.ERROR]
        assert errors and isinstance(errors[0].exc_info[1], ValueError)
        assert errors[0].context == {"path": "/"}

    def test_handler_can_override_status(self, app, dispatch):
        @app.exception
        def handle(e: ValueError, response: Response):
            response.html("bad input", status=422)

        def broken():
            raise ValueError("nope")

        app.get("/", broken)

        assert dispatch("GET", "/").status == 422

    def test_abort(self, app, dispatch):
        app.get("/secret", lambda: app.abort(403, "Forbidden area"))
        app.get("/gone", lambda: app.abort(404))

        forbidden = dispatch("GET", "/secret")
        gone = dispatch("GET", "/gone")

        assert (forbidden.status, forbidden.body) == (403, "Forbidden area")
        assert (gone.status, gone.body) == (404, "Not Found")

    def test_not_found_helper(self, app, dispatch):
        app.get("/post/:id", lambda id: app.not_found())
        assert dispatch("GET", "/post/1").status == 404

    def test_error_hook_runs_before_handler(self, app, dispatch):
        calls = []

        app.hook.on("error", lambda e: calls.append(("hook", type(e))))

        @app.exception
        def handle(e: HttpError):
            calls.append(("handler", type(e)))

        dispatch("GET", "/missing")

        assert calls == [("hook", HttpNotFoundError), ("handler", HttpNotFoundError)]

    def test_failing_handler_gives_plain_500(self, app, dispatch):
        errors = []
        app.hook.on("error", errors.append)

        @app.exception
        def broken_handler(e: Exception):
            raise RuntimeError("handler failed")

        response = dispatch("GET", "/missing")

        assert response.status == 500
        assert response.body == "Internal Server Error"
        assert response.is_sent
        assert len(errors) == 1

    def test_failing_send_hook_still_sends(self, app, dispatch):
        def broken(response, app):
            raise RuntimeError("hook failed")

        app.hook.on(200, broken)
        app.get("/", lambda: "ok")

        response = dispatch("GET", "/")

        assert response.is_sent
        assert response.status == 500

    def test_exception_handler_needs_exception_type(self, app):
        with pytest.raises(InvalidArgumentError):
            app.exception(lambda e: None)

        def wrong(e: int):
            pass

        with pytest.raises(InvalidArgumentError):
            app.exception(wrong)

    def test_stop_is_not_handled(self, app, dispatch):
        exits = []
        app.hook.on("app.exit", exits.append)

        @app.exception
        def handle(e: Exception):
            pass

        app.get("/", lambda: app.stop())

        with pytest.raises(SystemExit):
            dispatch("GET", "/")
        assert exits == [app]


class TestHooks:

    def test_before_send_chain(self, app, dispatch):
        def add_nyan(response, app):
            response.body += " nyan"

        def add_bang(response, app):
            response.body += "!"

        app.hook.on("response.before_send", add_nyan)
        app.hook.on("response.before_send", add_bang)
        app.get("/", lambda: "Hi")

        assert dispatch("GET", "/").body == "Hi nyan!"

    def test_status_hooks(self, app, dispatch):
        calls = []
        app.hook.on(404, lambda response, app: calls.append(404))
        app.hook.on("4xx", lambda response, app: calls.append("4xx"))

        @app.hook.on("response.before_send")
        def before(response, app):
            calls.append("before_send")

        dispatch("GET", "/missing")

        assert calls == ["before_send", 404, "4xx"]

    def test_status_hook_can_rewrite_body(self, app, dispatch):
        app.hook.on("4xx", lambda response, app: response.html("Custom 404 page"))
        assert dispatch("GET", "/missing").body == "Custom 404 page"


class TestProviders:

    def test_register_runs_immediately(self, app):
        provider = app.provide(CounterProvider)

        assert isinstance(provider, CounterProvider)
        assert provider.app is app
        assert CounterProvider.registered == 1
        assert CounterProvider.booted == 0
        assert not provider.is_booted

    def test_boot_once(self, app, dispatch):
        provider = app.provide(CounterProvider)
        app.get("/", lambda counter: str(counter.value))
        app.container.register("counter", lambda: app.container.get(Counter))

        assert app.boot() is True
        assert app.boot() is False

        dispatch("GET", "/")
        assert dispatch("GET", "/").body == "1"
        assert CounterProvider.booted == 1
        assert provider.is_booted
        assert app.is_booted

    def test_boot_order(self, app):
        order = []

        class First(Provider):
            def boot(self):
                order.append("first")

        class Second(Provider):
            def boot(self):
                order.append("second")

        app.provide(First)
        app.provide(Second)
        app.boot()

        assert order == ["first", "second"]

    def test_provider_instance(self, app):
        provider = CounterProvider(app)
        assert app.provide(provider) is provider

    def test_failed_boot_keeps_later_providers(self, app, dispatch):
        booted = []

        class Broken(Provider):
            def boot(self):
                booted.append("broken")
                raise RuntimeError("boot failed")

        class Later(Provider):
            def boot(self):
                booted.append("later")

        app.provide(Broken)
        app.provide(Later)
        app.get("/", lambda: "ok")

        assert dispatch("GET", "/").status == 500
        assert not app.is_booted

        assert dispatch("GET", "/").body == "ok"
        assert booted == ["broken", "later"]
        assert app.is_booted

    def test_late_provider_boots_immediately(self, app):
        app.boot()
        provider = app.provide(CounterProvider)

        assert provider.is_booted
        assert CounterProvider.booted == 1

    def test_rejects_non_provider(self, app):
        class NotAProvider:
            def __init__(self, app: App):
                self.app = app

        with pytest.raises(InvalidArgumentError):
            app.provide(NotAProvider)


class TestUrls:

    @pytest.fixture
    def site(self, log_handler):
        from rakit.utils.logger import Logger

        return App(
            "site",
            configs={"app": {"base_url": "https://example.com/", "index_file": "index.php"}},
            logger=Logger("rakit.site", handlers=[log_handler]),
        )

    def test_base_url(self, site):
        assert site.base_url() == "https://example.com/"
        assert site.base_url("/assets/app.css") == "https://example.com/assets/app.css"

    def test_index_url(self, site, app):
        assert site.index_url("users") == "https://example.com/index.php/users"
        assert app.index_url("users") == "http://localhost:8000/users"

    def test_route_url(self, site):
        site.get("/hello/:name(/:age)", lambda name, age=18: name).name("hello")

        assert site.route_url("hello", name="john") == "https://example.com/index.php/hello/john"
        assert site.route_url("hello", name="john", age=3).endswith("/hello/john/3")

    def test_route_url_unknown(self, site):
        with pytest.raises(RouteNotFoundError):
            site.route_url("missing")

    def test_redirect_to_path(self, app, dispatch):
        app.get("/old", lambda: app.redirect("/new"))

        response = dispatch("GET", "/old")

        assert response.status == 302
        assert response.headers["Location"] == "http://localhost:8000/new"
        assert response.is_sent

    def test_redirect_to_named_route(self, app, dispatch):
        app.get("/login", lambda: "login").name("login")
        app.get("/account", lambda: app.redirect("login"))

        assert dispatch("GET", "/account").headers["Location"] == "http://localhost:8000/login"

    def test_redirect_skips_exception_handlers(self, app, dispatch):
        handled = []
        redirects = []

        @app.exception
        def handle(e: Exception):
            handled.append(e)

        app.hook.on("response.redirect", lambda url, target: redirects.append((url, target)))
        app.get("/away", lambda: app.redirect("https://example.org/"))

        response = dispatch("GET", "/away")

        assert handled == []
        assert redirects == [("https://example.org/", "https://example.org/")]
        assert response.headers["Location"] == "https://example.org/"


class TestContainerAccess:

    def test_core_services(self, app):
        assert app["app"] is app
        assert app[App] is app
        assert app["config"] is app.config
        assert app["router"] is app.router
        assert app["hook"] is app.hook

    def test_current_request_and_response(self, app):
        request = Request.create("GET", "/", app=app)
        app.request = request

        assert app["request"] is request
        assert app[Response] is app.response

    def test_item_access(self, app):
        app["greeting"] = "hello"

        assert "greeting" in app
        assert app["greeting"] == "hello"

        del app["greeting"]
        assert "greeting" not in app

    def test_debug_flag(self):
        assert App("debugging", debug=True).debug is True

    def test_debug_app_logs_debug_on_shared_logger(self):
        quiet = App("shared-logger")
        loud = App("shared-logger", debug=True)

        assert loud.logger is quiet.logger
        assert loud.logger.level == LogLevel.DEBUG
        assert App("quiet").debug is False


class TestAppRegistry:

    def test_first_added_is_default(self):
        apps = AppRegistry()
        site = apps.add(App("site"))
        admin = apps.add(App("admin"))

        assert apps.get() is site
        assert apps.get("admin") is admin
        assert len(apps) == 2

    def test_set_default(self):
        apps = AppRegistry()
        apps.add(App("site"))
        admin = apps.add(App("admin"))

        apps.set_default("admin")

        assert apps.get() is admin
        assert apps.default_name == "admin"

    def test_unknown(self):
        apps = AppRegistry()

        with pytest.raises(KeyError):
            apps.get()
        with pytest.raises(KeyError):
            apps.set_default("missing")
