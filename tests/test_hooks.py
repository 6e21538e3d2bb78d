"""
Hook Tests
"""

import pytest

from rakit import Hook


@pytest.fixture
def hook():
    return Hook()


def test_handlers_run_in_registration_order(hook):
    calls = []
    hook.on("event", lambda: calls.append("first"))
    hook.on("event", lambda: calls.append("second"))

    hook.apply("event")

    assert calls == ["first", "second"]


def test_handlers_share_mutable_arguments(hook):
    message = {"text": "Hi"}

    def add_nyan(message):
        message["text"] += " nyan"

    def add_bang(message):
        message["text"] += "!"

    hook.on("greeting", add_nyan)
    hook.on("greeting", add_bang)
    hook.apply("greeting", [message])

    assert message["text"] == "Hi nyan!"


def test_decorator(hook):
    seen = []

    @hook.on("saved")
    def on_saved(item):
        seen.append(item)

    hook.apply("saved", ["post"])

    assert seen == ["post"]
    assert on_saved.__name__ == "on_saved"


def test_unknown_name_is_noop(hook):
    hook.apply("nothing", [1, 2])
    assert not hook.has("nothing")


def test_integer_names(hook):
    seen = []
    hook.on(404, lambda response: seen.append(response))

    hook.apply(404, ["r"])
    hook.apply("404", ["r"])

    assert seen == ["r"]


def test_once(hook):
    calls = []
    hook.once("boot", lambda: calls.append(1))

    hook.apply("boot")
    hook.apply("boot")

    assert calls == [1]
    assert hook.count("boot") == 0


def test_return_values_are_ignored(hook):
    hook.on("event", lambda: "ignored")
    assert hook.apply("event") is None


def test_errors_propagate(hook):
    def broken():
        raise RuntimeError("boom")

    hook.on("event", broken)

    with pytest.raises(RuntimeError):
        hook.apply("event")


def test_introspection(hook):
    def handler():
        pass

    hook.on("a", handler)
    hook.on("a", handler)
    hook.on("b", handler)

    assert hook.count("a") == 2
    assert hook.handlers("a") == [handler, handler]
    assert hook.names() == ["a", "b"]
