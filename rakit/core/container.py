"""
Rakit Service Container
=======================

Lightweight dependency injection container.

Entries are stored under string or class keys and come in three kinds:

- raw values: returned as-is
- factories: plain functions, lambdas or bound methods, invoked on every
  ``get`` (or once, when registered through ``singleton``)
- protected callables: wrapped with ``protect`` and returned verbatim

Callables are invoked through ``call``, which fills each parameter in
this order:

1. the next unused positional value
2. a matching keyword value
3. an entry registered under the parameter's annotated class
4. an entry registered under the parameter's name
5. the parameter's default

Example:
    container = Container()
    container.register(Config, Config())
    container.register("mailer", lambda config: Mailer(config.get("mail")))

    def send(to: str, config: Config, retries: int = 3):
        ...

    container.call(send, ["john@example.com"])
"""

from __future__ import annotations

import functools
import inspect
from types import UnionType
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
    get_args,
    get_origin,
)

from rakit.core.exceptions import NotFoundError, ResolutionError


_empty = inspect.Parameter.empty


class Protected:
    """Marks a callable the container must never invoke on ``get``."""

    __slots__ = ("callable",)

    def __init__(self, fn: Callable[..., Any]) -> None:
        self.callable = fn

    def __repr__(self) -> str:
        return f"<Protected {self.callable!r}>"


def describe(target: Any) -> str:
    """Human readable name for a callable, used in error messages."""
    name = getattr(target, "__qualname__", None) or getattr(target, "__name__", None)
    if name is None:
        name = type(target).__qualname__
    return name


class Container:
    """
    Name-to-value registry with signature based dependency resolution.

    The container registers itself under the ``Container`` class so
    factories can ask for it by annotation.
    """

    def __init__(self) -> None:
        self._entries: Dict[Any, Any] = {}
        self._shared: Set[Any] = set()
        self._instances: Dict[Any, Any] = {}
        self.register(Container, self)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, key: Any, value: Any) -> None:
        """Store a value, factory or protected callable. Overwrites."""
        self._entries[key] = value
        self._shared.discard(key)
        self._instances.pop(key, None)

    set = register

    def singleton(self, key: Any, factory: Callable[..., Any]) -> None:
        """Register a factory (function or class) whose first result is cached."""
        self.register(key, factory)
        self._shared.add(key)

    def protect(self, fn: Callable[..., Any]) -> Protected:
        """Wrap ``fn`` so it is stored and returned without being invoked."""
        return Protected(fn)

    def get(self, key: Any) -> Any:
        """
        Resolve an entry.

        Raises:
            NotFoundError: If ``key`` was never registered
        """
        if key not in self._entries:
            raise NotFoundError(key)

        if key in self._instances:
            return self._instances[key]

        value = self._entries[key]

        if isinstance(value, Protected):
            return value.callable

        if self.is_factory(value) or key in self._shared:
            instance = self.call(value)
            if key in self._shared:
                self._instances[key] = instance
            return instance

        return value

    def raw(self, key: Any) -> Any:
        """Return the stored entry without invoking factories."""
        if key not in self._entries:
            raise NotFoundError(key)
        return self._entries[key]

    def has(self, key: Any) -> bool:
        return key in self._entries

    def remove(self, key: Any) -> None:
        self._entries.pop(key, None)
        self._instances.pop(key, None)
        self._shared.discard(key)

    def keys(self) -> List[Any]:
        return list(self._entries)

    @staticmethod
    def is_factory(value: Any) -> bool:
        """Plain functions, lambdas, bound methods and partials are factories."""
        return (
            inspect.isfunction(value)
            or inspect.ismethod(value)
            or isinstance(value, functools.partial)
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def call(
        self,
        target: Callable[..., Any],
        params: Sequence[Any] = (),
        named: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Invoke ``target`` with its parameters resolved.

        Args:
            target: Function, bound method, class or callable object
            params: Positional values consumed in order
            named: Keyword values matched by parameter name

        Returns:
            Whatever ``target`` returns

        Raises:
            ResolutionError: If a parameter cannot be satisfied
        """
        if not callable(target):
            raise ResolutionError(f"{describe(target)} is not callable")

        signature = self.signature(target)
        if signature is None:
            return target(*params, **(named or {}))

        args, kwargs = self._resolve_arguments(signature, params, named or {}, target)
        return target(*args, **kwargs)

    def make(
        self,
        cls: type,
        params: Sequence[Any] = (),
        named: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Instantiate ``cls`` with its constructor dependencies injected."""
        if not inspect.isclass(cls):
            raise ResolutionError(f"Cannot make {cls!r}: not a class")
        return self.call(cls, params, named)

    def parameter_types(self, target: Callable[..., Any]) -> List[Any]:
        """Declared annotation of each parameter (``None`` when absent)."""
        signature = self.signature(target)
        if signature is None:
            return []
        return [
            None if p.annotation is _empty else p.annotation
            for p in signature.parameters.values()
        ]

    @staticmethod
    def signature(target: Callable[..., Any]) -> Optional[inspect.Signature]:
        """
        Signature with string annotations evaluated where possible.

        Returns ``None`` for callables that do not expose one (some
        builtins).
        """
        try:
            return inspect.signature(target, eval_str=True)
        except (NameError, SyntaxError, TypeError, AttributeError, ValueError):
            pass
        try:
            return inspect.signature(target)
        except (TypeError, ValueError):
            return None

    def _resolve_arguments(
        self,
        signature: inspect.Signature,
        params: Sequence[Any],
        named: Dict[str, Any],
        target: Any,
    ) -> Tuple[List[Any], Dict[str, Any]]:
        positional = list(params)
        named = dict(named)
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}

        for parameter in signature.parameters.values():
            kind = parameter.kind

            if kind is inspect.Parameter.VAR_POSITIONAL:
                args.extend(positional)
                positional = []
                continue

            if kind is inspect.Parameter.VAR_KEYWORD:
                kwargs.update(named)
                named = {}
                continue

            if positional and kind is not inspect.Parameter.KEYWORD_ONLY:
                args.append(positional.pop(0))
                continue

            if parameter.name in named:
                value = named.pop(parameter.name)
            else:
                value = self._resolve_parameter(parameter, target)

            if kind is inspect.Parameter.KEYWORD_ONLY:
                kwargs[parameter.name] = value
            else:
                args.append(value)

        return args, kwargs

    def _resolve_parameter(self, parameter: inspect.Parameter, target: Any) -> Any:
        if parameter.annotation is not _empty:
            found, value = self._lookup_annotation(parameter.annotation)
            if found:
                return value

        if parameter.name in self._entries:
            return self.get(parameter.name)

        if parameter.default is not _empty:
            return parameter.default

        raise ResolutionError(
            f"Unable to resolve parameter '{parameter.name}' of {describe(target)}"
        )

    def _lookup_annotation(self, annotation: Any) -> Tuple[bool, Any]:
        if isinstance(annotation, str):
            return self._lookup_class_name(annotation)

        origin = get_origin(annotation)
        if origin is Union or origin is UnionType:
            for member in get_args(annotation):
                if member is type(None):
                    continue
                found, value = self._lookup_annotation(member)
                if found:
                    return True, value
            return False, None

        if inspect.isclass(annotation) and annotation in self._entries:
            return True, self.get(annotation)

        return False, None

    def _lookup_class_name(self, annotation: str) -> Tuple[bool, Any]:
        # Unevaluated annotation such as "Optional[Request]" or "'Request'"
        name = annotation.strip("'\"")
        if name.startswith("Optional[") and name.endswith("]"):
            name = name[len("Optional["):-1]
        name = name.rsplit(".", 1)[-1]

        for key in self._entries:
            if inspect.isclass(key) and key.__name__ == name:
                return True, self.get(key)
        return False, None

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, key: Any) -> Any:
        return self.get(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        self.register(key, value)

    def __delitem__(self, key: Any) -> None:
        self.remove(key)

    def __contains__(self, key: Any) -> bool:
        return self.has(key)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<Container entries={len(self._entries)}>"
