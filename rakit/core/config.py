"""
Rakit Configuration
===================

Layered configuration with dot-notation keys.

Layers, highest priority first:
1. runtime   - values written with ``config.set(...)``
2. env       - ``RAKIT_*`` environment variables
3. app       - the mapping passed to ``App(configs=...)``
4. defaults  - framework defaults

A scalar lookup walks the layers from the top and returns the first hit.
Asking for a whole section merges that section across every layer.

Example:
    config = Config({"app": {"base_url": "https://example.com"}})

    config.get("app.base_url")            # "https://example.com"
    config.get("app.index_file", "")      # ""
    config.set("app.debug", True)

    # RAKIT_APP_DEBUG=true in the environment
    config.get_bool("app.debug")          # True
"""

from __future__ import annotations

import bisect
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import orjson

ENV_PREFIX = "RAKIT_"

DEFAULTS: Dict[str, Any] = {
    "app": {
        "debug": False,
        "base_url": "http://localhost:8000",
        "index_file": "",
    },
}

_ENV_BOOLEANS = {
    "true": True,
    "yes": True,
    "on": True,
    "false": False,
    "no": False,
    "off": False,
}


def merge_into(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into ``base`` (in place) and return ``base``."""
    for key, value in override.items():
        if isinstance(value, Mapping):
            target = base.get(key)
            if not isinstance(target, dict):
                target = base[key] = {}
            merge_into(target, value)
        else:
            base[key] = value
    return base


def nest(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``values``, expanding dotted keys (``"mail.host"``) into nested dicts."""
    result: Dict[str, Any] = {}
    for key, value in values.items():
        *parents, leaf = key.split(".")
        node = result
        for part in parents:
            node = node.setdefault(part, {})

        if isinstance(value, Mapping):
            merge_into(node.setdefault(leaf, {}), nest(value))
        else:
            node[leaf] = value
    return result


def coerce_env(raw: str) -> Any:
    """Environment strings to bool, int, float or JSON where they look like one."""
    lowered = raw.strip().lower()
    if lowered in _ENV_BOOLEANS:
        return _ENV_BOOLEANS[lowered]

    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue

    if raw[:1] in ("{", "["):
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            return raw

    return raw


@dataclass(order=True)
class ConfigLayer:
    """One source of configuration values; layers sort by priority."""

    priority: int
    name: str = field(compare=False)
    values: Dict[str, Any] = field(default_factory=dict, compare=False)

    def lookup(self, parts: Sequence[str]) -> Tuple[bool, Any]:
        node: Any = self.values
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return False, None
            node = node[part]
        return True, node

    def assign(self, parts: Sequence[str], value: Any) -> None:
        node = self.values
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[parts[-1]] = value


class Config:
    """
    Application configuration.

    Args:
        values: Application values (nested mappings or dotted keys)
        load_env: Read ``RAKIT_*`` environment variables
    """

    def __init__(
        self,
        values: Optional[Mapping[str, Any]] = None,
        load_env: bool = True,
    ) -> None:
        self._layers: List[ConfigLayer] = []

        self.add_layer("defaults", DEFAULTS, priority=0)
        if values:
            self.add_layer("app", values, priority=10)
        if load_env:
            self.add_layer("env", self._from_environment(), priority=100)
        self._runtime = self.add_layer("runtime", {}, priority=1000)

    def add_layer(self, name: str, values: Mapping[str, Any], priority: int = 50) -> ConfigLayer:
        layer = ConfigLayer(priority, name, nest(values))
        bisect.insort(self._layers, layer)
        return layer

    @property
    def layers(self) -> List[str]:
        return [layer.name for layer in self._layers]

    @staticmethod
    def _from_environment() -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, raw in os.environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            # RAKIT_APP_BASE_URL -> app.base_url
            section, _, rest = name[len(ENV_PREFIX):].lower().partition("_")
            values[f"{section}.{rest}" if rest else section] = coerce_env(raw)
        return values

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """
        Value for a dotted key.

        Args:
            key: Dotted key (e.g. ``"app.debug"``)
            default: Returned when no layer defines the key
        """
        parts = key.split(".")
        for layer in reversed(self._layers):
            found, value = layer.lookup(parts)
            if found:
                return self.section(key) if isinstance(value, dict) else value
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "on", "1")
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def section(self, prefix: str) -> Dict[str, Any]:
        """A section merged across all layers (a fresh dict)."""
        parts = prefix.split(".")
        merged: Dict[str, Any] = {}
        for layer in self._layers:
            found, value = layer.lookup(parts)
            if found and isinstance(value, dict):
                merge_into(merged, value)
        return merged

    def all(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for layer in self._layers:
            merge_into(merged, layer.values)
        return merged

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Override a key at runtime; runtime values win over every other layer."""
        self._runtime.assign(key.split("."), value)

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __repr__(self) -> str:
        return f"<Config layers={self.layers}>"
