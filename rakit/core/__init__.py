"""
Rakit Core Module
=================

Contains the fundamental building blocks of the framework:
- App: Application object, provider lifecycle and dispatch loop
- Container: Dependency injection
- Router: Route patterns, groups and matching
- Pipeline: Middleware/controller continuation chain
- Hook: Named event hooks
- Request/Response: HTTP message abstractions
- Config: Configuration management
"""

from rakit.core.application import App, AppRegistry
from rakit.core.config import Config
from rakit.core.container import Container
from rakit.core.hooks import Hook
from rakit.core.pipeline import ActionRegistry, Pipeline
from rakit.core.provider import Provider
from rakit.core.request import Request
from rakit.core.response import Response
from rakit.core.router import Group, Route, Router

__all__ = [
    "App",
    "AppRegistry",
    "Config",
    "Container",
    "Hook",
    "ActionRegistry",
    "Pipeline",
    "Provider",
    "Request",
    "Response",
    "Group",
    "Route",
    "Router",
]
