"""Server engines the RPC module can bind to.

Each engine knows how to register routes on one family of applications and
how to wrap its native request and response objects. Engines are imported
lazily so that only the framework actually in use needs to be installed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from covenant.contract import route_key
from covenant.exceptions import ConfigurationError
from covenant.pipeline import Pipeline, Reply
from covenant.utils.importlib import import_from_string

if TYPE_CHECKING:
    from covenant.module import Binding, RPCModule

logger = logging.getLogger(__name__)

# Top-level package of the application class -> engine implementation
ENGINES = {
    "flask": "covenant.engines.flask.FlaskEngine",
    "starlette": "covenant.engines.asgi.StarletteEngine",
    "fastapi": "covenant.engines.asgi.StarletteEngine",
}


class Engine(ABC):
    """Binds module operations to one kind of web application"""

    name: str = ""

    @abstractmethod
    def supports(self, app: Any) -> bool:
        """Whether `app` can be served by this engine"""

    @abstractmethod
    def convert_path(self, path: str) -> str:
        """Translate a contract path into the framework's route syntax"""

    @abstractmethod
    def route_registry(self, app: Any) -> dict[tuple[str, str], Any]:
        """Per-application record of bound routes, `route_key -> Binding`"""

    @abstractmethod
    def add_route(self, app: Any, binding: "Binding", pipeline: Pipeline) -> None:
        """Register a framework route that runs `pipeline`"""

    @abstractmethod
    def write(self, reply: Reply) -> Any:
        """Build the framework's native response for a reply"""

    def bind(self, app: Any, module: "RPCModule") -> None:
        registry = self.route_registry(app)

        for binding in module.bindings.values():
            route = route_key(binding.method, binding.path)
            existing = registry.get(route)

            if existing is not None:
                if existing.operation == binding.operation:
                    logger.debug(f"Route {binding.operation} already bound, skipping")
                    continue

                raise ConfigurationError(
                    f"Duplicate route {binding.operation}: `{binding.name}` conflicts "
                    f"with {existing.operation} (`{existing.name}`) already bound "
                    "to this application"
                )

            endpoints = {bound.endpoint: bound for bound in registry.values()}
            if binding.endpoint in endpoints:
                raise ConfigurationError(
                    f"Endpoint `{binding.endpoint}` of {binding.operation} is already "
                    f"used by {endpoints[binding.endpoint].operation}. "
                    "Give each RPCModule on an application its own name"
                )

            self.add_route(app, binding, Pipeline(binding, module.config, module.context))
            registry[route] = binding
            logger.debug(
                f"Bound `{binding.name}` to {binding.method} "
                f"{self.convert_path(binding.path)} ({self.name})"
            )


def engine_for(app: Any) -> Engine:
    """Pick the engine for an application by the package its class comes from"""
    for cls in type(app).__mro__:
        package = cls.__module__.split(".")[0]
        if package in ENGINES:
            engine = import_from_string(ENGINES[package])()
            if engine.supports(app):
                return engine

    raise ConfigurationError(
        f"No engine available for {type(app).__name__}. "
        f"Supported applications: Flask, Starlette, FastAPI"
    )
