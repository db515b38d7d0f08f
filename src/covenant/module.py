"""This module implements the RPC module object, along with the decorator
that marks controller methods as operation implementations.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Union

from inflection import underscore

from covenant.config import Config, ConfigAttribute
from covenant.contract import (
    Contract,
    Operation,
    derive_path,
    find_operation_name,
    get_operation,
    route_key,
    walk_contract,
)
from covenant.exceptions import ConfigurationError
from covenant.procedure import Procedure, resolve
from covenant.schema import resolve_schema
from covenant.utils import fully_qualified_name

logger = logging.getLogger(__name__)

OPERATION_ATTR = "_covenant_operation"


class implements:
    """Method decorator to mark controller methods as the implementation
    of a contract operation, given as an `Operation` or its dotted name.

    The decorated method takes no arguments besides `self` and returns the
    `Procedure` built with `implement(...)`.
    """

    def __init__(self, target: Union[Operation, str]) -> None:
        if not isinstance(target, (Operation, str)):
            raise ConfigurationError(
                f"`implements` expects an Operation or an operation name, got {target!r}"
            )
        self._target = target

    def __call__(self, fn: Callable) -> Callable:
        setattr(fn, OPERATION_ATTR, self._target)
        return fn


@dataclass(frozen=True)
class Binding:
    """A contract operation bound to the procedure that implements it"""

    name: str
    operation: Operation
    procedure: Procedure
    output_structure: str
    controller: Optional[type] = None
    module_name: str = "covenant"

    @property
    def method(self) -> str:
        return self.operation.method

    @property
    def path(self) -> str:
        return self.operation.path

    @property
    def endpoint(self) -> str:
        return underscore(f"{self.module_name}_{self.name}".replace(".", "_"))


class RPCModule:
    """Gateway between a contract, the controllers implementing it, and the
    web applications serving it.

    Typical usage::

        rpc = RPCModule(contract=contract, config={"output_structure": "raw"})

        @rpc.controller
        class PlanetController:
            @implements("planet.find")
            def find(self):
                return implement(contract["planet"]["find"]).handler(find_planet)

        app = Flask(__name__)
        rpc.init_app(app)

    Controllers may also be given with `controllers=[...]`, and the app with
    `app=...`, in which case `init_app` runs immediately.

    :param contract: optional mapping of names to operations, possibly nested
    :param config: optional configuration dictionary, or a path to look for
        `.covenant.toml`, `covenant.toml` or `pyproject.toml` from
    :param controllers: controller classes to register
    :param context: mapping, or callable receiving the normalized request,
        that provides `call.context` to handlers
    :param app: Flask or Starlette/FastAPI application to bind to
    """

    config_class = Config

    #: Default output structure for operations that do not declare one.
    #: Either ``'raw'`` or ``'detailed'``. Default: ``'raw'``
    output_structure = ConfigAttribute("output_structure")

    #: The debug flag. Default: ``False``
    debug = ConfigAttribute("debug")

    def __init__(
        self,
        contract: Optional[Contract] = None,
        config: Union[dict, str, None] = None,
        controllers: tuple[type, ...] | list[type] = (),
        context: Mapping[str, Any] | Callable | None = None,
        app: Any = None,
        name: str = "covenant",
    ) -> None:
        self.name = name
        self.contract = contract
        if contract is not None:
            # Surface malformed contract entries right away
            list(walk_contract(contract))

        #: The configuration dictionary as :class:`Config`.
        self.config = self.load_config(config)
        self.context = context

        self._controllers: list[type] = []
        self._bindings: dict[str, Binding] = {}
        self._initialized = False

        for controller_cls in controllers:
            self.register(controller_cls)

        if app is not None:
            self.init_app(app)

    def load_config(self, config: Union[dict, str, None] = None) -> Config:
        """Load configuration from a dict, or from the TOML file found at
        or above a path"""
        if isinstance(config, str):
            return self.config_class.load_from_path(config)

        if isinstance(config, Config):
            Config._validate(config)
            return config
        return self.config_class.load_from_dict(config or {})

    def __str__(self) -> str:
        return f"RPCModule: {self.name}"

    def __repr__(self) -> str:
        return f"<RPCModule {self.name} ({len(self._controllers)} controllers)>"

    # _cls should never be specified by keyword, so start it with an
    # underscore.  The presence of _cls is used to detect if this
    # decorator is being called with parameters or not.
    def controller(self, _cls: Optional[type] = None) -> Any:
        """Class decorator registering a controller with this module"""

        def wrap(cls: type) -> type:
            return self.register(cls)

        # See if we're being called as @rpc.controller or @rpc.controller().
        if _cls is None:
            return wrap

        return wrap(_cls)

    def register(self, controller_cls: type) -> type:
        if not inspect.isclass(controller_cls):
            raise ConfigurationError(f"Controller `{controller_cls!r}` is not a class")

        if self._initialized:
            raise ConfigurationError(
                f"Cannot register `{controller_cls.__name__}`: "
                f"{self} has already been initialized"
            )

        if controller_cls in self._controllers:
            logger.debug(
                f"Controller {fully_qualified_name(controller_cls)} was already registered"
            )
        else:
            self._controllers.append(controller_cls)
            logger.debug(
                f"Registered controller {fully_qualified_name(controller_cls)} with {self}"
            )

        return controller_cls

    @property
    def controllers(self) -> list[type]:
        return list(self._controllers)

    @property
    def bindings(self) -> dict[str, Binding]:
        self.init()
        return dict(self._bindings)

    def init(self) -> None:
        """Collect implementations from all registered controllers and bind
        them to their operations.

        All configuration problems surface here, before any request is
        served. Calling `init` again has no effect.

        Controller methods may be coroutines resolving to their procedure.
        Outside an event loop they are run to completion here; inside one,
        use :meth:`init_async` instead.
        """
        if self._initialized:
            return

        self.config_class._validate(self.config)
        implementations = list(self._collect())

        if any(inspect.isawaitable(impl[2]) for impl in implementations):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                implementations = asyncio.run(self._resolve_all(implementations))
            else:
                for _, _, returned, _, _ in implementations:
                    if inspect.iscoroutine(returned):
                        returned.close()
                raise ConfigurationError(
                    f"{self} has async controller methods and an event loop is "
                    "running: `await init_async()` before binding it"
                )

        self._finalize(implementations)

    async def init_async(self) -> None:
        """Same as :meth:`init`, awaiting async controller methods on the
        running event loop."""
        if self._initialized:
            return

        self.config_class._validate(self.config)
        self._finalize(await self._resolve_all(list(self._collect())))

    def _collect(self) -> Iterator[tuple[str, Operation, Any, str, type]]:
        """Yield `(name, declared operation, returned value, qualname,
        controller)` for every marked controller method"""
        implemented_by: dict[str, str] = {}

        for controller_cls in self._controllers:
            instance = controller_cls()

            methods = inspect.getmembers(controller_cls, predicate=inspect.isroutine)
            for method_name, method in methods:
                if (
                    method_name.startswith("__") and method_name.endswith("__")
                ) or not hasattr(method, OPERATION_ATTR):
                    continue

                qualname = f"{controller_cls.__name__}.{method_name}"
                name, declared = self._resolve_target(
                    getattr(method, OPERATION_ATTR), qualname, method_name
                )

                if name in implemented_by:
                    raise ConfigurationError(
                        f"Operation `{name}` is implemented by both "
                        f"`{qualname}` and `{implemented_by[name]}`"
                    )
                implemented_by[name] = qualname

                yield (
                    name,
                    declared,
                    getattr(instance, method_name)(),
                    qualname,
                    controller_cls,
                )

    @staticmethod
    async def _resolve_all(
        implementations: list[tuple[str, Operation, Any, str, type]],
    ) -> list[tuple[str, Operation, Any, str, type]]:
        return [
            (name, declared, await resolve(returned), qualname, controller_cls)
            for name, declared, returned, qualname, controller_cls in implementations
        ]

    def _finalize(
        self, implementations: list[tuple[str, Operation, Any, str, type]]
    ) -> None:
        bindings: dict[str, Binding] = {}
        routes: dict[tuple[str, str], str] = {}

        for name, declared, procedure, qualname, controller_cls in implementations:
            binding = self._bind(name, declared, procedure, qualname, controller_cls)

            route = route_key(binding.method, binding.path)
            if route in routes:
                raise ConfigurationError(
                    f"Duplicate route {binding.operation}: "
                    f"`{name}` and `{routes[route]}`"
                )

            routes[route] = name
            bindings[name] = binding

        if self.contract is not None:
            missing = [
                name for name, _ in walk_contract(self.contract) if name not in bindings
            ]
            if missing:
                logger.debug(f"Operations without implementation: {', '.join(missing)}")

        self._bindings = bindings
        self._initialized = True
        logger.debug(f"{self} initialized with {len(bindings)} operations")

    def _resolve_target(
        self, target: Union[Operation, str], qualname: str, method_name: str
    ) -> tuple[str, Operation]:
        if isinstance(target, str):
            if self.contract is None:
                raise ConfigurationError(
                    f"`{qualname}` implements `{target}` by name, "
                    f"but {self} has no contract"
                )

            operation = get_operation(self.contract, target)
            if operation is None:
                known = ", ".join(name for name, _ in walk_contract(self.contract))
                raise ConfigurationError(
                    f"`{qualname}` implements unknown operation `{target}`. "
                    f"Known operations: {known or '(none)'}"
                )
            return target, operation

        if self.contract is None:
            return method_name, target

        name = find_operation_name(self.contract, target)
        if name is None:
            raise ConfigurationError(
                f"`{qualname}` implements {target}, which is not part of the contract"
            )
        return name, target

    def _bind(
        self,
        name: str,
        declared: Operation,
        procedure: Any,
        qualname: str,
        controller_cls: type,
    ) -> Binding:
        if not isinstance(procedure, Procedure):
            raise ConfigurationError(
                f"`{qualname}` must return a Procedure built with `implement`, "
                f"got {type(procedure).__name__}"
            )

        if declared.path is None:
            declared = declared.route(path=derive_path(name))

        # The procedure's own operation supplies schemas and output settings,
        #   the contract decides where the route lives
        implemented = procedure.operation
        if implemented.path is None:
            implemented = implemented.route(path=declared.path)

        if (implemented.method, implemented.path) != (declared.method, declared.path):
            raise ConfigurationError(
                f"`{qualname}` implements {declared} but returns a procedure "
                f"for {implemented}"
            )

        for schema in (implemented.input_schema, implemented.output_schema):
            if schema is not None:
                resolve_schema(schema)

        output_structure = (
            implemented.output_structure
            or declared.output_structure
            or self.config["output_structure"]
        )

        return Binding(
            name=name,
            operation=implemented,
            procedure=procedure,
            output_structure=output_structure,
            controller=controller_cls,
            module_name=self.name,
        )

    def init_app(self, app: Any) -> None:
        """Register one route per bound operation on a Flask or
        Starlette/FastAPI application.

        Binding the same operations to the same application again is a
        no-op. Flask applications must be bound before they serve their
        first request.
        """
        from covenant.engines import engine_for

        self.init()

        engine = engine_for(app)
        engine.bind(app, self)
        logger.info(f"{self} bound {len(self._bindings)} operations to {engine.name}")
