"""The "implement this operation" builder.

Controllers return procedures built with :func:`implement`::

    greet = implement(contract["hello"]).handler(say_hello)

    # or, as a decorator
    @implement(contract["hello"])
    async def greet(call):
        return {"greeting": f"Hello, {call.input['name']}!"}

Procedure middlewares wrap the handler. Each receives the call and a
`call_next` coroutine function, and returns the (possibly altered) result::

    async def timed(call, call_next):
        started = time.monotonic()
        try:
            return await call_next()
        finally:
            logger.info(f"{call.name} took {time.monotonic() - started:.3f}s")

    implement(operation).use(timed).handler(say_hello)
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from covenant.contract import Operation
from covenant.exceptions import ConfigurationError

if TYPE_CHECKING:
    from covenant.request import NormalizedRequest

logger = logging.getLogger(__name__)

Middleware = Callable[["Call", Callable[[], Awaitable[Any]]], Any]


@dataclass
class Call:
    """Everything a handler gets to know about the current invocation"""

    input: Any
    operation: Operation
    name: str = ""
    request: "NormalizedRequest | None" = None
    context: dict[str, Any] = field(default_factory=dict)


async def resolve(value: Any) -> Any:
    """Await `value` if it is awaitable, so sync and async callables mix"""
    if inspect.isawaitable(value):
        return await value
    return value


class Procedure:
    """A configured handler for one operation"""

    def __init__(
        self,
        operation: Operation,
        handler: Callable[[Call], Any],
        middlewares: tuple[Middleware, ...] = (),
    ) -> None:
        self.operation = operation
        self.handler = handler
        self.middlewares = tuple(middlewares)

    async def __call__(self, call: Call) -> Any:
        async def dispatch(index: int) -> Any:
            if index == len(self.middlewares):
                return await resolve(self.handler(call))

            return await resolve(
                self.middlewares[index](call, lambda: dispatch(index + 1))
            )

        return await dispatch(0)

    def __repr__(self) -> str:
        name = getattr(self.handler, "__qualname__", repr(self.handler))
        return f"<Procedure {name} for {self.operation}>"


class Implementer:
    """Collects procedure middlewares before the handler is attached"""

    def __init__(
        self, operation: Operation, middlewares: tuple[Middleware, ...] = ()
    ) -> None:
        self.operation = operation
        self.middlewares = middlewares

    def use(self, middleware: Middleware) -> Implementer:
        return Implementer(self.operation, self.middlewares + (middleware,))

    def handler(self, fn: Callable[[Call], Any]) -> Procedure:
        if not callable(fn):
            raise ConfigurationError(
                f"Handler for `{self.operation}` must be callable, got {fn!r}"
            )
        return Procedure(self.operation, fn, self.middlewares)

    __call__ = handler


def implement(operation: Operation) -> Implementer:
    if not isinstance(operation, Operation):
        raise ConfigurationError(
            f"`implement` expects an Operation, got {type(operation).__name__}"
        )
    return Implementer(operation)
