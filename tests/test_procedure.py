import pytest

from covenant import Call, Operation, Procedure, implement
from covenant.exceptions import ConfigurationError

operation = Operation(path="/echo")


def make_call(data=None):
    return Call(input=data, operation=operation, name="echo")


class TestImplement:
    def test_handler_builds_procedure(self):
        async def echo(call):
            return call.input

        procedure = implement(operation).handler(echo)

        assert isinstance(procedure, Procedure)
        assert procedure.operation is operation
        assert procedure.handler is echo
        assert procedure.middlewares == ()

    def test_used_as_decorator(self):
        @implement(operation)
        async def echo(call):
            return call.input

        assert isinstance(echo, Procedure)

    def test_rejects_non_operations(self):
        with pytest.raises(ConfigurationError):
            implement({"path": "/echo"})

    def test_rejects_non_callable_handlers(self):
        with pytest.raises(ConfigurationError):
            implement(operation).handler("echo")

    def test_use_does_not_mutate_the_implementer(self):
        base = implement(operation)
        extended = base.use(lambda call, call_next: call_next())

        assert base.middlewares == ()
        assert len(extended.middlewares) == 1


class TestProcedureCall:
    @pytest.mark.asyncio
    async def test_async_handler(self):
        async def echo(call):
            return {"echo": call.input}

        assert await implement(operation).handler(echo)(make_call("hi")) == {
            "echo": "hi"
        }

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        procedure = implement(operation).handler(lambda call: call.input * 2)

        assert await procedure(make_call(21)) == 42

    @pytest.mark.asyncio
    async def test_middlewares_run_in_order_around_the_handler(self):
        trail = []

        async def outer(call, call_next):
            trail.append("outer:before")
            result = await call_next()
            trail.append("outer:after")
            return result

        def inner(call, call_next):
            trail.append("inner")
            return call_next()

        async def handler(call):
            trail.append("handler")
            return "done"

        procedure = implement(operation).use(outer).use(inner).handler(handler)

        assert await procedure(make_call()) == "done"
        assert trail == ["outer:before", "inner", "handler", "outer:after"]

    @pytest.mark.asyncio
    async def test_middleware_can_replace_the_result(self):
        async def wrap(call, call_next):
            return {"wrapped": await call_next()}

        procedure = implement(operation).use(wrap).handler(lambda call: 1)

        assert await procedure(make_call()) == {"wrapped": 1}

    @pytest.mark.asyncio
    async def test_middleware_can_short_circuit(self):
        calls = []

        async def deny(call, call_next):
            return "denied"

        procedure = implement(operation).use(deny).handler(calls.append)

        assert await procedure(make_call()) == "denied"
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self):
        async def fail(call):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await implement(operation).handler(fail)(make_call())

    def test_repr(self):
        async def echo(call):
            return call.input

        assert repr(implement(operation).handler(echo)).startswith("<Procedure")
