"""Per-request orchestration for bound operations.

Every route registered by an engine runs :meth:`Pipeline.run`, which moves
the request through the stages in :class:`Stage` strictly in order. Any
failure jumps straight to an error reply, except transport errors, which
belong to the host framework and are re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from covenant.exceptions import (
    InputValidationError,
    OutputContractViolation,
    RPCError,
    TransportError,
)
from covenant.output import JSON_CONTENT_TYPE, encode_body, format_output
from covenant.procedure import Call, resolve
from covenant.request import EngineRequest, NormalizedRequest, build_input, normalize
from covenant.schema import load_input, validate_output

if TYPE_CHECKING:
    from covenant.config import Config
    from covenant.module import Binding

logger = logging.getLogger(__name__)

ContextFactory = Callable[[NormalizedRequest], Any]


class Stage(Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    VALIDATED = "validated"
    HANDLED = "handled"
    FORMATTED = "formatted"
    WRITTEN = "written"


@dataclass(frozen=True)
class Reply:
    """Final status, encoded body and extra headers for one response"""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> Optional[str]:
        return JSON_CONTENT_TYPE if self.body else None


class Pipeline:
    def __init__(
        self,
        binding: "Binding",
        config: "Config",
        context: Mapping[str, Any] | ContextFactory | None = None,
    ) -> None:
        self.binding = binding
        self.config = config
        self.context = context

    async def run(self, engine_request: EngineRequest) -> Optional[Reply]:
        """Handle one request. Returns `None` when the client went away
        and nothing should be written."""
        binding = self.binding
        operation = binding.operation
        stage = Stage.RECEIVED

        try:
            request = await normalize(engine_request)
            stage = Stage.NORMALIZED

            data = load_input(operation.input_schema, build_input(request))
            stage = Stage.VALIDATED

            call = Call(
                input=data,
                operation=operation,
                name=binding.name,
                request=request,
                context=await self._build_context(request),
            )
            result = await binding.procedure(call)
            stage = Stage.HANDLED

            validate_output(operation.output_schema, result)
            output = format_output(
                result, binding.output_structure, operation.success_status
            )
            reply = Reply(
                status=output.status,
                body=encode_body(output.body, self.config["json"]["sort_keys"]),
                headers=output.headers,
            )
            stage = Stage.FORMATTED
        except TransportError:
            logger.warning(f"Transport failure in `{binding.name}` at stage {stage.value}")
            raise
        except InputValidationError as exc:
            reply = self._error_reply(
                400,
                "BAD_REQUEST",
                "Input validation failed",
                {"errors": exc.messages},
            )
        except RPCError as exc:
            logger.info(f"`{binding.name}` failed with {exc.code} ({exc.status})")
            error = exc.to_dict()
            reply = self._error_reply(
                exc.status, error["code"], error["message"], error.get("data")
            )
        except OutputContractViolation as exc:
            logger.error(
                f"Output contract violation in `{binding.name}` "
                f"({binding.output_structure} output): {exc}"
            )
            reply = self._internal_error_reply(exc)
        except Exception as exc:
            logger.exception(
                f"Unhandled error in `{binding.name}` at stage {stage.value}"
            )
            reply = self._internal_error_reply(exc)

        if await engine_request.is_disconnected():
            logger.info(f"Client disconnected during `{binding.name}`, reply dropped")
            return None

        logger.debug(
            f"{operation.method} {engine_request.path} -> `{binding.name}` "
            f"{reply.status} ({Stage.WRITTEN.value})"
        )
        return reply

    async def _build_context(self, request: NormalizedRequest) -> dict[str, Any]:
        if self.context is None:
            return {}
        if callable(self.context):
            return dict(await resolve(self.context(request)) or {})
        return dict(self.context)

    def _error_reply(
        self, status: int, code: str, message: str, data: Any = None
    ) -> Reply:
        error = {"code": code, "status": status, "message": message}
        if data is not None:
            error["data"] = data
        return Reply(status=status, body=encode_body(error))

    def _internal_error_reply(self, exc: Exception) -> Reply:
        message = "Internal server error"
        if self.config["expose_error_messages"] or self.config["debug"]:
            message = str(exc) or exc.__class__.__name__
        return self._error_reply(500, "INTERNAL_SERVER_ERROR", message)
