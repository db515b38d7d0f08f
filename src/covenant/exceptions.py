"""
Custom Covenant exception classes
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class CovenantException(Exception):
    """Base class for all Exceptions raised within Covenant"""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args)

        self.extra_info = kwargs.get("extra_info", None)

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.args[0],))


class CovenantExceptionWithMessage(CovenantException):
    def __init__(
        self, messages: dict[str, Any], traceback: Optional[str] = None, **kwargs: Any
    ) -> None:
        logger.debug(f"Exception:: {messages}")

        self.messages = messages
        self.traceback = traceback

        super().__init__(**kwargs)

    def __str__(self) -> str:
        return f"{dict(self.messages)}"

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.messages,))


class ConfigurationError(CovenantException):
    """Improper Configuration encountered like:
    * A controller method implements an operation missing from the contract
    * The same route is registered twice with different operations
    * An unknown output structure
    """


class NoModuleException(CovenantException):
    """Raised if an RPC module cannot be found or loaded in a Python module"""


class InputValidationError(CovenantExceptionWithMessage):
    """Request input does not satisfy the operation's input schema.

    `messages` maps each offending field to its list of errors.
    """


class OutputContractViolation(CovenantException):
    """Handler returned a result that does not match its operation's
    output structure or output schema. Always a programming error."""


class TransportError(CovenantException):
    """The underlying engine could not read the request or write the response"""


# Error codes understood by `RPCError`, with their default HTTP status
COMMON_ERROR_STATUSES = {
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "METHOD_NOT_SUPPORTED": 405,
    "NOT_ACCEPTABLE": 406,
    "TIMEOUT": 408,
    "CONFLICT": 409,
    "PRECONDITION_FAILED": 412,
    "PAYLOAD_TOO_LARGE": 413,
    "UNSUPPORTED_MEDIA_TYPE": 415,
    "UNPROCESSABLE_CONTENT": 422,
    "TOO_MANY_REQUESTS": 429,
    "CLIENT_CLOSED_REQUEST": 499,
    "INTERNAL_SERVER_ERROR": 500,
    "NOT_IMPLEMENTED": 501,
    "BAD_GATEWAY": 502,
    "SERVICE_UNAVAILABLE": 503,
    "GATEWAY_TIMEOUT": 504,
}


class RPCError(CovenantException):
    """Raised by handlers to fail a call on purpose.

    The error is rendered to the client with its code, status, message and
    data. When `status` is omitted, it is looked up from the code, falling
    back to 500 for unknown codes.

    >>> raise RPCError("NOT_FOUND", message="Planet not found")
    """

    def __init__(
        self,
        code: str,
        status: Optional[int] = None,
        message: Optional[str] = None,
        data: Any = None,
        **kwargs: Any,
    ) -> None:
        self.code = code
        self.status = status or COMMON_ERROR_STATUSES.get(code, 500)
        if not 400 <= self.status <= 599:
            raise ValueError(f"RPCError status must be a 4xx or 5xx code, got {status}")

        self.message = message or code.replace("_", " ").capitalize()
        self.data = data

        super().__init__(self.message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        error = {"code": self.code, "status": self.status, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    def __reduce__(self) -> tuple[Any, tuple[Any, ...]]:
        return (self.__class__, (self.code, self.status, self.message, self.data))
