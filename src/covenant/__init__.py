__version__ = "0.1.0"

from .contract import Operation
from .exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputContractViolation,
    RPCError,
    TransportError,
)
from .module import RPCModule, implements
from .procedure import Call, Procedure, implement

__all__ = [
    "Call",
    "ConfigurationError",
    "implement",
    "implements",
    "InputValidationError",
    "Operation",
    "OutputContractViolation",
    "Procedure",
    "RPCError",
    "RPCModule",
    "TransportError",
]
