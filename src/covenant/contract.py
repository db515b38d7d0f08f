"""Declarative contract definitions.

An :class:`Operation` describes one RPC endpoint: where it lives (path and
method), what it accepts and returns (marshmallow schemas), and how handler
results are turned into responses (output structure and success status).

Operations are grouped into a *contract*, a plain (possibly nested) mapping
of names to operations::

    contract = {
        "hello": Operation(path="/hello", input_schema=NameSchema),
        "planet": {
            "find": Operation(method="GET", path="/planets/{id}"),
            "create": Operation(path="/planets", success_status=201),
        },
    }

Nested names are flattened with dots, e.g. ``planet.find``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Mapping, Optional, Union
from urllib.parse import quote

from covenant.config import OUTPUT_STRUCTURES
from covenant.exceptions import ConfigurationError

HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

# Methods whose input is read from the query string instead of the body
QUERY_METHODS = ("GET", "HEAD", "DELETE")

# `{name}` matches one path segment, `{+name}` matches the rest of the path
PATH_PARAM_PATTERN = re.compile(r"\{(\+?)([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class Operation:
    """A single contract operation. Immutable once defined.

    `output_structure` left as `None` means the owning module's configured
    default applies.
    """

    path: Optional[str] = None
    method: str = "POST"
    input_schema: Any = None
    output_schema: Any = None
    output_structure: Optional[str] = None
    success_status: int = 200
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        method = (self.method or "").upper()
        if method not in HTTP_METHODS:
            raise ConfigurationError(f"Unsupported HTTP method `{self.method}`")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "tags", tuple(self.tags))

        if self.path is not None and not self.path.startswith("/"):
            raise ConfigurationError(f"Route path `{self.path}` must start with `/`")

        if (
            self.output_structure is not None
            and self.output_structure not in OUTPUT_STRUCTURES
        ):
            raise ConfigurationError(
                f"Unknown output structure `{self.output_structure}`. "
                f"Expected one of: {', '.join(OUTPUT_STRUCTURES)}"
            )

        if (
            not isinstance(self.success_status, int)
            or isinstance(self.success_status, bool)
            or not 200 <= self.success_status <= 399
        ):
            raise ConfigurationError(
                f"Success status must be a 2xx or 3xx code, got {self.success_status!r}"
            )

    def route(self, **kwargs: Any) -> Operation:
        """Return a copy with updated route attributes"""
        return replace(self, **kwargs)

    def input(self, schema: Any) -> Operation:
        return replace(self, input_schema=schema)

    def output(self, schema: Any) -> Operation:
        return replace(self, output_schema=schema)

    @property
    def path_params(self) -> list[str]:
        return [name for _, name in PATH_PARAM_PATTERN.findall(self.path or "")]

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


Contract = Mapping[str, Union[Operation, "Contract"]]


def walk_contract(contract: Contract, prefix: tuple[str, ...] = ()) -> Iterator[
    tuple[str, Operation]
]:
    """Yield `(dotted_name, operation)` for every operation in a contract tree"""
    for key, value in contract.items():
        path = prefix + (key,)
        if isinstance(value, Operation):
            yield ".".join(path), value
        elif isinstance(value, Mapping):
            yield from walk_contract(value, path)
        else:
            raise ConfigurationError(
                f"Contract entry `{'.'.join(path)}` is neither an Operation nor a mapping"
            )


def get_operation(contract: Contract, name: str) -> Optional[Operation]:
    """Look up an operation by its dotted name"""
    node: Any = contract
    for part in name.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]

    return node if isinstance(node, Operation) else None


def find_operation_name(contract: Contract, operation: Operation) -> Optional[str]:
    """Return the dotted name under which `operation` is declared.

    The same object wins over an equal one declared elsewhere in the tree.
    """
    equal_match = None
    for name, candidate in walk_contract(contract):
        if candidate is operation:
            return name
        if equal_match is None and candidate == operation:
            equal_match = name

    return equal_match


def derive_path(name: str) -> str:
    """`planet.find` -> `/planet/find`"""
    return "/" + "/".join(quote(part, safe="") for part in name.split("."))


def route_key(method: str, path: str) -> tuple[str, str]:
    """Identify a route by method and path shape, ignoring parameter names.

    `/planets/{id}` and `/planets/{key}` match the same requests.
    """
    return method, PATH_PARAM_PATTERN.sub(
        lambda match: "{+}" if match.group(1) else "{}", path
    )


def convert_path(path: str, formatter: Callable[[str, bool], str]) -> str:
    """Rewrite `{name}`/`{+name}` placeholders into an engine's route syntax.

    `formatter` receives the parameter name and whether it spans the rest
    of the path.
    """
    return PATH_PARAM_PATTERN.sub(
        lambda match: formatter(match.group(2), match.group(1) == "+"), path
    )
