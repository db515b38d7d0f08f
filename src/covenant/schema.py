"""Boundary with the schema library.

Operation schemas are marshmallow schemas, given as a `Schema` subclass,
a `Schema` instance, or a plain dict of marshmallow fields. Only
pass/fail and the loaded data are consumed here.
"""

import logging
from typing import Any

import marshmallow as ma
from marshmallow.exceptions import SCHEMA

from covenant.exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputContractViolation,
)

logger = logging.getLogger(__name__)


def resolve_schema(schema: Any) -> ma.Schema:
    """Return a schema instance ready to `load` data"""
    if isinstance(schema, ma.Schema):
        return schema

    if isinstance(schema, type) and issubclass(schema, ma.Schema):
        return schema()

    if isinstance(schema, dict):
        return ma.Schema.from_dict(schema)()

    raise ConfigurationError(
        f"Expected a marshmallow Schema or a dict of fields, got {schema!r}"
    )


def _as_field_messages(messages: Any) -> dict[str, Any]:
    if isinstance(messages, dict):
        return messages
    return {SCHEMA: messages}


def load_input(schema: Any, data: Any) -> Any:
    """Validate and deserialize request input.

    Raises `InputValidationError` with field-level messages on failure.
    """
    if schema is None:
        return data

    try:
        return resolve_schema(schema).load(data)
    except ma.ValidationError as exc:
        raise InputValidationError(_as_field_messages(exc.messages)) from exc


def validate_output(schema: Any, data: Any) -> None:
    """Check a handler result against the operation's output schema.

    Unknown fields are ignored. A mismatch is a programming error and
    raises `OutputContractViolation`.
    """
    if schema is None:
        return

    try:
        resolve_schema(schema).load(data, unknown=ma.EXCLUDE)
    except ma.ValidationError as exc:
        raise OutputContractViolation(
            f"Handler result does not match output schema: {exc.messages}",
            extra_info=_as_field_messages(exc.messages),
        ) from exc
