"""Turn handler results into (status, body, headers).

Nothing here touches the transport. Engines write the returned values.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from covenant.exceptions import OutputContractViolation

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class FormattedOutput:
    status: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


def is_valid_status(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 100 <= value <= 599
    )


def format_output(result: Any, mode: str, success_status: int = 200) -> FormattedOutput:
    """Apply an output structure to a handler result.

    `raw`: the result is the body, sent with the operation's success status.

    `detailed`: the result is an envelope ``{"status": int, "result": body,
    "headers": {...}}``. `status` is mandatory; `result` and `headers` are
    optional. A malformed envelope raises `OutputContractViolation` rather
    than falling back to the success status.
    """
    if mode == "raw":
        return FormattedOutput(status=success_status, body=result)

    if mode != "detailed":
        raise OutputContractViolation(f"Unknown output structure `{mode}`")

    if not isinstance(result, Mapping):
        raise OutputContractViolation(
            "Detailed output must be a mapping with `status` and `result`, "
            f"got {type(result).__name__}"
        )

    if "status" not in result:
        raise OutputContractViolation("Detailed output is missing `status`")

    status = result["status"]
    if not is_valid_status(status):
        raise OutputContractViolation(
            f"Detailed output `status` must be an HTTP status code, got {status!r}"
        )

    headers = result.get("headers") or {}
    if not isinstance(headers, Mapping):
        raise OutputContractViolation(
            f"Detailed output `headers` must be a mapping, got {type(headers).__name__}"
        )

    return FormattedOutput(
        status=status,
        body=result.get("result"),
        headers={str(key): str(value) for key, value in headers.items()},
    )


def encode_body(body: Any, sort_keys: bool = False) -> bytes:
    """Serialize a response body to JSON bytes.

    Both engines send exactly these bytes. `None` encodes to an empty body.
    """
    if body is None:
        return b""

    try:
        return json.dumps(
            body,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
            sort_keys=sort_keys,
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise OutputContractViolation(
            f"Response body is not JSON serializable: {exc}"
        ) from exc
