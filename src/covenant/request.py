"""Request normalization.

Engines hand the pipeline an :class:`EngineRequest`, a thin wrapper over
their native request object that exposes the minimal capability set the
pipeline relies on. :func:`normalize` turns it into an engine-independent
:class:`NormalizedRequest`.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qs

from werkzeug.datastructures import Headers
from werkzeug.http import parse_options_header

from covenant.contract import QUERY_METHODS
from covenant.exceptions import TransportError

logger = logging.getLogger(__name__)

# Marks a body the host framework has not parsed yet
MISSING = object()


class EngineRequest(ABC):
    """Capabilities every engine request variant must provide"""

    @property
    @abstractmethod
    def method(self) -> str:
        """HTTP method, in any case"""

    @property
    @abstractmethod
    def path(self) -> str:
        """Request path, without query string"""

    @property
    @abstractmethod
    def headers(self) -> Iterable[tuple[str, str]]:
        """Header name/value pairs, repeated headers included"""

    @property
    @abstractmethod
    def query(self) -> Mapping[str, list[str]]:
        """Query string parameters, each with all its values"""

    @property
    @abstractmethod
    def path_params(self) -> Mapping[str, Any]:
        """Parameters captured by the matched route"""

    @abstractmethod
    async def read_body(self) -> bytes:
        """Read the raw body. Raises `TransportError` if it cannot be read."""

    def parsed_body(self) -> Any:
        """Return the body if the framework already deserialized it"""
        return MISSING

    async def is_disconnected(self) -> bool:
        return False


@dataclass
class NormalizedRequest:
    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None

    @property
    def content_type(self) -> str:
        mime_type, _ = parse_options_header(self.headers.get("Content-Type", ""))
        return mime_type.lower()


def collapse_multi_values(values: Mapping[str, list[str]]) -> dict[str, Any]:
    """Convert a multi-valued mapping to a plain one.

    Keys with a single value map to that value. Keys with several values,
    or ending with `[]`, map to a list.
    """
    collapsed = {}

    for key, val in values.items():
        val = list(val)
        if len(val) > 1 or key.endswith("[]"):
            collapsed[key.removesuffix("[]")] = val
        else:
            collapsed[key] = val[0] if val else ""

    return collapsed


def decode_body(raw: bytes, content_type: str | None) -> Any:
    """Decode a raw body according to its content type.

    Bodies that claim to be JSON but do not parse are returned as text so
    that input validation rejects them, instead of failing here.
    """
    if not raw:
        return None

    mime_type, options = parse_options_header(content_type or "")
    mime_type = mime_type.lower()
    charset = options.get("charset", "utf-8").lower()

    try:
        text = raw.decode(charset)
    except (UnicodeDecodeError, LookupError) as exc:
        raise TransportError(
            f"Request body could not be read as `{charset}` text"
        ) from exc

    if mime_type == "application/x-www-form-urlencoded":
        return collapse_multi_values(parse_qs(text, keep_blank_values=True))

    if mime_type in ("", "application/json") or mime_type.endswith("+json"):
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Request body is not valid JSON, passing it through as text")
            return text

    return text


async def normalize(engine_request: EngineRequest) -> NormalizedRequest:
    headers = Headers(list(engine_request.headers))

    body = engine_request.parsed_body()
    if body is MISSING:
        body = decode_body(
            await engine_request.read_body(), headers.get("Content-Type")
        )

    return NormalizedRequest(
        method=engine_request.method.upper(),
        path=engine_request.path,
        headers=headers,
        query=collapse_multi_values(engine_request.query),
        params=dict(engine_request.path_params),
        body=body,
    )


def build_input(request: NormalizedRequest) -> Any:
    """Assemble the RPC input from a normalized request.

    Path parameters are merged with the query string for GET, HEAD and
    DELETE, and with the body otherwise. Fields from the query or body win
    over path parameters. Non-mapping bodies are passed through untouched.
    """
    data = request.query if request.method in QUERY_METHODS else request.body

    if not request.params:
        return data

    if data is None:
        return dict(request.params)

    if isinstance(data, Mapping):
        return {**request.params, **data}

    return data
