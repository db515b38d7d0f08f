"""Flask engine.

Routes are registered with `add_url_rule` and run as async views, which
Flask executes through `ensure_sync` (install `flask[async]`). Responses are
built with the application's `response_class`, so `after_request` hooks,
Flask-CORS and WSGI middleware see them like any other response.
"""

from typing import Any

from flask import Flask, current_app, request as flask_request
from werkzeug.exceptions import ClientDisconnected

from covenant.contract import convert_path
from covenant.engines import Engine
from covenant.exceptions import TransportError
from covenant.pipeline import Pipeline, Reply
from covenant.request import MISSING, EngineRequest


class FlaskEngineRequest(EngineRequest):
    def __init__(self, request: Any, path_params: dict[str, Any]) -> None:
        self._request = request
        self._path_params = path_params

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def path(self) -> str:
        return self._request.path

    @property
    def headers(self):
        return self._request.headers.items()

    @property
    def query(self):
        return self._request.args.to_dict(flat=False)

    @property
    def path_params(self):
        return self._path_params

    async def read_body(self) -> bytes:
        try:
            return self._request.get_data(cache=True)
        except ClientDisconnected as exc:
            raise TransportError("Client disconnected while sending the body") from exc

    def parsed_body(self) -> Any:
        # Populated when a hook already called `request.get_json()`
        silent, loud = getattr(self._request, "_cached_json", (Ellipsis, Ellipsis))
        value = loud if loud is not Ellipsis else silent
        if value is Ellipsis or value is None:
            return MISSING
        return value


class FlaskEngine(Engine):
    name = "flask"

    def supports(self, app: Any) -> bool:
        return isinstance(app, Flask)

    def convert_path(self, path: str) -> str:
        return convert_path(
            path, lambda name, rest: f"<path:{name}>" if rest else f"<{name}>"
        )

    def route_registry(self, app: Flask) -> dict:
        state = app.extensions.setdefault("covenant", {"routes": {}})
        return state["routes"]

    def add_route(self, app: Flask, binding, pipeline: Pipeline) -> None:
        async def view(**path_params):
            reply = await pipeline.run(FlaskEngineRequest(flask_request, path_params))
            return self.write(reply)

        view.__name__ = binding.endpoint
        view.__doc__ = binding.operation.description or binding.operation.summary

        app.add_url_rule(
            self.convert_path(binding.path),
            endpoint=binding.endpoint,
            view_func=view,
            methods=[binding.method],
        )

    def write(self, reply: Reply) -> Any:
        response = current_app.response_class(
            response=reply.body, status=reply.status, mimetype=reply.content_type
        )
        if reply.content_type is None:
            del response.headers["Content-Type"]

        for key, value in reply.headers.items():
            response.headers[key] = value

        return response
