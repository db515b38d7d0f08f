"""Starlette engine, for Starlette and FastAPI applications.

Routes are added to the application's router, so they run behind every
middleware in the stack (CORS included). The application only serves
traffic once its lifespan startup has completed.
"""

from typing import Any

from starlette.applications import Starlette
from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response

from covenant.contract import convert_path
from covenant.engines import Engine
from covenant.exceptions import TransportError
from covenant.pipeline import Pipeline, Reply
from covenant.request import MISSING, EngineRequest

# Written in place of a reply when the client is already gone
CLIENT_CLOSED_REQUEST = 499


class StarletteEngineRequest(EngineRequest):
    def __init__(self, request: Request) -> None:
        self._request = request

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def path(self) -> str:
        return self._request.url.path

    @property
    def headers(self):
        return self._request.headers.items()

    @property
    def query(self):
        params = self._request.query_params
        return {key: params.getlist(key) for key in params.keys()}

    @property
    def path_params(self):
        return self._request.path_params

    async def read_body(self) -> bytes:
        try:
            return await self._request.body()
        except ClientDisconnect as exc:
            raise TransportError("Client disconnected while sending the body") from exc

    def parsed_body(self) -> Any:
        # Set when a middleware or dependency already awaited `request.json()`
        return getattr(self._request, "_json", MISSING)

    async def is_disconnected(self) -> bool:
        return await self._request.is_disconnected()


class StarletteEngine(Engine):
    name = "starlette"

    def supports(self, app: Any) -> bool:
        return isinstance(app, Starlette)

    def convert_path(self, path: str) -> str:
        return convert_path(
            path, lambda name, rest: f"{{{name}:path}}" if rest else f"{{{name}}}"
        )

    def route_registry(self, app: Starlette) -> dict:
        routes = getattr(app.state, "covenant_routes", None)
        if routes is None:
            routes = {}
            app.state.covenant_routes = routes
        return routes

    def add_route(self, app: Starlette, binding, pipeline: Pipeline) -> None:
        async def endpoint(request: Request) -> Response:
            reply = await pipeline.run(StarletteEngineRequest(request))
            if reply is None:
                return Response(status_code=CLIENT_CLOSED_REQUEST)
            return self.write(reply)

        endpoint.__name__ = binding.endpoint
        endpoint.__doc__ = binding.operation.description or binding.operation.summary

        app.router.add_route(
            self.convert_path(binding.path),
            endpoint,
            methods=[binding.method],
            name=binding.endpoint,
        )

    def write(self, reply: Reply) -> Response:
        return Response(
            content=reply.body,
            status_code=reply.status,
            headers=reply.headers or None,
            media_type=reply.content_type,
        )
