"""ASGI application for the Streamable HTTP transport.

Adapts ``HttpEndpoint`` to Starlette and serves it with uvicorn.
"""

from __future__ import annotations

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse
from starlette.routing import Route

from mcp_server_kit.transport.http import HttpEndpoint, HttpRequest

logger = logging.getLogger(__name__)

# Every method reaches the endpoint so unsupported ones get its 405 response
ROUTE_METHODS = ["GET", "POST", "DELETE", "PUT", "PATCH", "OPTIONS"]


def create_app(endpoint: HttpEndpoint, path: str = "/mcp", debug: bool = False) -> Starlette:
    """Create the Starlette application serving an endpoint.

    Args:
        endpoint: Endpoint that handles each request.
        path: URL path of the MCP endpoint.
        debug: Enable Starlette debug tracebacks.

    Returns:
        Starlette application.
    """

    async def handle_mcp(request: Request) -> Response:
        body = await request.body()
        http_request = HttpRequest(request.method, dict(request.headers.items()), body)
        # Dispatch is synchronous; keep it off the event loop
        response = await run_in_threadpool(endpoint.handle, http_request)

        if response.is_stream:
            return StreamingResponse(
                response.iter_events(),
                status_code=response.status,
                headers=response.headers,
            )
        return Response(content=response.body, status_code=response.status, headers=response.headers)

    return Starlette(debug=debug, routes=[Route(path, handle_mcp, methods=ROUTE_METHODS)])


def run_http(
    endpoint: HttpEndpoint,
    host: str = "127.0.0.1",
    port: int = 8000,
    path: str = "/mcp",
    log_level: str = "info",
) -> None:
    """Serve an endpoint over HTTP until interrupted.

    Args:
        endpoint: Endpoint that handles each request.
        host: Host address to bind to.
        port: Port to listen on.
        path: URL path of the MCP endpoint.
        log_level: uvicorn log level.
    """
    app = create_app(endpoint, path)
    logger.info("Starting HTTP server on http://%s:%s%s", host, port, path)
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower(), access_log=False)
