"""Streamable HTTP transport for the SL MCP server, behind a shared API key."""

import contextlib
import hmac
import logging
from collections.abc import Awaitable, Callable

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Receive, Scope, Send

from .config import Settings
from .server import app as mcp_app

logger = logging.getLogger(__name__)


def extract_api_key(request: Request) -> str | None:
    """Return the key from ``Authorization: Bearer`` or ``x-api-key``."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return request.headers.get("x-api-key")


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests that do not carry the configured API key."""

    def __init__(self, app: ASGIApp, api_key: str | None) -> None:
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not self.api_key:
            logger.error("MCP_API_KEY is not configured, refusing request")
            return PlainTextResponse("MCP_API_KEY is not configured.", status_code=500)

        provided = extract_api_key(request)
        if provided is None or not hmac.compare_digest(provided, self.api_key):
            return PlainTextResponse("Unauthorized. Provide MCP_API_KEY.", status_code=401)

        return await call_next(request)


class _MCPEndpoint:
    """ASGI endpoint forwarding to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


def create_http_app(settings: Settings) -> Starlette:
    """Build the Starlette app serving MCP at /mcp."""
    session_manager = StreamableHTTPSessionManager(
        app=mcp_app,
        json_response=True,
        stateless=True,
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette):
        async with session_manager.run():
            yield

    http_app = Starlette(
        routes=[
            Route(
                "/mcp",
                endpoint=_MCPEndpoint(session_manager),
                methods=["GET", "POST", "DELETE"],
            )
        ],
        lifespan=lifespan,
    )
    http_app.add_middleware(ApiKeyMiddleware, api_key=settings.mcp_api_key)
    return http_app


def serve_http(settings: Settings) -> None:
    """Run the HTTP transport with uvicorn."""
    import uvicorn

    logger.info("Serving SL MCP over HTTP on %s:%s/mcp", settings.host, settings.port)
    uvicorn.run(create_http_app(settings), host=settings.host, port=settings.port)
