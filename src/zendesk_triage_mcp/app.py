"""
HTTP transport for the Zendesk triage MCP server.

Routes:
    /health         Health check, no authorization
    /sse            SSE stream (GET)
    /sse/message    Messages from SSE clients (POST)
    /mcp            Streamable HTTP endpoint

Every route except /health requires the configured token.
"""
import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

import uvicorn
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from zendesk_triage_mcp import __version__
from zendesk_triage_mcp.agents import AgentDirectory
from zendesk_triage_mcp.auth import AccessGateMiddleware
from zendesk_triage_mcp.config import AuthConfig, Settings, load_settings, setup_logging
from zendesk_triage_mcp.errors import ConfigurationError
from zendesk_triage_mcp.server import SERVER_NAME, ZendeskTools, create_server, initialization_options, run_stdio
from zendesk_triage_mcp.zendesk_client import ZendeskClient

logger = logging.getLogger("zendesk-mcp-server.app")

SSE_MESSAGE_PATH = "/sse/message"


class _ASGIEndpoint:
    """Lets a Route hand the raw ASGI call to an MCP transport"""

    def __init__(self, handler: Callable[[Scope, Receive, Send], Awaitable[None]]):
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.handler(scope, receive, send)


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({
        "status": "healthy",
        "service": SERVER_NAME,
        "version": __version__
    })


async def not_found(request: Request, exc: Exception) -> PlainTextResponse:
    return PlainTextResponse("Not found", status_code=404)


def create_app(server: Server, auth_config: AuthConfig) -> Starlette:
    """Build the Starlette app serving the MCP server over SSE and streamable HTTP"""
    sse = SseServerTransport(SSE_MESSAGE_PATH)
    session_manager = StreamableHTTPSessionManager(app=server, stateless=True)

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, initialization_options(server))
        return Response()

    @asynccontextmanager
    async def lifespan(app: Starlette):
        async with session_manager.run():
            logger.info(f"{SERVER_NAME} {__version__} ready")
            yield

    return Starlette(
        routes=[
            Route("/health", endpoint=health_check, methods=["GET", "POST"]),
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Route(SSE_MESSAGE_PATH, endpoint=_ASGIEndpoint(sse.handle_post_message)),
            Route("/mcp", endpoint=_ASGIEndpoint(session_manager.handle_request)),
        ],
        middleware=[
            Middleware(AccessGateMiddleware, auth_config=auth_config, realm=SERVER_NAME),
        ],
        exception_handlers={404: not_found},
        lifespan=lifespan,
    )


def build_server(settings: Settings) -> Server:
    zendesk_client = ZendeskClient.from_credentials(
        subdomain=settings.zendesk.subdomain,
        email=settings.zendesk.email,
        token=settings.zendesk.token
    )

    if settings.agent_directory_path:
        agent_directory = AgentDirectory.from_json_file(settings.agent_directory_path)
    else:
        logger.warning("ZENDESK_AGENT_DIRECTORY is not set; only numeric agent IDs can be resolved")
        agent_directory = AgentDirectory({})

    return create_server(ZendeskTools(zendesk_client, agent_directory))


def main():
    """Main entry point for the Zendesk triage MCP server"""
    parser = argparse.ArgumentParser(description="Zendesk Triage MCP Server")
    parser.add_argument(
        "--transport",
        choices=["http", "stdio"],
        default="http",
        help="Serve over HTTP (SSE and streamable HTTP) or stdin/stdout (default: http)",
    )
    parser.add_argument("--host", default=None, help="HTTP host (default: MCP_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default: MCP_PORT or 8000)")
    args = parser.parse_args()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        parser.exit(1, f"Configuration error: {e}\n")

    setup_logging(settings.log_level)
    logger.info("zendesk mcp server started")

    try:
        server = build_server(settings)
    except ConfigurationError as e:
        parser.exit(1, f"Configuration error: {e}\n")

    if args.transport == "stdio":
        asyncio.run(run_stdio(server))
        return

    try:
        settings.auth.validate()
    except ConfigurationError as e:
        parser.exit(1, f"Configuration error: {e}\n")

    if not settings.auth.require_auth:
        logger.warning("Authorization is disabled; every HTTP request will be accepted")

    app = create_app(server, settings.auth)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
    )


if __name__ == "__main__":
    main()
