import logging
from typing import Iterable

from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from zendesk_triage_mcp.config import AuthConfig

logger = logging.getLogger("zendesk-mcp-server.auth")


def is_authorized(request: HTTPConnection, auth_config: AuthConfig) -> bool:
    """
    Check a request against the configured token.

    The token is accepted as an ``auth_token`` query parameter, an
    ``Authorization: Bearer`` header or an ``X-API-Key`` header.
    """
    if not auth_config.require_auth:
        return True

    expected = auth_config.token
    if not expected:
        return False

    if request.query_params.get("auth_token") == expected:
        return True

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer ") and auth_header[7:] == expected:
        return True

    if request.headers.get("X-API-Key") == expected:
        return True

    return False


class AccessGateMiddleware:
    """Reject unauthorized HTTP requests with a 401 before they reach a route"""

    def __init__(self, app: ASGIApp, auth_config: AuthConfig, realm: str, exempt_paths: Iterable[str] = ("/health",)):
        self.app = app
        self.auth_config = auth_config
        self.realm = realm
        self.exempt_paths = set(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return

        if not is_authorized(HTTPConnection(scope), self.auth_config):
            logger.warning(f"Unauthorized request to {scope['path']}")
            response = PlainTextResponse(
                "Unauthorized",
                status_code=401,
                headers={"WWW-Authenticate": f'Bearer realm="{self.realm}"'}
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
