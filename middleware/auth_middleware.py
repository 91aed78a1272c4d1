"""
Authentication middleware that flags requests to protected routes arriving
without credentials. Token validation itself is done by FastAPI dependencies.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import List

from core.logger import logger
import config

# Routes served without authentication (exact match)
PUBLIC_ROUTES: List[str] = [
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/auth/me",
    "/api/auth/logout",
]

# Route prefixes served without authentication
PUBLIC_PREFIXES: List[str] = [
    "/docs/",
    config.LOCAL_UPLOADS_URL_PREFIX + "/",
]


def is_public_path(path: str, public_routes: List[str] = None, public_prefixes: List[str] = None) -> bool:
    """Whether ``path`` is reachable without an identity token."""
    routes = PUBLIC_ROUTES if public_routes is None else public_routes
    prefixes = PUBLIC_PREFIXES if public_prefixes is None else public_prefixes
    return path in routes or any(path.startswith(prefix) for prefix in prefixes)


class AuthRequiredMiddleware(BaseHTTPMiddleware):
    """
    Early authentication-header check for protected routes.

    Requests are never blocked here; the missing header is logged and the
    route's dependencies produce the 401.
    """

    def __init__(self, app, public_routes: List[str] = None, public_prefixes: List[str] = None):
        """
        Initialize authentication middleware.

        Args:
            app: FastAPI application
            public_routes: Paths that don't require auth
            public_prefixes: Path prefixes that don't require auth
        """
        super().__init__(app)
        self.public_routes = public_routes
        self.public_prefixes = public_prefixes

    async def dispatch(self, request: Request, call_next):
        """Process request with authentication check."""
        path = request.url.path

        if request.method == "OPTIONS" or is_public_path(path, self.public_routes, self.public_prefixes):
            return await call_next(request)

        if not request.headers.get("authorization"):
            logger.warning(
                f"Request without authentication headers: {request.method} {path} "
                f"from {request.client.host if request.client else 'unknown'}"
            )

        return await call_next(request)
