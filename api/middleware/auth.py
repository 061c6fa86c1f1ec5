# WORKFLOW: Authentication middleware for JWT and API key validation.
# Used by: All protected API endpoints when AUTH_ENABLED is set
# Functions:
# 1. _extract_token() - Extract JWT or API key from request headers
# 2. _validate_token() - Validate JWT token and extract payload
# 3. _is_public_endpoint() - Check if endpoint requires authentication
#
# Auth flow: Request -> Extract token -> Validate token -> Set user context -> Continue
# Public endpoints (health, docs) bypass authentication.
# Middleware cannot raise HTTPException; failures are answered with a 401 JSONResponse.

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import jwt
import logging
from typing import Optional
from core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

PUBLIC_PATHS = [
    "/healthz",
    "/readyz",
    "/livez",
    "/docs",
    "/redoc",
    "/openapi.json",
]


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": {"code": "unauthorized", "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for JWT validation."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        """Process request with authentication."""
        if self._is_public_endpoint(request.url.path):
            return await call_next(request)

        token = await self._extract_token(request)
        if not token:
            return _unauthorized("Authentication required")

        try:
            request.state.user = self._validate_token(token)
        except jwt.ExpiredSignatureError:
            return _unauthorized("Token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"Token validation failed: {e}")
            return _unauthorized("Invalid authentication token")

        return await call_next(request)

    def _is_public_endpoint(self, path: str) -> bool:
        """Check if endpoint is public (no auth required)."""
        versioned = [f"{settings.api_v1_prefix}{p}" for p in PUBLIC_PATHS[:3]]
        return path == "/" or any(path.startswith(p) for p in PUBLIC_PATHS + versioned)

    async def _extract_token(self, request: Request) -> Optional[str]:
        """Extract token from the Authorization header or X-API-Key."""
        credentials: Optional[HTTPAuthorizationCredentials] = await security(request)
        if credentials:
            return credentials.credentials
        return request.headers.get("X-API-Key")

    def _validate_token(self, token: str) -> dict:
        """Validate JWT token."""
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
