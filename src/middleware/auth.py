"""Bearer JWT verification middleware for FastAPI.

Validates the Bearer token on every request (except public routes) against
the signing keys published at ``AUTH_JWKS_URL``, and sets
``request.state.auth`` for ``get_current_user``.  Issuing tokens and
managing accounts stays with the identity provider.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt as pyjwt
from fastapi import Request, Response
from jwt import PyJWKClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.config import Settings, get_settings
from src.dependencies import AuthContext

logger = logging.getLogger("healthpath.auth")

# Paths that do not require authentication
PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _unauthorized(detail: str) -> Response:
    return Response(
        content=f'{{"detail":"{detail}"}}',
        status_code=401,
        media_type="application/json",
    )


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Verify identity-provider JWTs and populate request.state.auth."""

    def __init__(self, app: Any, settings: Settings | None = None) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        self._jwks_client = PyJWKClient(
            self._settings.auth_jwks_url,
            cache_keys=True,
            lifespan=3600,
        )

    def _decode(self, token: str) -> dict[str, Any]:
        signing_key = self._jwks_client.get_signing_key_from_jwt(token)
        audience = self._settings.auth_audience
        return pyjwt.decode(
            token,
            signing_key.key,
            algorithms=self._settings.auth_algorithms,
            audience=audience,
            issuer=self._settings.auth_issuer,
            options={"verify_aud": audience is not None},
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if _is_public(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized("Missing or invalid Authorization header")

        token = auth_header.removeprefix("Bearer ").strip()

        try:
            payload = self._decode(token)
        except pyjwt.ExpiredSignatureError:
            return _unauthorized("Token expired")
        except pyjwt.PyJWTError as exc:
            logger.warning("JWT validation failed: %s", exc)
            return _unauthorized("Invalid token")

        # Some providers put the stable uid in a custom claim alongside sub
        user_id = payload.get("user_id") or payload.get("sub")
        if not user_id:
            logger.warning("JWT without subject rejected")
            return _unauthorized("Invalid token")

        request.state.auth = AuthContext(
            user_id=str(user_id),
            email=payload.get("email"),
            session_id=payload.get("sid"),
        )
        return await call_next(request)
