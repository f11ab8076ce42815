"""Authentication middleware: resolves bearer tokens on protected paths."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.services.auth_service import get_token_registry, parse_bearer

# Paths that require a bearer token
PROTECTED_PREFIXES = (
    "/api/enterprise",
)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if not any(path.startswith(p) for p in PROTECTED_PREFIXES):
            return await call_next(request)

        token = parse_bearer(request.headers.get("authorization"))
        principal = get_token_registry().resolve(token)

        if principal:
            # Scope checks happen per route (app.api.deps.require_scope)
            request.state.principal = principal
            return await call_next(request)

        return JSONResponse(
            status_code=401,
            content={"success": False, "error": "Not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )
