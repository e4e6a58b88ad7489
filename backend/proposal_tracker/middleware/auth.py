from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.cognito import verify_bearer_token
from ..errors import AuthenticationError
from ..observability.logging import get_logger
from ..responses import error_response


def is_public_path(path: str) -> bool:
    # "GET /" health is public; everything under /api requires a bearer token.
    return path == "/"


def require_auth(request: Request) -> None:
    path = request.url.path

    # CORS preflight never carries credentials.
    if request.method.upper() == "OPTIONS":
        return
    if not path.startswith("/api/") and path != "/api":
        return
    if is_public_path(path):
        return

    auth = request.headers.get("authorization")
    if not auth:
        raise AuthenticationError("Missing bearer token")

    parts = str(auth).split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Malformed Authorization header")

    request.state.user = verify_bearer_token(parts[1].strip())


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Verifies the bearer token and stores the VerifiedUser on request.state.

    Added before CORSMiddleware so CORS wraps auth failures too. Role
    resolution happens later, in the `get_current_actor` dependency, because it
    needs the users table.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            require_auth(request)
        except AuthenticationError as exc:
            log.info("auth_middleware_denied", status_code=401, path=request.url.path)
            return error_response(request=request, status_code=401, error=exc.error, message=exc.message)
        except Exception:
            log.exception("auth_middleware_error", path=request.url.path)
            return error_response(request=request, status_code=500, message="Token verification failed")
        return await call_next(request)
