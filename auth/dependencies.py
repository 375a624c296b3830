"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: an `Authorization: Bearer <token>` header
carrying an access token. A missing header, another scheme, or an empty token
all count as "no token".

try_get_identity() is the soft variant (returns None on any failure).
get_current_identity() is the hard variant:
  no token      -> 401 "Access token required"
  invalid token -> 403 "Invalid or expired token"

Both return the verified TokenPayload as the dependency value, so a
downstream handler receives the identity as an explicit argument. Nothing is
written onto the request object.

Layer rule: no imports from api/ or social/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.exceptions import AuthenticationError, InvalidTokenError
from auth.models import TokenPayload
from auth.tokens import TokenService

_SCHEME = "Bearer "


def extract_bearer_token(request: Request) -> str | None:
    """Return the token from a well-formed Bearer header, else None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_SCHEME):
        return None
    token = auth_header[len(_SCHEME) :].strip()
    return token or None


def try_get_identity(request: Request) -> TokenPayload | None:
    """Verify the Bearer token if one is present.

    Returns the identity on success, None when the token is absent or invalid.
    Never raises -- callers that need a hard failure use get_current_identity().
    """
    token = extract_bearer_token(request)
    if token is None:
        return None
    token_service: TokenService = request.app.state.token_service
    try:
        return token_service.verify_access_token(token)
    except InvalidTokenError:
        return None


def get_current_identity(request: Request) -> TokenPayload:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(identity: TokenPayload = Depends(get_current_identity)): ...
    """
    token = extract_bearer_token(request)
    if token is None:
        raise AuthenticationError(
            "Authorization header must carry a Bearer access token",
            error="Access token required",
        )
    token_service: TokenService = request.app.state.token_service
    try:
        return token_service.verify_access_token(token)
    except InvalidTokenError as exc:
        raise AuthenticationError(exc.message, error="Invalid or expired token", status_code=403) from exc
