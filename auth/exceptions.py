"""
auth/exceptions.py -- Error taxonomy shared by the auth core and the CRUD routes.

Every error carries three things the HTTP layer needs:
  status_code -- the HTTP status the API answers with
  error       -- a stable, machine-readable category
  message     -- a human-readable explanation

Credential failures use one fixed message ("Invalid email or password") so a
client can never tell an unknown email from a wrong password. Validation and
conflict messages may be specific.

Layer rule: no imports from api/ or social/.
"""

from __future__ import annotations

from typing import Any


class SocialnetError(Exception):
    """Base exception for all domain errors surfaced over HTTP."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, error: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the JSON error envelope."""
        return {"error": self.error, "message": self.message}


class ValidationError(SocialnetError):
    """Missing or malformed input."""

    status_code = 400
    error = "Missing required fields"


class ConflictError(SocialnetError):
    """Uniqueness violation (username or email already in use)."""

    status_code = 409
    error = "User already exists"


class AuthenticationError(SocialnetError):
    """Bad credentials, or a missing/invalid access token."""

    status_code = 401
    error = "Authentication failed"


class InvalidTokenError(SocialnetError):
    """A token failed signature/expiry verification or the revocation check."""

    status_code = 403
    error = "Invalid refresh token"


class ForbiddenError(SocialnetError):
    """Authenticated, but acting on a resource owned by someone else."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(SocialnetError):
    """A referenced resource does not exist."""

    status_code = 404
    error = "Not found"


class InternalError(SocialnetError):
    """Unexpected failure. message carries the underlying error for diagnostics."""

    status_code = 500
    error = "Internal server error"


def describe_failure(exc: BaseException) -> str:
    """Message for an unexpected failure, safe to return to a client.

    SQLAlchemy errors render the statement and its bound parameters, which can
    hold password hashes or refresh tokens. Only the wrapped driver message
    (exc.orig) is used for them.
    """
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)
