"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in social/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/ or social/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered account.

    hashed_password is a bcrypt hash; the plaintext is never stored.
    refresh_tokens holds every refresh token that is still allowed to be
    exchanged, oldest first. Access tokens are never persisted.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    hashed_password: str
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    refresh_tokens: list[str] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, bumped by store on every update


@dataclass(frozen=True)
class TokenPayload:
    """Verified identity decoded from an access or refresh token."""

    user_id: str
    username: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: User
    tokens: TokenPair
