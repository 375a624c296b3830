"""
auth/service.py -- Register / login / refresh / logout orchestration.

AuthService is the only component that combines UserStore and TokenService.
Route handlers call one method per endpoint and render the result; they never
touch tokens or password hashes themselves.

Refresh-token lifecycle per user:
  register -> list = [t1]
  login    -> list + [t2]           (earlier sessions stay valid)
  refresh  -> list - [old] + [new]  (rotation: each token works once)
  logout   -> list - [token]        (idempotent)

The list is capped at max_refresh_tokens entries; the oldest token is
evicted when a new one would exceed the cap.

Every public method converts unexpected failures into InternalError at its
own boundary. SocialnetError subclasses pass through untouched.

Layer rule: no imports from api/ or social/.
"""

from __future__ import annotations

import functools
import logging
import re

from sqlalchemy.exc import IntegrityError

from auth.exceptions import (
    AuthenticationError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    SocialnetError,
    ValidationError,
    describe_failure,
)
from auth.models import AuthResult, TokenPair, TokenPayload, User
from auth.store import UserStore, new_id
from auth.tokens import (
    MAX_PASSWORD_BYTES,
    TokenService,
    hash_password,
    verify_dummy_password,
    verify_password,
)

logger = logging.getLogger("socialnet.auth")

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
USERNAME_MIN = 3
USERNAME_MAX = 30
# Profile field -> max length after trimming.
PROFILE_LIMITS = {"first_name": 50, "last_name": 50, "bio": 500}

_BAD_CREDENTIALS = "Invalid email or password"


# ---------------------------------------------------------------------------
# Field normalization (shared with the user CRUD routes)
# ---------------------------------------------------------------------------


def normalize_username(username: str) -> str:
    """Trim and length-check a username. Raises ValidationError."""
    value = username.strip()
    if not USERNAME_MIN <= len(value) <= USERNAME_MAX:
        raise ValidationError(
            f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters long",
            error="Invalid username",
        )
    return value


def normalize_email(email: str) -> str:
    """Trim, lowercase and pattern-check an email. Raises ValidationError."""
    value = email.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("Please provide a valid email address", error="Invalid email")
    return value


def normalize_profile(**fields: str | None) -> dict[str, str | None]:
    """Trim optional profile fields and enforce their length caps."""
    result: dict[str, str | None] = {}
    for name, value in fields.items():
        if value is None:
            result[name] = None
            continue
        value = value.strip()
        limit = PROFILE_LIMITS[name]
        if len(value) > limit:
            label = name.replace("_", " ").capitalize()
            raise ValidationError(f"{label} cannot exceed {limit} characters", error="Invalid profile field")
        result[name] = value
    return result


def conflict_for(matches: list[User], username: str | None, error: str | None = None) -> ConflictError | None:
    """Build the ConflictError for colliding users, or None when there is none.

    The username collision wins when both fields collide.
    """
    if not matches:
        return None
    if username and any(u.username == username for u in matches):
        return ConflictError("Username already taken", error=error)
    return ConflictError("Email already registered", error=error)


def _boundary(failure: str):
    """Convert anything that is not a SocialnetError into InternalError."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SocialnetError:
                raise
            except Exception as exc:
                logger.exception("%s", failure)
                raise InternalError(describe_failure(exc), error=failure) from exc

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService:
    """Authentication flows over a UserStore and a TokenService.

    Usage:
        service = AuthService(store, TokenService(access_secret, refresh_secret))
        result = service.register("alice", "alice@x.com", "secret123")
        pair = service.refresh(result.tokens.refresh_token)
    """

    def __init__(self, store: UserStore, tokens: TokenService, max_refresh_tokens: int = 0) -> None:
        self.store = store
        self.tokens = tokens
        self.max_refresh_tokens = max_refresh_tokens

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    @_boundary("Failed to register user")
    def register(
        self,
        username: str | None,
        email: str | None,
        password: str | None,
        first_name: str | None = None,
        last_name: str | None = None,
        bio: str | None = None,
    ) -> AuthResult:
        """Create an account and open its first session."""
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required")
        username = normalize_username(username)
        email = normalize_email(email)
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes", error="Invalid password"
            )
        profile = normalize_profile(first_name=first_name, last_name=last_name, bio=bio)

        conflict = conflict_for(self.store.find_conflicts(username=username, email=email), username)
        if conflict is not None:
            logger.info("Registration rejected: %s", conflict.message)
            raise conflict

        user = User(
            id=new_id(),
            username=username,
            email=email,
            hashed_password=hash_password(password),
            **profile,
        )
        pair = self.tokens.issue_token_pair(user.id, user.username)
        user.refresh_tokens = [pair.refresh_token]
        try:
            self.store.create_user(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same name/email.
            raise ConflictError("Username or email already exists", error="Duplicate entry") from exc

        created = self.store.get_by_id(user.id)
        if created is None:
            raise InternalError("User not found after write.", error="Failed to register user")
        logger.info("Registered user %s", created.id)
        return AuthResult(user=created, tokens=pair)

    @_boundary("Failed to login")
    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Verify credentials and open an additional session.

        Unknown email and wrong password raise the identical AuthenticationError,
        and both run exactly one bcrypt check.
        """
        if not email or not password:
            raise ValidationError("Email and password are required")
        user = self.store.get_by_email(email.strip().lower())
        if user is None:
            verify_dummy_password(password)
            logger.info("Login failed")
            raise AuthenticationError(_BAD_CREDENTIALS)
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed")
            raise AuthenticationError(_BAD_CREDENTIALS)

        pair = self.tokens.issue_token_pair(user.id, user.username)
        self.store.set_refresh_tokens(user.id, self._append(user.refresh_tokens, pair.refresh_token))
        current = self.store.get_by_id(user.id)
        if current is None:
            raise InternalError("User not found after write.", error="Failed to login")
        logger.info("User %s logged in", current.id)
        return AuthResult(user=current, tokens=pair)

    @_boundary("Failed to refresh token")
    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Exchange a stored refresh token for a new pair, retiring the old token."""
        if not refresh_token:
            raise ValidationError("Refresh token is required", error="Missing refresh token")
        payload = self.tokens.verify_refresh_token(refresh_token)

        user = self.store.get_by_id(payload.user_id)
        if user is None or refresh_token not in user.refresh_tokens:
            logger.warning("Refresh rejected for user %s: token not on file", payload.user_id)
            raise InvalidTokenError("The refresh token is not valid for this user")

        remaining = [t for t in user.refresh_tokens if t != refresh_token]
        pair = self.tokens.issue_token_pair(user.id, user.username)
        self.store.set_refresh_tokens(user.id, self._append(remaining, pair.refresh_token))
        logger.info("Rotated refresh token for user %s", user.id)
        return pair

    @_boundary("Failed to logout")
    def logout(self, identity: TokenPayload, refresh_token: str | None) -> None:
        """Revoke one refresh token. Missing user or unknown token is not an error."""
        if not refresh_token:
            raise ValidationError("Refresh token is required for logout", error="Missing refresh token")
        user = self.store.get_by_id(identity.user_id)
        if user is not None and refresh_token in user.refresh_tokens:
            self.store.set_refresh_tokens(user.id, [t for t in user.refresh_tokens if t != refresh_token])
            logger.info("User %s logged out", user.id)

    @_boundary("Failed to retrieve user")
    def get_user(self, user_id: str) -> User:
        """Return the current record for an authenticated identity."""
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", error="User not found")
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append(self, tokens: list[str], token: str) -> list[str]:
        """Append a token, evicting the oldest ones past the cap."""
        updated = [*tokens, token]
        if self.max_refresh_tokens and len(updated) > self.max_refresh_tokens:
            updated = updated[-self.max_refresh_tokens :]
        return updated
