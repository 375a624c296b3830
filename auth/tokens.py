"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, each signed with its own
       secret:
         access  -- short-lived (15 min default), presented on every request
         refresh -- long-lived (7 days default), exchanged for a new pair
       Because the secrets differ, an access token never verifies as a refresh
       token and vice versa. Both carry user_id, username, iat, exp and a
       random jti. The jti makes every issued string unique, so two logins in
       the same second never produce the same refresh token.

  TokenService holds no mutable state. Secrets and expiries are handed to
       the constructor once (from Settings, in the app lifespan). Rotating a
       secret invalidates every outstanding token of that kind.

  Passwords: bcrypt, salted per hash. The _DUMMY_HASH constant enables
       timing equalization in AuthService.login() so response time does not
       reveal whether an email is registered.

Layer rule: no imports from api/ or social/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.exceptions import InvalidTokenError
from auth.models import TokenPair, TokenPayload

logger = logging.getLogger("socialnet.auth")

_ALGORITHM = "HS256"

# bcrypt only reads this many bytes of a password; bcrypt 5 raises past it.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers reject passwords over MAX_PASSWORD_BYTES first; bcrypt raises
    ValueError for them.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    An over-long password still costs one bcrypt check but never matches,
    since registration refuses them.
    """
    encoded = plain.encode("utf-8")
    try:
        matched = bcrypt.checkpw(encoded[:MAX_PASSWORD_BYTES], hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage; treat as a failed check.
        return False
    return matched and len(encoded) <= MAX_PASSWORD_BYTES


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("socialnet_timing_dummy")


def verify_dummy_password(plain: str) -> None:
    """Burn one bcrypt check so an unknown account costs the same as a known one."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed access/refresh token pairs.

    Usage:
        tokens = TokenService(access_secret, refresh_secret)
        pair = tokens.issue_token_pair(user.id, user.username)
        identity = tokens.verify_access_token(pair.access_token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expire_seconds: int = 15 * 60,
        refresh_expire_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must be signed with different secrets.")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds

    def issue_token_pair(self, user_id: str, username: str) -> TokenPair:
        """Sign a fresh access token and a fresh refresh token for the user."""
        return TokenPair(
            access_token=self._encode(user_id, username, self._access_secret, self.access_expire_seconds),
            refresh_token=self._encode(user_id, username, self._refresh_secret, self.refresh_expire_seconds),
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        """Check signature and expiry with the access secret.

        Raises InvalidTokenError on any failure.
        """
        return self._decode(token, self._access_secret, "The access token is invalid or expired")

    def verify_refresh_token(self, token: str) -> TokenPayload:
        """Check signature and expiry with the refresh secret.

        Raises InvalidTokenError on any failure.
        """
        return self._decode(token, self._refresh_secret, "The refresh token is invalid or expired")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(user_id: str, username: str, secret: str, expire_seconds: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "user_id": user_id,
            "username": username,
            "iat": now,
            "exp": now + timedelta(seconds=expire_seconds),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    @staticmethod
    def _decode(token: str, secret: str, message: str) -> TokenPayload:
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise InvalidTokenError(message) from exc
        user_id = payload.get("user_id")
        username = payload.get("username")
        if not isinstance(user_id, str) or not isinstance(username, str):
            raise InvalidTokenError(message)
        return TokenPayload(user_id=user_id, username=username)
