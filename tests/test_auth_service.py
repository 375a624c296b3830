"""Unit tests for auth/service.py -- register, login, refresh, logout flows.

Covers:
- register: required fields, field validation, conflicts (username priority),
  hashed storage, first refresh token persisted
- login: identical failure for unknown email and wrong password, sessions
  accumulate, email normalization
- refresh: rotation (each token works once), revoked/unknown tokens,
  vanished user, access token refused
- logout: revocation, idempotence, missing token
- refresh-token cap evicts the oldest entries
- unexpected failures surface as InternalError
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.exceptions import (
    AuthenticationError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from auth.models import TokenPayload
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService


@pytest.fixture
def service(user_store: UserStore, token_service: TokenService) -> AuthService:
    return AuthService(user_store, token_service)


@pytest.fixture
def alice(service: AuthService):
    return service.register("alice", "alice@x.com", "secret123")


class TestRegister:
    def test_stores_hash_not_plaintext(self, service: AuthService, user_store: UserStore, alice) -> None:
        stored = user_store.get_by_id(alice.user.id)
        assert stored.hashed_password != "secret123"
        assert "secret123" not in stored.hashed_password

    def test_persists_first_refresh_token(self, user_store: UserStore, alice) -> None:
        assert user_store.get_by_id(alice.user.id).refresh_tokens == [alice.tokens.refresh_token]

    def test_tokens_name_the_new_user(self, token_service: TokenService, alice) -> None:
        payload = token_service.verify_access_token(alice.tokens.access_token)
        assert payload == TokenPayload(user_id=alice.user.id, username="alice")

    def test_normalizes_fields(self, service: AuthService) -> None:
        result = service.register("  bob  ", "  Bob@X.com ", "pw", first_name=" Bob ")
        assert result.user.username == "bob"
        assert result.user.email == "bob@x.com"
        assert result.user.first_name == "Bob"

    @pytest.mark.parametrize(
        "username, email, password",
        [(None, "a@x.com", "pw"), ("alice", "", "pw"), ("alice", "a@x.com", None)],
    )
    def test_missing_fields(self, service: AuthService, username, email, password) -> None:
        with pytest.raises(ValidationError):
            service.register(username, email, password)

    @pytest.mark.parametrize(
        "username, email",
        [("ab", "a@x.com"), ("x" * 31, "a@x.com"), ("alice", "not-an-email"), ("alice", "a@x")],
    )
    def test_invalid_fields(self, service: AuthService, username, email) -> None:
        with pytest.raises(ValidationError):
            service.register(username, email, "pw")

    def test_password_over_72_bytes_rejected(self, service: AuthService, user_store: UserStore) -> None:
        # 40 characters, 80 UTF-8 bytes.
        with pytest.raises(ValidationError) as exc_info:
            service.register("alice", "alice@x.com", "\u00e9" * 40)
        assert exc_info.value.error == "Invalid password"
        assert user_store.get_by_email("alice@x.com") is None

    def test_password_of_exactly_72_bytes_accepted(self, service: AuthService) -> None:
        service.register("alice", "alice@x.com", "p" * 72)
        assert service.login("alice@x.com", "p" * 72).user.username == "alice"

    def test_bio_too_long(self, service: AuthService) -> None:
        with pytest.raises(ValidationError):
            service.register("alice", "alice@x.com", "pw", bio="x" * 501)

    def test_duplicate_username(self, service: AuthService, alice) -> None:
        with pytest.raises(ConflictError) as exc_info:
            service.register("alice", "other@x.com", "pw")
        assert exc_info.value.message == "Username already taken"

    def test_duplicate_email(self, service: AuthService, alice) -> None:
        with pytest.raises(ConflictError) as exc_info:
            service.register("other", "alice@x.com", "pw")
        assert exc_info.value.message == "Email already registered"

    def test_duplicate_email_case_insensitive(self, service: AuthService, alice) -> None:
        with pytest.raises(ConflictError):
            service.register("other", "ALICE@x.com", "pw")

    def test_username_collision_takes_priority(self, service: AuthService, alice) -> None:
        service.register("bob", "bob@x.com", "pw")
        with pytest.raises(ConflictError) as exc_info:
            service.register("alice", "bob@x.com", "pw")
        assert exc_info.value.message == "Username already taken"


class TestLogin:
    def test_success_appends_session(self, service: AuthService, user_store: UserStore, alice) -> None:
        result = service.login("alice@x.com", "secret123")
        assert result.user.id == alice.user.id
        assert user_store.get_by_id(alice.user.id).refresh_tokens == [
            alice.tokens.refresh_token,
            result.tokens.refresh_token,
        ]

    def test_returns_record_after_session_write(self, service: AuthService, user_store: UserStore, alice) -> None:
        result = service.login("alice@x.com", "secret123")
        stored = user_store.get_by_id(alice.user.id)
        assert result.tokens.refresh_token in result.user.refresh_tokens
        assert result.user.updated_at == stored.updated_at

    def test_over_long_password_is_bad_credentials(self, service: AuthService, alice) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            service.login("alice@x.com", "secret123" + "x" * 80)
        assert exc_info.value.message == "Invalid email or password"

    def test_email_is_normalized(self, service: AuthService, alice) -> None:
        assert service.login("  ALICE@x.com ", "secret123").user.id == alice.user.id

    def test_wrong_password_and_unknown_email_are_identical(self, service: AuthService, alice) -> None:
        with pytest.raises(AuthenticationError) as wrong_pw:
            service.login("alice@x.com", "wrong")
        with pytest.raises(AuthenticationError) as unknown:
            service.login("nobody@x.com", "secret123")
        assert wrong_pw.value.to_dict() == unknown.value.to_dict()
        assert wrong_pw.value.status_code == unknown.value.status_code == 401
        assert wrong_pw.value.to_dict() == {"error": "Authentication failed", "message": "Invalid email or password"}

    def test_missing_fields(self, service: AuthService) -> None:
        with pytest.raises(ValidationError):
            service.login("alice@x.com", "")

    def test_earlier_session_still_refreshes(self, service: AuthService, alice) -> None:
        service.login("alice@x.com", "secret123")
        service.refresh(alice.tokens.refresh_token)


class TestRefresh:
    def test_rotation(self, service: AuthService, user_store: UserStore, alice) -> None:
        pair = service.refresh(alice.tokens.refresh_token)
        assert pair.refresh_token != alice.tokens.refresh_token
        assert user_store.get_by_id(alice.user.id).refresh_tokens == [pair.refresh_token]

    def test_token_works_only_once(self, service: AuthService, alice) -> None:
        service.refresh(alice.tokens.refresh_token)
        with pytest.raises(InvalidTokenError):
            service.refresh(alice.tokens.refresh_token)

    def test_new_token_chains(self, service: AuthService, alice) -> None:
        second = service.refresh(alice.tokens.refresh_token)
        third = service.refresh(second.refresh_token)
        assert third.refresh_token != second.refresh_token

    def test_missing_token(self, service: AuthService) -> None:
        with pytest.raises(ValidationError):
            service.refresh(None)

    def test_garbage_token(self, service: AuthService) -> None:
        with pytest.raises(InvalidTokenError):
            service.refresh("garbage")

    def test_access_token_refused(self, service: AuthService, alice) -> None:
        with pytest.raises(InvalidTokenError):
            service.refresh(alice.tokens.access_token)

    def test_user_deleted(self, service: AuthService, user_store: UserStore, alice) -> None:
        user_store.delete_user(alice.user.id)
        with pytest.raises(InvalidTokenError):
            service.refresh(alice.tokens.refresh_token)

    def test_valid_signature_but_not_on_file(self, service: AuthService, token_service: TokenService, alice) -> None:
        forged = token_service.issue_token_pair(alice.user.id, "alice")
        with pytest.raises(InvalidTokenError):
            service.refresh(forged.refresh_token)


class TestLogout:
    def test_revokes_token(self, service: AuthService, user_store: UserStore, alice) -> None:
        identity = TokenPayload(user_id=alice.user.id, username="alice")
        service.logout(identity, alice.tokens.refresh_token)
        assert user_store.get_by_id(alice.user.id).refresh_tokens == []
        with pytest.raises(InvalidTokenError):
            service.refresh(alice.tokens.refresh_token)

    def test_only_named_session_ends(self, service: AuthService, user_store: UserStore, alice) -> None:
        second = service.login("alice@x.com", "secret123")
        service.logout(TokenPayload(alice.user.id, "alice"), alice.tokens.refresh_token)
        assert user_store.get_by_id(alice.user.id).refresh_tokens == [second.tokens.refresh_token]

    def test_idempotent(self, service: AuthService, alice) -> None:
        identity = TokenPayload(user_id=alice.user.id, username="alice")
        service.logout(identity, alice.tokens.refresh_token)
        service.logout(identity, alice.tokens.refresh_token)

    def test_missing_user_is_silent(self, service: AuthService) -> None:
        service.logout(TokenPayload(user_id="0" * 32, username="ghost"), "whatever")

    def test_missing_token(self, service: AuthService, alice) -> None:
        with pytest.raises(ValidationError):
            service.logout(TokenPayload(alice.user.id, "alice"), "")


class TestTokenCap:
    def test_oldest_token_evicted(self, user_store: UserStore, token_service: TokenService) -> None:
        service = AuthService(user_store, token_service, max_refresh_tokens=2)
        first = service.register("alice", "alice@x.com", "secret123")
        second = service.login("alice@x.com", "secret123")
        third = service.login("alice@x.com", "secret123")

        stored = user_store.get_by_id(first.user.id).refresh_tokens
        assert stored == [second.tokens.refresh_token, third.tokens.refresh_token]
        with pytest.raises(InvalidTokenError):
            service.refresh(first.tokens.refresh_token)


class TestBoundary:
    def test_unexpected_failure_becomes_internal_error(self, token_service: TokenService) -> None:
        store = MagicMock()
        store.get_by_email.side_effect = RuntimeError("db down")
        service = AuthService(store, token_service)
        with pytest.raises(InternalError) as exc_info:
            service.login("alice@x.com", "secret123")
        assert exc_info.value.error == "Failed to login"
        assert exc_info.value.message == "db down"
        assert exc_info.value.status_code == 500

    def test_database_error_keeps_driver_message_only(self, token_service: TokenService) -> None:
        store = MagicMock()
        store.get_by_email.side_effect = OperationalError(
            "SELECT users.hashed_password FROM users WHERE users.email = ?",
            ("alice@x.com",),
            Exception("database is locked"),
        )
        service = AuthService(store, token_service)
        with pytest.raises(InternalError) as exc_info:
            service.login("alice@x.com", "secret123")
        assert exc_info.value.message == "database is locked"

    def test_get_user_missing(self, service: AuthService) -> None:
        with pytest.raises(NotFoundError):
            service.get_user("0" * 32)
