"""
api/routes/users.py -- User profile CRUD endpoints.

Routes:
  GET    /user         -- list users (?username=, ?email= substring filters)
  GET    /user/{id}    -- one user
  PUT    /user/{id}    -- update own profile (requires access token)
  DELETE /user/{id}    -- delete own account (requires access token)

Accounts are created through POST /auth/register only.

Ownership: PUT and DELETE compare the path id with the token's user_id.
There are no roles, so nobody may modify another user's account.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import UserEnvelope, UserListResponse, UserPublic, UserUpdate
from api.params import require_id
from auth.dependencies import get_current_identity
from auth.exceptions import ConflictError, ForbiddenError, NotFoundError
from auth.models import TokenPayload
from auth.service import conflict_for, normalize_email, normalize_profile, normalize_username
from auth.store import UserStore

router = APIRouter()


def _user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def _require_self(user_id: str, identity: TokenPayload) -> None:
    if identity.user_id != user_id:
        raise ForbiddenError("You can only modify your own account")


@router.get("/user", response_model=UserListResponse)
def list_users(
    request: Request,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> UserListResponse:
    """List users newest first. Filters are case-insensitive substrings."""
    users = _user_store(request).list_users(username=username, email=email)
    return UserListResponse(count=len(users), users=[UserPublic.from_user(u) for u in users])


@router.get("/user/{user_id}", response_model=UserEnvelope)
def get_user(request: Request, user_id: str) -> UserEnvelope:
    require_id(user_id, "user")
    user = _user_store(request).get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found", error="User not found")
    return UserEnvelope(user=UserPublic.from_user(user))


@router.put("/user/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    identity: TokenPayload = Depends(get_current_identity),
) -> UserEnvelope:
    """Update the caller's own profile. Omitted fields are left unchanged."""
    require_id(user_id, "user")
    _require_self(user_id, identity)
    store = _user_store(request)
    if store.get_by_id(user_id) is None:
        raise NotFoundError("User not found", error="User not found")

    updates: dict = {}
    if body.username is not None:
        updates["username"] = normalize_username(body.username)
    if body.email is not None:
        updates["email"] = normalize_email(body.email)
    profile = {
        name: value
        for name, value in (("first_name", body.first_name), ("last_name", body.last_name), ("bio", body.bio))
        if value is not None
    }
    updates.update(normalize_profile(**profile))

    if "username" in updates or "email" in updates:
        matches = store.find_conflicts(
            username=updates.get("username"),
            email=updates.get("email"),
            exclude_id=user_id,
        )
        conflict = conflict_for(matches, updates.get("username"), error="Duplicate entry")
        if conflict is not None:
            raise conflict

    try:
        store.update_user(user_id, **updates)
    except IntegrityError as exc:
        raise ConflictError("Username or email already exists", error="Duplicate entry") from exc

    updated = store.get_by_id(user_id)
    if updated is None:
        raise NotFoundError("User not found", error="User not found")
    return UserEnvelope(message="User updated successfully", user=UserPublic.from_user(updated))


@router.delete("/user/{user_id}", response_model=UserEnvelope)
def delete_user(
    request: Request,
    user_id: str,
    identity: TokenPayload = Depends(get_current_identity),
) -> UserEnvelope:
    """Delete the caller's own account. Their posts and comments remain."""
    require_id(user_id, "user")
    _require_self(user_id, identity)
    store = _user_store(request)
    user = store.get_by_id(user_id)
    if user is None or not store.delete_user(user_id):
        raise NotFoundError("User not found", error="User not found")
    return UserEnvelope(message="User deleted successfully", user=UserPublic.from_user(user))
