"""
API request and response models for socialnet REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
social/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: camelCase keys (alias_generator=to_camel) and `_id` for record
ids. populate_by_name=True lets tests and internal callers use field names.

Request fields the flows require are still Optional here: a missing field is
reported by the service as a 400 ValidationError with a specific message,
rather than as a generic schema failure.

UserPublic is the only way a User leaves the API. It has no password hash
and no refresh-token list, so neither can leak through any response.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from social.models import Comment, Post

# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(_RequestModel):
    """Request body for POST /auth/register."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None


class LoginRequest(_RequestModel):
    """Request body for POST /auth/login."""

    email: Optional[str] = None
    password: Optional[str] = Field(default=None, max_length=255)


class RefreshTokenRequest(_RequestModel):
    """Request body for POST /auth/refresh and POST /auth/logout."""

    refresh_token: Optional[str] = None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserPublic(_ResponseModel):
    """External projection of a User."""

    id: str = Field(alias="_id")
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            bio=user.bio,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserUpdate(_RequestModel):
    """Request body for PUT /user/{id}. Omitted fields are left unchanged."""

    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None


class UserEnvelope(_ResponseModel):
    message: Optional[str] = None
    user: UserPublic


class UserListResponse(_ResponseModel):
    count: int
    users: list[UserPublic]


class AuthorSummary(_ResponseModel):
    """The author fields embedded in posts and comments."""

    id: str = Field(alias="_id")
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User]) -> Optional["AuthorSummary"]:
        if user is None:
            return None
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
        )


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class AuthResponse(_ResponseModel):
    """Response body for POST /auth/register and POST /auth/login."""

    message: str
    user: UserPublic
    access_token: str
    refresh_token: str


class TokenPairResponse(_ResponseModel):
    """Response body for POST /auth/refresh."""

    message: str
    access_token: str
    refresh_token: str


class MessageResponse(_ResponseModel):
    message: str


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreate(_RequestModel):
    """Request body for POST /post. The author is the authenticated caller."""

    title: Optional[str] = None
    content: Optional[str] = None


class PostUpdate(_RequestModel):
    """Request body for PUT /post/{id}. Both fields are required."""

    title: Optional[str] = None
    content: Optional[str] = None


class PostOut(_ResponseModel):
    """A post with its author projection.

    author is None when the author account has since been deleted.
    is_own is True only when the caller is authenticated as the author.
    """

    id: str = Field(alias="_id")
    title: str
    content: str
    author_id: str
    author: Optional[AuthorSummary] = None
    created_at: str
    is_own: bool = False

    @classmethod
    def from_post(cls, post: Post, author: Optional[User], viewer_id: Optional[str] = None) -> "PostOut":
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            author_id=post.author_id,
            author=AuthorSummary.from_user(author),
            created_at=post.created_at,
            is_own=viewer_id is not None and viewer_id == post.author_id,
        )


class PostEnvelope(_ResponseModel):
    message: Optional[str] = None
    post: PostOut


class PostListResponse(_ResponseModel):
    count: int
    posts: list[PostOut]


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(_RequestModel):
    """Request body for POST /comment."""

    content: Optional[str] = None
    post_id: Optional[str] = None


class CommentUpdate(_RequestModel):
    content: Optional[str] = None


class CommentOut(_ResponseModel):
    id: str = Field(alias="_id")
    content: str
    post_id: str
    author_id: str
    author: Optional[AuthorSummary] = None
    created_at: str
    is_own: bool = False

    @classmethod
    def from_comment(
        cls, comment: Comment, author: Optional[User], viewer_id: Optional[str] = None
    ) -> "CommentOut":
        return cls(
            id=comment.id,
            content=comment.content,
            post_id=comment.post_id,
            author_id=comment.author_id,
            author=AuthorSummary.from_user(author),
            created_at=comment.created_at,
            is_own=viewer_id is not None and viewer_id == comment.author_id,
        )


class CommentEnvelope(_ResponseModel):
    message: Optional[str] = None
    comment: CommentOut


class CommentListResponse(_ResponseModel):
    count: int
    comments: list[CommentOut]


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    error is a stable category ("Authentication failed"), message is for humans.
    """

    model_config = ConfigDict(frozen=True)

    error: str
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    message: str = "Server is running"
    version: str
