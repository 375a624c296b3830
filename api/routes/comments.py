"""
api/routes/comments.py -- Comment CRUD endpoints.

Routes:
  POST   /comment        -- comment on an existing post (requires access token)
  GET    /comment        -- list (?postId=, ?author=), newest first (optional auth)
  GET    /comment/{id}   -- one comment (optional auth)
  PUT    /comment/{id}   -- replace content (author only)
  DELETE /comment/{id}   -- delete (author only)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import CommentCreate, CommentEnvelope, CommentListResponse, CommentOut, CommentUpdate
from api.params import require_id
from auth.dependencies import get_current_identity, try_get_identity
from auth.exceptions import ForbiddenError, NotFoundError, ValidationError
from auth.models import TokenPayload
from auth.store import UserStore
from social.models import Comment
from social.store import SocialStore

router = APIRouter()


def _stores(request: Request) -> tuple[SocialStore, UserStore]:
    return request.app.state.social_store, request.app.state.user_store


def _render(comments: list[Comment], users: UserStore, viewer: Optional[TokenPayload]) -> list[CommentOut]:
    authors = users.get_by_ids({c.author_id for c in comments})
    viewer_id = viewer.user_id if viewer else None
    return [CommentOut.from_comment(c, authors.get(c.author_id), viewer_id) for c in comments]


def _load_own_comment(social: SocialStore, comment_id: str, identity: TokenPayload) -> Comment:
    comment = social.get_comment(comment_id)
    if comment is None:
        raise NotFoundError("Comment not found", error="Comment not found")
    if comment.author_id != identity.user_id:
        raise ForbiddenError("Only the author can modify this comment")
    return comment


@router.post("/comment", response_model=CommentEnvelope, status_code=201)
def create_comment(
    request: Request,
    body: CommentCreate,
    identity: TokenPayload = Depends(get_current_identity),
) -> CommentEnvelope:
    content = (body.content or "").strip()
    if not content or not body.post_id:
        raise ValidationError("Content and postId are required")
    post_id = require_id(body.post_id, "post")
    social, users = _stores(request)
    if social.get_post(post_id) is None:
        raise NotFoundError("Cannot comment on a non-existent post", error="Post not found")
    if users.get_by_id(identity.user_id) is None:
        raise NotFoundError("Cannot create comment for non-existent user", error="User not found")

    comment_id = social.create_comment(Comment(content=content, post_id=post_id, author_id=identity.user_id))
    comment = social.get_comment(comment_id)
    return CommentEnvelope(message="Comment created successfully", comment=_render([comment], users, identity)[0])


@router.get("/comment", response_model=CommentListResponse)
def list_comments(
    request: Request,
    post_id: Optional[str] = Query(default=None, alias="postId"),
    author: Optional[str] = None,
    viewer: Optional[TokenPayload] = Depends(try_get_identity),
) -> CommentListResponse:
    if post_id is not None:
        require_id(post_id, "post")
    if author is not None:
        require_id(author, "author")
    social, users = _stores(request)
    comments = social.list_comments(post_id=post_id, author_id=author)
    return CommentListResponse(count=len(comments), comments=_render(comments, users, viewer))


@router.get("/comment/{comment_id}", response_model=CommentEnvelope)
def get_comment(
    request: Request,
    comment_id: str,
    viewer: Optional[TokenPayload] = Depends(try_get_identity),
) -> CommentEnvelope:
    require_id(comment_id, "comment")
    social, users = _stores(request)
    comment = social.get_comment(comment_id)
    if comment is None:
        raise NotFoundError("Comment not found", error="Comment not found")
    return CommentEnvelope(comment=_render([comment], users, viewer)[0])


@router.put("/comment/{comment_id}", response_model=CommentEnvelope)
def update_comment(
    request: Request,
    comment_id: str,
    body: CommentUpdate,
    identity: TokenPayload = Depends(get_current_identity),
) -> CommentEnvelope:
    require_id(comment_id, "comment")
    content = (body.content or "").strip()
    if not content:
        raise ValidationError("Content is required for update")
    social, users = _stores(request)
    _load_own_comment(social, comment_id, identity)

    social.update_comment(comment_id, content)
    comment = social.get_comment(comment_id)
    if comment is None:
        raise NotFoundError("Comment not found", error="Comment not found")
    return CommentEnvelope(message="Comment updated successfully", comment=_render([comment], users, identity)[0])


@router.delete("/comment/{comment_id}", response_model=CommentEnvelope)
def delete_comment(
    request: Request,
    comment_id: str,
    identity: TokenPayload = Depends(get_current_identity),
) -> CommentEnvelope:
    require_id(comment_id, "comment")
    social, users = _stores(request)
    comment = _load_own_comment(social, comment_id, identity)
    if not social.delete_comment(comment_id):
        raise NotFoundError("Comment not found", error="Comment not found")
    return CommentEnvelope(message="Comment deleted successfully", comment=_render([comment], users, identity)[0])
