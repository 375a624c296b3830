"""
api/routes/posts.py -- Post CRUD endpoints.

Routes:
  POST   /post         -- create a post as the caller (requires access token)
  GET    /post         -- list posts (?author=), newest first (optional auth)
  GET    /post/{id}    -- one post (optional auth)
  PUT    /post/{id}    -- replace title and content (author only)
  DELETE /post/{id}    -- delete (author only)

Reads use the optional identity to mark the caller's own posts (isOwn).
Every post embeds its author's public fields; author is null once the
author account has been deleted.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import PostCreate, PostEnvelope, PostListResponse, PostOut, PostUpdate
from api.params import require_id
from auth.dependencies import get_current_identity, try_get_identity
from auth.exceptions import ForbiddenError, NotFoundError, ValidationError
from auth.models import TokenPayload
from auth.store import UserStore
from social.models import Post
from social.store import SocialStore

router = APIRouter()


def _stores(request: Request) -> tuple[SocialStore, UserStore]:
    return request.app.state.social_store, request.app.state.user_store


def _render(posts: list[Post], users: UserStore, viewer: Optional[TokenPayload]) -> list[PostOut]:
    authors = users.get_by_ids({p.author_id for p in posts})
    viewer_id = viewer.user_id if viewer else None
    return [PostOut.from_post(p, authors.get(p.author_id), viewer_id) for p in posts]


def _load_own_post(social: SocialStore, post_id: str, identity: TokenPayload) -> Post:
    post = social.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found", error="Post not found")
    if post.author_id != identity.user_id:
        raise ForbiddenError("Only the author can modify this post")
    return post


@router.post("/post", response_model=PostEnvelope, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    identity: TokenPayload = Depends(get_current_identity),
) -> PostEnvelope:
    social, users = _stores(request)
    title = (body.title or "").strip()
    content = (body.content or "").strip()
    if not title or not content:
        raise ValidationError("Title and content are required")
    if users.get_by_id(identity.user_id) is None:
        raise NotFoundError("Cannot create post for non-existent user", error="User not found")

    post_id = social.create_post(Post(title=title, content=content, author_id=identity.user_id))
    post = social.get_post(post_id)
    return PostEnvelope(message="Post created successfully", post=_render([post], users, identity)[0])


@router.get("/post", response_model=PostListResponse)
def list_posts(
    request: Request,
    author: Optional[str] = None,
    viewer: Optional[TokenPayload] = Depends(try_get_identity),
) -> PostListResponse:
    if author is not None:
        require_id(author, "author")
    social, users = _stores(request)
    posts = social.list_posts(author_id=author)
    return PostListResponse(count=len(posts), posts=_render(posts, users, viewer))


@router.get("/post/{post_id}", response_model=PostEnvelope)
def get_post(
    request: Request,
    post_id: str,
    viewer: Optional[TokenPayload] = Depends(try_get_identity),
) -> PostEnvelope:
    require_id(post_id, "post")
    social, users = _stores(request)
    post = social.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found", error="Post not found")
    return PostEnvelope(post=_render([post], users, viewer)[0])


@router.put("/post/{post_id}", response_model=PostEnvelope)
def update_post(
    request: Request,
    post_id: str,
    body: PostUpdate,
    identity: TokenPayload = Depends(get_current_identity),
) -> PostEnvelope:
    require_id(post_id, "post")
    title = (body.title or "").strip()
    content = (body.content or "").strip()
    if not title or not content:
        raise ValidationError("Title and content are required for update")
    social, users = _stores(request)
    _load_own_post(social, post_id, identity)

    social.update_post(post_id, title=title, content=content)
    post = social.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found", error="Post not found")
    return PostEnvelope(message="Post updated successfully", post=_render([post], users, identity)[0])


@router.delete("/post/{post_id}", response_model=PostEnvelope)
def delete_post(
    request: Request,
    post_id: str,
    identity: TokenPayload = Depends(get_current_identity),
) -> PostEnvelope:
    require_id(post_id, "post")
    social, users = _stores(request)
    post = _load_own_post(social, post_id, identity)
    if not social.delete_post(post_id):
        raise NotFoundError("Post not found", error="Post not found")
    return PostEnvelope(message="Post deleted successfully", post=_render([post], users, identity)[0])
