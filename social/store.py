"""
social/store.py -- SQLAlchemy-backed persistence layer for posts and comments.

Uses SQLAlchemy Core (not ORM) so the dataclasses in social/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. SocialStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = SocialStore("sqlite:///socialnet.db")
    post_id = store.create_post(Post(title="Hi", content="...", author_id=uid))
    store.create_comment(Comment(content="Nice", post_id=post_id, author_id=uid))
    posts = store.list_posts(author_id=uid)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.store import make_engine, new_id
from social.models import Comment, Post

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_posts = Table(
    "posts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("title", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("author_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("content", Text, nullable=False),
    Column("post_id", String(32), nullable=False, index=True),
    Column("author_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SocialStore:
    """Repository for Post and Comment entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, post: Post) -> str:
        """Insert a post and return its id."""
        post_id = new_id()
        with self.engine.connect() as conn:
            conn.execute(
                _posts.insert().values(
                    id=post_id,
                    title=post.title,
                    content=post.content,
                    author_id=post.author_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return post_id

    def get_post(self, post_id: str) -> Optional[Post]:
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self, author_id: Optional[str] = None) -> list[Post]:
        """Return posts newest first, optionally limited to one author."""
        query = _posts.select()
        if author_id is not None:
            query = query.where(_posts.c.author_id == author_id)
        query = query.order_by(_posts.c.created_at.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_post(r) for r in rows]

    def update_post(self, post_id: str, **fields) -> bool:
        """Update title/content. Returns False if post_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_posts.update().where(_posts.c.id == post_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_post(self, post_id: str) -> bool:
        """Delete a post. Its comments are left in place."""
        with self.engine.connect() as conn:
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> str:
        """Insert a comment and return its id."""
        comment_id = new_id()
        with self.engine.connect() as conn:
            conn.execute(
                _comments.insert().values(
                    id=comment_id,
                    content=comment.content,
                    post_id=comment.post_id,
                    author_id=comment.author_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return comment_id

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, post_id: Optional[str] = None, author_id: Optional[str] = None) -> list[Comment]:
        """Return comments newest first, optionally filtered by post and/or author."""
        query = _comments.select()
        if post_id is not None:
            query = query.where(_comments.c.post_id == post_id)
        if author_id is not None:
            query = query.where(_comments.c.author_id == author_id)
        query = query.order_by(_comments.c.created_at.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_comment(r) for r in rows]

    def update_comment(self, comment_id: str, content: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_comments.update().where(_comments.c.id == comment_id).values(content=content))
            conn.commit()
        return result.rowcount > 0

    def delete_comment(self, comment_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_comments.delete().where(_comments.c.id == comment_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        author_id=row.author_id,
        created_at=row.created_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        content=row.content,
        post_id=row.post_id,
        author_id=row.author_id,
        created_at=row.created_at,
    )
