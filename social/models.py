"""
social/models.py -- Domain dataclasses for posts and comments.

These are pure data containers with zero logic. Existence checks against
users and posts live in the route layer; persistence lives in social/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    """A post written by a user.

    id is None before the record is written to the database.
    """

    title: str
    content: str
    author_id: str
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Comment:
    """A comment on a post.

    Deleting the post or the author does not cascade; orphaned comments stay
    readable by id.
    """

    content: str
    post_id: str
    author_id: str
    id: Optional[str] = None
    created_at: str = ""
