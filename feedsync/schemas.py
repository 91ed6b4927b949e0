"""
Pydantic schemas shared by the core, the service adapters and the HTTP layer.

Field names are snake_case; the Feed Service wire format uses the aliases
(user_id, user_nickname, likes, ...). Models accept either form, and the
adapters serialise with ``by_alias=True``.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ──────────────────────────── Identity ────────────────────────────────────

class SignupMetadata(BaseModel):
    """Optional fields captured at sign-up."""
    full_name: Optional[str] = None
    nickname: Optional[str] = None
    username: Optional[str] = None


class AuthUser(BaseModel):
    """The authenticated user as handed over by the auth layer."""
    id: str
    email: Optional[str] = None
    user_metadata: Optional[SignupMetadata] = None


class Identity(BaseModel):
    id: str
    full_name: str = ""
    nickname: str
    username: str


# ──────────────────────────── Posts ───────────────────────────────────────

class PostDraft(BaseModel):
    """Payload sent to the Feed Service when publishing a post."""
    content: str
    author_id: str = Field(..., alias="user_id")
    author_nickname: str = Field(..., alias="user_nickname")
    author_username: str = Field(..., alias="user_username")
    like_count: int = Field(0, alias="likes", ge=0)
    comment_count: int = Field(0, alias="comments", ge=0)
    share_count: int = Field(0, alias="shares", ge=0)

    class Config:
        populate_by_name = True


class Post(PostDraft):
    id: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Feed Service timestamps without an offset are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ──────────────────────────── HTTP surface ────────────────────────────────

class PostSubmission(BaseModel):
    content: str


class FeedPost(BaseModel):
    """A post as rendered in the feed, with its relative age label."""
    id: str
    content: str
    author_id: str
    author_nickname: str
    author_username: str
    created_at: datetime
    age: str
    like_count: int
    comment_count: int
    share_count: int


class FeedResponse(BaseModel):
    state: str
    posts: list[FeedPost]
    load_error: Optional[str] = None
