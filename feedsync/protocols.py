"""
Contracts of the two external collaborators.

The core only talks to these protocols; ``feedsync.clients`` holds the
HTTP/Kafka implementations and the tests use in-memory fakes.
"""
from typing import Any, Callable, Optional, Protocol

from feedsync.schemas import Identity, Post, PostDraft

PostCallback = Callable[[Post], None]


class DirectoryService(Protocol):
    async def get_profile(self, user_id: str) -> Optional[Identity]:
        """Return the persisted profile, or None when the user has none."""
        ...

    async def create_profile(self, profile: Identity) -> Identity:
        """Persist a new profile. Raises ProfileConflict if one already exists."""
        ...


class FeedService(Protocol):
    async def list_recent(self, limit: int) -> list[Post]:
        """Most recent posts, ordered by created_at descending."""
        ...

    async def insert(self, draft: PostDraft) -> Post:
        ...

    async def subscribe_insertions(self, callback: PostCallback) -> Any:
        """Start delivering newly inserted posts to ``callback``; returns a handle."""
        ...

    async def unsubscribe(self, handle: Any) -> None:
        """Stop delivery. No callback may fire once this returns."""
        ...
