"""Shared fixtures and in-memory stand-ins for the Directory and Feed services."""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

os.environ.setdefault("OTEL_ENABLED", "false")

from feedsync.exceptions import ProfileConflict, ServiceFailure  # noqa: E402
from feedsync.schemas import Identity, Post, PostDraft  # noqa: E402

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_post(
    post_id: str,
    seconds_ago: int = 0,
    content: str = "hello world",
    username: str = "someone",
) -> Post:
    return Post(
        id=post_id,
        content=content,
        author_id=f"uid-{username}",
        author_nickname=username.title(),
        author_username=username,
        created_at=NOW - timedelta(seconds=seconds_ago),
    )


class FakeDirectory:
    def __init__(self, profiles: Optional[dict] = None) -> None:
        self.profiles: dict[str, Identity] = dict(profiles or {})
        self.created: list[Identity] = []
        self.get_calls = 0
        self.fail_get = False
        self.create_error: Optional[Exception] = None
        # Profile written by a "concurrent" resolution right before our create
        self.racing_profile: Optional[Identity] = None

    async def get_profile(self, user_id: str) -> Optional[Identity]:
        self.get_calls += 1
        if self.fail_get:
            raise ServiceFailure("get_profile", "directory unreachable")
        return self.profiles.get(user_id)

    async def create_profile(self, profile: Identity) -> Identity:
        if self.racing_profile is not None:
            self.profiles[self.racing_profile.id] = self.racing_profile
            self.racing_profile = None
        if self.create_error is not None:
            raise self.create_error
        if profile.id in self.profiles:
            raise ProfileConflict("create_profile", "duplicate")
        self.profiles[profile.id] = profile
        self.created.append(profile)
        return profile


class FakeFeedService:
    def __init__(self, posts: Optional[list] = None) -> None:
        self.posts: list[Post] = list(posts or [])
        self.inserted: list[Post] = []
        self.subscribers: dict[object, object] = {}
        self.list_calls = 0
        self.fail_list = False
        self.fail_insert = False
        self.fail_subscribe = False
        self.list_gate: Optional[asyncio.Event] = None
        self.insert_gate: Optional[asyncio.Event] = None
        self._seq = 0

    async def list_recent(self, limit: int) -> list[Post]:
        self.list_calls += 1
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.fail_list:
            raise ServiceFailure("list_recent", "feed service returned 503")
        return self.posts[:limit]

    async def insert(self, draft: PostDraft) -> Post:
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        if self.fail_insert:
            raise ServiceFailure("insert", "feed service returned 500")
        self._seq += 1
        post = Post(id=f"new-{self._seq}", created_at=NOW, **draft.model_dump())
        self.inserted.append(post)
        return post

    async def subscribe_insertions(self, callback) -> object:
        if self.fail_subscribe:
            raise ServiceFailure("subscribe_insertions", "broker unavailable")
        handle = object()
        self.subscribers[handle] = callback
        return handle

    async def unsubscribe(self, handle: object) -> None:
        self.subscribers.pop(handle, None)

    def push(self, post: Post) -> None:
        """Simulate the service reporting an insertion."""
        for callback in list(self.subscribers.values()):
            callback(post)

    def echo(self) -> None:
        """Push every post inserted so far, like the live channel would."""
        for post in self.inserted:
            self.push(post)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def feed_service() -> FakeFeedService:
    return FakeFeedService()


@pytest.fixture
def alex() -> Identity:
    return Identity(id="uid-alex", full_name="Alex Doe", nickname="alex", username="alex")
