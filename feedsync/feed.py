"""
Feed synchronisation — the in-memory feed and everything that mutates it.

The feed changes through exactly two paths:
  • load_recent()  — bulk replace with the newest posts from the Feed Service
  • push callback  — each post reported by the live subscription goes to the head

submit_post() never touches the feed: the author sees their own post when the
Feed Service echoes it back through the subscription.

State machine:

  UNINITIALIZED ─load─▶ LOADING ─▶ READY ─subscribe─▶ SUBSCRIBED ─unsubscribe─▶ CLOSED

All mutation happens in synchronous code on the event loop, so a push and a
load completion can interleave in time but never mid-mutation.
"""
import enum
import logging
import time
from typing import Any, Iterable, Iterator, Optional

from opentelemetry import trace

from feedsync.config import settings
from feedsync.exceptions import (
    ContentTooLongError,
    EmptyContentError,
    IdentityNotReadyError,
    InvalidStateError,
    ServiceFailure,
    SubmissionInFlightError,
    SubmitError,
)
from feedsync.protocols import FeedService, PostCallback
from feedsync.schemas import Identity, Post, PostDraft
from feedsync.telemetry import (
    FEED_LOAD_ERRORS_TOTAL,
    FEED_LOAD_LATENCY,
    FEED_SIZE,
    POST_SUBMISSIONS_TOTAL,
    PUSHED_POSTS_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SyncState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class Feed:
    """Posts ordered newest first, unique by id."""

    def __init__(self, posts: Iterable[Post] = ()) -> None:
        self._posts: list[Post] = []
        self._ids: set[str] = set()
        self.replace(posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __getitem__(self, index: int) -> Post:
        return self._posts[index]

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._ids

    @property
    def posts(self) -> list[Post]:
        return list(self._posts)

    def prepend(self, post: Post) -> bool:
        """Insert at the head unless the id is already present. Returns True if inserted."""
        if post.id in self._ids:
            return False
        self._posts.insert(0, post)
        self._ids.add(post.id)
        return True

    def replace(self, posts: Iterable[Post]) -> None:
        """Swap the contents, keeping the first occurrence of each id."""
        fresh: list[Post] = []
        ids: set[str] = set()
        for post in posts:
            if post.id not in ids:
                fresh.append(post)
                ids.add(post.id)
        self._posts = fresh
        self._ids = ids


class FeedSynchronizer:
    def __init__(
        self,
        feed_service: FeedService,
        page_size: Optional[int] = None,
        max_post_length: Optional[int] = None,
    ) -> None:
        self._feed_service = feed_service
        self._page_size = page_size or settings.feed_page_size
        self._max_post_length = max_post_length or settings.max_post_length

        self._feed = Feed()
        self._state = SyncState.UNINITIALIZED
        self._subscription: Any = None
        self._on_post: Optional[PostCallback] = None

        self._loading = False
        self._pushed_during_load: list[Post] = []
        self._submitting = False

    # ── Read side ──────────────────────────────────────────────────────────

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def feed(self) -> Feed:
        return self._feed

    @property
    def posts(self) -> list[Post]:
        return self._feed.posts

    @property
    def submitting(self) -> bool:
        return self._submitting

    # ── Initial load ───────────────────────────────────────────────────────

    async def load_recent(self, limit: Optional[int] = None) -> list[Post]:
        """
        Replace the feed with the `limit` newest posts.

        On failure the previous feed and state are kept and ServiceFailure is
        raised for the caller to report. Posts pushed while the request is in
        flight stay at the head of the new feed.
        """
        if limit is None:
            limit = self._page_size
        elif limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        if self._state is SyncState.CLOSED:
            raise InvalidStateError("Feed is closed")
        if self._loading:
            raise InvalidStateError("A load is already in progress")

        previous_state = self._state
        if previous_state is SyncState.UNINITIALIZED:
            self._state = SyncState.LOADING

        self._loading = True
        self._pushed_during_load = []
        t0 = time.perf_counter()

        with tracer.start_as_current_span("load_recent") as span:
            span.set_attribute("feed.limit", limit)
            try:
                posts = await self._feed_service.list_recent(limit)
            except ServiceFailure as exc:
                FEED_LOAD_ERRORS_TOTAL.inc()
                if self._state is SyncState.LOADING:
                    self._state = previous_state
                logger.warning("Loading recent posts failed: %s", exc)
                raise
            finally:
                self._loading = False
                FEED_LOAD_LATENCY.observe(time.perf_counter() - t0)

            if self._state is SyncState.CLOSED:
                # Session ended while the request was in flight
                return self._feed.posts

            loaded_ids = {p.id for p in posts}
            pushed = [p for p in reversed(self._pushed_during_load) if p.id not in loaded_ids]
            self._pushed_during_load = []

            self._feed.replace([*pushed, *posts])
            if self._state is SyncState.LOADING:
                self._state = SyncState.READY

            FEED_SIZE.set(len(self._feed))
            span.set_attribute("feed.size", len(self._feed))
            logger.info(
                "Loaded %d recent posts (%d pushed during load)", len(posts), len(pushed)
            )
            return self._feed.posts

    # ── Live subscription ──────────────────────────────────────────────────

    async def subscribe_to_new_posts(self, on_post: Optional[PostCallback] = None) -> Any:
        """
        Open the push channel. Every newly inserted post is prepended to the
        feed and then handed to `on_post`, in the order the service reports them.
        """
        if self._state is SyncState.CLOSED:
            raise InvalidStateError("Feed is closed")
        if self._subscription is not None:
            raise InvalidStateError("Already subscribed")

        self._on_post = on_post
        self._subscription = await self._feed_service.subscribe_insertions(self._handle_push)
        self._state = SyncState.SUBSCRIBED
        logger.info("Subscribed to new posts")
        return self._subscription

    async def unsubscribe(self, handle: Any = None) -> None:
        """Release the push channel. Idempotent; the feed is frozen afterwards."""
        if self._state is SyncState.CLOSED:
            return

        self._state = SyncState.CLOSED
        handle = handle if handle is not None else self._subscription
        self._subscription = None
        self._on_post = None

        if handle is None:
            return
        try:
            await self._feed_service.unsubscribe(handle)
        except ServiceFailure as exc:
            logger.warning("Unsubscribe failed, channel may linger: %s", exc)
        else:
            logger.info("Unsubscribed from new posts")

    def _handle_push(self, post: Post) -> None:
        if self._state is SyncState.CLOSED:
            PUSHED_POSTS_TOTAL.labels(outcome="dropped").inc()
            return

        if self._loading:
            self._pushed_during_load.append(post)

        if not self._feed.prepend(post):
            PUSHED_POSTS_TOTAL.labels(outcome="duplicate").inc()
            logger.debug("Ignoring redelivered post %s", post.id)
            return

        PUSHED_POSTS_TOTAL.labels(outcome="inserted").inc()
        FEED_SIZE.set(len(self._feed))
        if self._on_post is not None:
            self._on_post(post)

    # ── Submission ─────────────────────────────────────────────────────────

    def _reject(self, exc: SubmitError, outcome: str) -> SubmitError:
        POST_SUBMISSIONS_TOTAL.labels(outcome=outcome).inc()
        return exc

    async def submit_post(self, identity: Optional[Identity], content: str) -> Post:
        """
        Validate and publish a post as `identity`.

        Returns the post acknowledged by the Feed Service. The feed itself is
        only updated when the post comes back through the subscription.
        """
        text = content.strip()
        if not text:
            raise self._reject(EmptyContentError(), "empty")
        if len(text) > self._max_post_length:
            raise self._reject(ContentTooLongError(len(text), self._max_post_length), "too_long")
        if self._submitting:
            raise self._reject(SubmissionInFlightError(), "in_flight")
        if identity is None:
            raise self._reject(IdentityNotReadyError(), "identity_not_ready")

        draft = PostDraft(
            content=text,
            author_id=identity.id,
            author_nickname=identity.nickname,
            author_username=identity.username,
            like_count=0,
            comment_count=0,
            share_count=0,
        )

        self._submitting = True
        try:
            with tracer.start_as_current_span("submit_post") as span:
                span.set_attribute("post.author_id", identity.id)
                span.set_attribute("post.length", len(text))
                post = await self._feed_service.insert(draft)
        except ServiceFailure as exc:
            POST_SUBMISSIONS_TOTAL.labels(outcome="failed").inc()
            logger.warning("Post submission by %s failed: %s", identity.id, exc)
            raise
        finally:
            self._submitting = False

        POST_SUBMISSIONS_TOTAL.labels(outcome="accepted").inc()
        logger.info("Post %s submitted by @%s", post.id, identity.username)
        return post
