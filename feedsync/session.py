"""
Feed session — the explicit lifecycle around one authenticated user.

    start(auth_user)  resolve identity → load recent posts → subscribe
    end()             release the subscription

A failed initial load does not abort the session: the error is kept in
`load_error` for the UI and the subscription is still opened, so new posts
keep arriving.
"""
import logging
from typing import Optional

from feedsync.exceptions import InvalidStateError, ServiceFailure
from feedsync.feed import FeedSynchronizer, SyncState
from feedsync.identity import IdentityResolver
from feedsync.protocols import DirectoryService, FeedService, PostCallback
from feedsync.schemas import AuthUser, Identity, Post

logger = logging.getLogger(__name__)


class FeedSession:
    def __init__(
        self,
        directory: DirectoryService,
        feed_service: FeedService,
        page_size: Optional[int] = None,
        max_post_length: Optional[int] = None,
    ) -> None:
        self.resolver = IdentityResolver(directory)
        self.synchronizer = FeedSynchronizer(
            feed_service, page_size=page_size, max_post_length=max_post_length
        )
        self.auth_user: Optional[AuthUser] = None
        self.identity: Optional[Identity] = None
        self.load_error: Optional[str] = None
        self._started = False

    @property
    def active(self) -> bool:
        return self._started and self.synchronizer.state is not SyncState.CLOSED

    @property
    def closed(self) -> bool:
        return self.synchronizer.state is SyncState.CLOSED

    @property
    def state(self) -> SyncState:
        return self.synchronizer.state

    @property
    def posts(self) -> list[Post]:
        return self.synchronizer.posts

    async def start(self, auth_user: AuthUser, on_post: Optional[PostCallback] = None) -> Identity:
        if self._started:
            raise InvalidStateError("Session already started")
        self._started = True
        self.auth_user = auth_user
        logger.info("Starting feed session for %s", auth_user.id)

        self.identity = await self.resolver.resolve(auth_user)

        await self.reload()
        await self.synchronizer.subscribe_to_new_posts(on_post)
        return self.identity

    async def reload(self, limit: Optional[int] = None) -> list[Post]:
        """Re-run the bulk load; a failure is recorded, not raised."""
        try:
            posts = await self.synchronizer.load_recent(limit)
        except ServiceFailure as exc:
            self.load_error = str(exc)
            return self.synchronizer.posts
        self.load_error = None
        return posts

    async def submit(self, content: str) -> Post:
        return await self.synchronizer.submit_post(self.identity, content)

    async def end(self) -> None:
        if not self._started:
            return
        await self.synchronizer.unsubscribe()
        logger.info("Feed session for %s ended", self.auth_user.id if self.auth_user else "?")
