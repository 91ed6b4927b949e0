"""
Feed Service client — durable post storage plus the insertion stream.

Reads and writes go over HTTP:
  GET  /posts?limit=N&order=created_at.desc   → newest posts first
  POST /posts                                  → the stored post (id, created_at assigned)

New insertions are pushed on the Kafka topic `post-insertions`, one JSON post
per message (see InsertionSubscription).
"""
import logging
from typing import Optional

import httpx

from feedsync.clients.insertion_stream import InsertionSubscription
from feedsync.config import settings
from feedsync.exceptions import ServiceFailure
from feedsync.protocols import PostCallback
from feedsync.schemas import Post, PostDraft

logger = logging.getLogger(__name__)


class FeedServiceClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        bootstrap_servers: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> None:
        self.base_url = base_url or settings.feed_service_url
        self.bootstrap_servers = bootstrap_servers or settings.kafka_bootstrap_servers
        self.topic = topic or settings.kafka_topic_post_insertions
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._subscriptions: set[InsertionSubscription] = set()

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.http_timeout,
            transport=self._transport,
        )

    async def stop(self) -> None:
        for subscription in list(self._subscriptions):
            try:
                await self.unsubscribe(subscription)
            except ServiceFailure as exc:
                logger.warning("Could not release insertion subscription: %s", exc)
        if self._http:
            await self._http.aclose()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("Feed Service client not started, call start() first")
        return self._http

    async def list_recent(self, limit: int) -> list[Post]:
        try:
            resp = await self._client().get(
                "/posts", params={"limit": limit, "order": "created_at.desc"}
            )
            resp.raise_for_status()
            return [Post.model_validate(row) for row in resp.json()]
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceFailure("list_recent", str(exc)) from exc

    async def insert(self, draft: PostDraft) -> Post:
        try:
            resp = await self._client().post("/posts", json=draft.model_dump(by_alias=True))
            resp.raise_for_status()
            return Post.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceFailure("insert", str(exc)) from exc

    async def subscribe_insertions(self, callback: PostCallback) -> InsertionSubscription:
        subscription = InsertionSubscription(self.bootstrap_servers, self.topic, callback)
        try:
            await subscription.start()
        except Exception as exc:
            raise ServiceFailure("subscribe_insertions", str(exc)) from exc
        self._subscriptions.add(subscription)
        return subscription

    async def unsubscribe(self, handle: InsertionSubscription) -> None:
        self._subscriptions.discard(handle)
        try:
            await handle.stop()
        except Exception as exc:
            raise ServiceFailure("unsubscribe", str(exc)) from exc


# Singleton — started/stopped in app lifespan (main.py)
feed_service_client = FeedServiceClient()
