"""
Kafka consumer for the Feed Service insertion stream.

Each subscription owns one AIOKafkaConsumer without a consumer group, reading
from the latest offset: every client sees every post inserted after it
subscribed, and nothing from before.

Message schema: the stored post as JSON (Feed Service field names).

stop() marks the subscription closed before cancelling the consumer task, so
the callback never fires once stop() has returned.
"""
import asyncio
import json
import logging
from typing import Optional

from aiokafka import AIOKafkaConsumer
from pydantic import ValidationError

from feedsync.protocols import PostCallback
from feedsync.schemas import Post

logger = logging.getLogger(__name__)


class InsertionSubscription:
    def __init__(self, bootstrap_servers: str, topic: str, callback: PostCallback) -> None:
        self.topic = topic
        self._callback = callback
        self._consumer = AIOKafkaConsumer(
            topic,
            bootstrap_servers=bootstrap_servers,
            group_id=None,
            auto_offset_reset="latest",
            value_deserializer=lambda v: json.loads(v.decode("utf-8")),
        )
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        await self._consumer.start()
        self._task = asyncio.create_task(self._run())
        logger.info("Listening for new posts on topic '%s'", self.topic)

    def deliver(self, payload: dict) -> None:
        """Hand one decoded message to the callback (no-op once closed)."""
        if self._closed:
            return
        try:
            post = Post.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed insertion event %s: %s", payload, exc)
            return
        self._callback(post)

    async def _run(self) -> None:
        try:
            async for msg in self._consumer:
                if self._closed:
                    break
                try:
                    self.deliver(msg.value)
                except Exception as exc:
                    logger.error("Post callback failed for %s: %s", msg.value, exc)
        except Exception as exc:
            logger.error(
                "Insertion stream on '%s' failed, no further posts will arrive: %s",
                self.topic,
                exc,
            )

    async def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._task is not None:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    logger.warning("Consumer task on '%s' ended with an error: %s", self.topic, exc)
        finally:
            await self._consumer.stop()
        logger.info("Stopped listening on topic '%s'", self.topic)
