# app/core/live.py
import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


class Subscription:
    """
    Канал изменений галереи одного пользователя.
    Сигналы схлопываются: пока потребитель не забрал предыдущий сигнал,
    новые не копятся, потребитель все равно перечитывает весь снимок.
    """

    def __init__(self, feed: "VideoFeed", user_id: uuid.UUID, session_id: Optional[str]):
        self.user_id = user_id
        self.session_id = session_id
        self.closed = False
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    def notify(self) -> None:
        if not self.closed and self._queue.empty():
            self._queue.put_nowait(True)

    async def wait(self) -> bool:
        """Waits for the next change. Returns False once the subscription is closed."""
        if self.closed:
            return False
        await self._queue.get()
        return not self.closed

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._discard(self)
        # Будим ожидающего потребителя
        if self._queue.empty():
            self._queue.put_nowait(False)
        logger.info(f"Closed live subscription for user {self.user_id} (session {self.session_id}).")

    def __aiter__(self):
        return self

    async def __anext__(self):
        if await self.wait():
            return True
        raise StopAsyncIteration


class VideoFeed:
    """In-process pub/sub hub keyed by owner uid."""

    def __init__(self):
        self._subscriptions: Dict[uuid.UUID, Set[Subscription]] = defaultdict(set)

    def subscribe(self, user_id: uuid.UUID, session_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(self, user_id, session_id)
        self._subscriptions[user_id].add(subscription)
        logger.info(f"Opened live subscription for user {user_id} (session {session_id}).")
        return subscription

    def publish(self, user_id: uuid.UUID) -> int:
        """Signals every subscriber of user_id that the gallery changed."""
        subscriptions = list(self._subscriptions.get(user_id, ()))
        for subscription in subscriptions:
            subscription.notify()
        logger.debug(f"Published gallery change for user {user_id} to {len(subscriptions)} subscribers.")
        return len(subscriptions)

    def close_session(self, session_id: str) -> int:
        """Closes every subscription opened under session_id."""
        to_close = [
            subscription
            for subscriptions in self._subscriptions.values()
            for subscription in subscriptions
            if subscription.session_id == session_id
        ]
        for subscription in to_close:
            subscription.close()
        return len(to_close)

    def subscriber_count(self, user_id: uuid.UUID) -> int:
        return len(self._subscriptions.get(user_id, ()))

    def _discard(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.user_id)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.user_id]


# Единственный экземпляр на процесс
video_feed = VideoFeed()
