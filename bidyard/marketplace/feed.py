"""
Change feed for bid inserts.

Subscribers register a row filter (the job id) and a coroutine callback and
get back a ``Subscription`` handle; releasing the handle stops delivery.
Delivery is at-least-once and ordered per row, so consumers must dedupe.
"""

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

from supabase import AsyncClient

logger = logging.getLogger(__name__)

BidInsertCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class Subscription(Protocol):
    """Cancellation handle for a feed subscription."""

    @property
    def active(self) -> bool: ...

    async def unsubscribe(self) -> None: ...


class ChangeFeed(Protocol):
    """Protocol for change feed backends."""

    async def subscribe_bid_inserts(
        self, job_id: str, callback: BidInsertCallback
    ) -> Subscription:
        """Deliver every inserted ``bids`` row with ``job_id`` to ``callback``."""
        ...


class InMemorySubscription:
    """Handle returned by InMemoryChangeFeed."""

    def __init__(self, feed: "InMemoryChangeFeed", key: int, job_id: str):
        self._feed = feed
        self.key = key
        self.job_id = job_id

    @property
    def active(self) -> bool:
        return self.key in self._feed._subscribers

    async def unsubscribe(self) -> None:
        self._feed._subscribers.pop(self.key, None)


class InMemoryChangeFeed:
    """In-process change feed for tests and local development.

    ``deliveries_per_event`` > 1 simulates at-least-once redelivery: every
    published row reaches each subscriber that many times.
    """

    def __init__(self, deliveries_per_event: int = 1):
        if deliveries_per_event < 1:
            raise ValueError("deliveries_per_event must be at least 1")
        self.deliveries_per_event = deliveries_per_event
        self._subscribers: Dict[int, tuple] = {}
        self._keys = itertools.count(1)

    @property
    def subscription_count(self) -> int:
        return len(self._subscribers)

    async def subscribe_bid_inserts(
        self, job_id: str, callback: BidInsertCallback
    ) -> InMemorySubscription:
        await asyncio.sleep(0)
        key = next(self._keys)
        self._subscribers[key] = (job_id, callback)
        return InMemorySubscription(self, key, job_id)

    async def publish_bid_insert(self, row: Dict[str, Any]) -> None:
        """Deliver an inserted row to every subscriber watching its job.

        A subscriber whose callback raises is logged and skipped; the
        publisher never sees the error.
        """
        for _ in range(self.deliveries_per_event):
            for key, (job_id, callback) in list(self._subscribers.items()):
                if job_id != row.get("job_id") or key not in self._subscribers:
                    continue
                try:
                    await callback(dict(row))
                except Exception:
                    logger.exception(f"Bid insert subscriber {key} failed for job {job_id}")


def extract_record(payload: Any) -> Optional[Dict[str, Any]]:
    """Pull the inserted row out of a Supabase Realtime postgres_changes payload."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    for key in ("new", "record"):
        if isinstance(payload.get(key), dict):
            return payload[key]
    return None


class RealtimeSubscription:
    """Handle wrapping a Supabase Realtime channel."""

    def __init__(self, client: AsyncClient, channel: Any):
        self._client = client
        self._channel = channel
        self._active = True
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._active

    def track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._client.remove_channel(self._channel)
        for task in list(self._tasks):
            task.cancel()


class SupabaseRealtimeFeed:
    """Change feed backed by Supabase Realtime ``postgres_changes``.

    Args:
        client: A supabase ``AsyncClient`` (from ``acreate_client``).
        schema: Postgres schema the ``bids`` table lives in.
    """

    def __init__(self, client: AsyncClient, schema: str = "public"):
        self._client = client
        self._schema = schema

    async def subscribe_bid_inserts(
        self, job_id: str, callback: BidInsertCallback
    ) -> RealtimeSubscription:
        channel = self._client.channel(f"bids-for-job-{job_id}")
        subscription = RealtimeSubscription(self._client, channel)

        def on_insert(payload: Any) -> None:
            if not subscription.active:
                return
            record = extract_record(payload)
            if record is None:
                logger.warning(f"Ignoring bid insert payload without a record for job {job_id}")
                return
            subscription.track(asyncio.ensure_future(callback(record)))

        channel.on_postgres_changes(
            "INSERT",
            schema=self._schema,
            table="bids",
            filter=f"job_id=eq.{job_id}",
            callback=on_insert,
        )
        await channel.subscribe()
        logger.debug(f"Subscribed to bid inserts | job={job_id}")
        return subscription
