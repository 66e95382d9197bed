"""
Realtime invalidation.

Database change events (Supabase database webhooks or realtime payloads)
are published on a broadcast channel. A consumer task merges them into the
feed cache: posts are merged last-write-wins by id, deletes leave tombstones
so late events cannot resurrect a row, and like/comment events only mark the
cache stale so a burst of writes costs one refetch instead of one per event.
"""
import asyncio
import logging
import threading
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel

from edusocial.models.schemas import Post
from edusocial.services.post_service import to_post

logger = logging.getLogger(__name__)

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


class ChangeEvent(BaseModel):
    table: str
    event_type: str
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None
    commit_timestamp: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChangeEvent":
        """
        Parse a database-webhook payload (type/table/record/old_record) or a
        realtime payload (eventType/table/new/old/commit_timestamp).
        """
        event_type = (payload.get("type") or payload.get("eventType") or "").upper()
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unsupported change event type: {event_type!r}")
        table = payload.get("table")
        if not table:
            raise ValueError("Change event without table")
        return cls(
            table=table,
            event_type=event_type,
            record=payload.get("record") or payload.get("new") or None,
            old_record=payload.get("old_record") or payload.get("old") or None,
            commit_timestamp=payload.get("commit_timestamp"),
        )

    @property
    def row_id(self) -> Optional[str]:
        row = self.record if self.event_type != "DELETE" else self.old_record
        return (row or {}).get("id")

    @property
    def version(self) -> Optional[datetime]:
        """Row version for last-write-wins; stamps ahead of the clock count as now."""
        stamp = (self.record or {}).get("updated_at") if self.record else None
        version = self.commit_timestamp
        if stamp:
            try:
                version = _parse_time(stamp)
            except ValueError:
                pass
        if version is None:
            return None
        now = datetime.now(UTC)
        return now if _as_utc(version) > now else version


def _parse_time(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_older(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    if candidate is None or current is None:
        return False
    return _as_utc(candidate) < _as_utc(current)


class ChangeChannel:
    """Broadcast channel: every subscriber gets its own bounded queue."""

    def __init__(self, maxsize: int = 1000):
        self._subscribers: Set[asyncio.Queue] = set()
        self._lock = asyncio.Lock()
        self._maxsize = maxsize

    async def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        async with self._lock:
            self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.discard(queue)

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver to all subscribers; a subscriber whose queue is full is dropped."""
        async with self._lock:
            dropped = []
            for queue in self._subscribers:
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    dropped.append(queue)
            for queue in dropped:
                logger.warning("Dropping slow change subscriber")
                self._subscribers.discard(queue)
            return len(self._subscribers)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class FeedCache:
    """Last known feed, kept current by change events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._posts: Dict[str, Post] = {}
        self._versions: Dict[str, Optional[datetime]] = {}
        self._tombstones: Dict[str, Optional[datetime]] = {}
        self.needs_refresh = False
        self.loaded = False

    def replace(self, posts: List[Post]) -> None:
        """Install a full refetch; viewer-specific like state is not cached."""
        with self._lock:
            self._posts = {p.id: p.model_copy(update={"user_liked": False}) for p in posts}
            self._versions = {p.id: p.updated_at or p.created_at for p in posts}
            self._tombstones = {k: v for k, v in self._tombstones.items() if k not in self._posts}
            self.needs_refresh = False
            self.loaded = True

    def snapshot(self) -> List[Post]:
        """Cached posts newest first."""
        with self._lock:
            posts = list(self._posts.values())
        dated = sorted((p for p in posts if p.created_at), key=lambda p: _as_utc(p.created_at), reverse=True)
        return dated + [p for p in posts if not p.created_at]

    def get(self, post_id: str) -> Optional[Post]:
        with self._lock:
            return self._posts.get(post_id)

    def apply(self, event: ChangeEvent) -> bool:
        """
        Merge one change event.

        Returns:
            True if the cached posts changed
        """
        if event.table == "posts":
            return self._apply_post_event(event)
        if event.table in ("likes", "comments"):
            # Counters arrive through the posts UPDATE; like state needs a reread
            self.needs_refresh = True
        return False

    def _apply_post_event(self, event: ChangeEvent) -> bool:
        post_id = event.row_id
        if not post_id:
            logger.warning(f"Ignoring posts {event.event_type} without id")
            return False
        version = event.version

        with self._lock:
            if event.event_type == "DELETE":
                self._tombstones[post_id] = version
                self._versions.pop(post_id, None)
                return self._posts.pop(post_id, None) is not None

            if post_id in self._tombstones:
                tombstone = self._tombstones[post_id]
                if tombstone is None or version is None or not _is_older(tombstone, version):
                    logger.debug(f"Ignoring {event.event_type} for deleted post {post_id}")
                    return False
                del self._tombstones[post_id]

            if _is_older(version, self._versions.get(post_id)):
                logger.debug(f"Ignoring stale {event.event_type} for post {post_id}")
                return False

            current = self._posts.get(post_id)
            merged = current.model_dump(exclude={"is_correct_answer"}) if current else {}
            merged.update(event.record or {})
            profile = merged.pop("profile", None)
            try:
                post = to_post(merged, profile=profile)
            except Exception as e:
                logger.error(f"Ignoring malformed posts event for {post_id}: {e}")
                return False

            if current is None:
                # New rows lack the author's profile
                self.needs_refresh = True
            if current == post:
                return False
            self._posts[post_id] = post
            self._versions[post_id] = version or post.updated_at or post.created_at
            return True


async def consume_changes(queue: asyncio.Queue, cache: FeedCache, refresh: Optional[Callable[[], List[Post]]] = None) -> None:
    """
    Apply queued change events to the cache until cancelled.

    ``refresh`` is called (in a worker thread) once the queue drains while the
    cache is marked stale, so a burst of events triggers a single refetch.
    """
    while True:
        event = await queue.get()
        try:
            cache.apply(event)
        except Exception as e:
            logger.error(f"Error applying {event.table} {event.event_type}: {e}")
        finally:
            queue.task_done()

        if refresh is not None and cache.needs_refresh and queue.empty():
            try:
                posts = await asyncio.to_thread(refresh)
                cache.replace(posts)
                logger.debug(f"Feed cache refreshed with {len(posts)} posts")
            except Exception as e:
                logger.warning(f"Feed cache refresh failed, keeping last known feed: {e}")


# Process-wide channel and cache used by the API
change_channel = ChangeChannel()
feed_cache = FeedCache()
