"""
Scheduled refresh engine: keeps cached copies of externally sourced rows
fresh on a per-item cadence.

State lives in three places (see core/keys.py):
  delay:      zset  item -> refresh interval in seconds (the delay registry)
  schedule:   zset  item -> unix time the item is next due (the due-queue)
  inv:{item}  str   JSON payload of the last successful fetch

Per item: Unscheduled -> Scheduled -> (Refreshed)* -> Removed.

schedule() may be called at any time to change an item's interval; the new
interval applies from the next pass because the item is made due immediately.
A delay <= 0 retires the item on its next pass.

refresh_once() handles exactly one due item. For a live item it pushes the
item's next due time forward *before* fetching, so a slow or failing source
costs that item one interval rather than blocking the queue; the interval is
therefore a lower bound on refresh latency, not an upper bound. Failed fetches
are not retried early.
"""
import time
from enum import Enum
from typing import Any, Callable, Optional
import logging

import redis

from shopstate.core.errors import ConfigError, RowSerializationError, require_id
from shopstate.core.keys import KeySpace
from shopstate.models import CachedRow, ScheduleEntry
from shopstate.refresh.source import JsonRowSerializer, RecordSource
from shopstate.utils.logger import get_logger

_default_logger = get_logger("refresh.engine")


class RefreshOutcome(str, Enum):
    IDLE = "idle"            # nothing due
    REMOVED = "removed"      # retired item deleted
    REFRESHED = "refreshed"  # payload rewritten
    FAILED = "failed"        # fetch or serialization failed, payload untouched


class RefreshEngine:
    def __init__(
        self,
        client: redis.Redis,
        source: Optional[RecordSource] = None,
        keys: Optional[KeySpace] = None,
        serializer: Optional[JsonRowSerializer] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.source = source
        self.keys = keys or KeySpace()
        self.serializer = serializer or JsonRowSerializer()
        self.clock = clock
        self.logger = logger or _default_logger

    # Foreground operations

    def schedule(self, item: str, delay: float) -> ScheduleEntry:
        """Register (or re-register) `item` with a refresh interval and make it due now."""
        require_id("item", item)
        now = self.clock()
        pipe = self.client.pipeline(transaction=True)
        pipe.zadd(self.keys.delay, {item: float(delay)})
        pipe.zadd(self.keys.schedule, {item: now})
        pipe.execute()
        return ScheduleEntry(item=item, delay=float(delay), next_due=now)

    def unschedule(self, item: str) -> ScheduleEntry:
        """Retire `item`; its cached row is deleted on the next refresher pass."""
        return self.schedule(item, 0)

    def get_entry(self, item: str) -> Optional[ScheduleEntry]:
        pipe = self.client.pipeline(transaction=False)
        pipe.zscore(self.keys.delay, item)
        pipe.zscore(self.keys.schedule, item)
        delay, next_due = pipe.execute()
        if delay is None or next_due is None:
            return None
        return ScheduleEntry(item=item, delay=delay, next_due=next_due)

    def get_cached_row(self, item: str) -> Optional[CachedRow]:
        payload = self.client.get(self.keys.inventory(item))
        if payload is None:
            return None
        return CachedRow(item=item, payload=payload)

    def load_cached(self, item: str) -> Any:
        """Decoded cached row, or None when nothing is cached."""
        row = self.get_cached_row(item)
        return self.serializer.loads(row.payload) if row else None

    def pending(self) -> int:
        return self.client.zcard(self.keys.schedule)

    # Refresher pass

    def next_due(self) -> Optional[ScheduleEntry]:
        """Earliest entry of the due-queue, due or not."""
        head = self.client.zrange(self.keys.schedule, 0, 0, withscores=True)
        if not head:
            return None
        item, due = head[0]
        delay = self.client.zscore(self.keys.delay, item)
        return ScheduleEntry(item=item, delay=delay if delay is not None else 0.0, next_due=due)

    def refresh_once(self) -> RefreshOutcome:
        if self.source is None:
            raise ConfigError("refresh engine has no record source")

        head = self.client.zrange(self.keys.schedule, 0, 0, withscores=True)
        now = self.clock()
        if not head or head[0][1] > now:
            return RefreshOutcome.IDLE

        item = head[0][0]
        delay = self.client.zscore(self.keys.delay, item)
        if delay is None or delay <= 0:
            self._remove(item)
            return RefreshOutcome.REMOVED

        self.client.zadd(self.keys.schedule, {item: now + delay})

        try:
            row = self.source.fetch(item)
        except Exception as e:
            self.logger.warning("Fetch failed for %s, next attempt in %ss: %s", item, delay, e)
            return RefreshOutcome.FAILED

        try:
            payload = self.serializer.dumps(row)
        except RowSerializationError as e:
            self.logger.error("Could not serialize row for %s: %s", item, e)
            return RefreshOutcome.FAILED

        self.client.set(self.keys.inventory(item), payload)
        self.logger.debug("Refreshed %s, next due %.3f", item, now + delay)
        return RefreshOutcome.REFRESHED

    def _remove(self, item: str) -> None:
        pipe = self.client.pipeline(transaction=True)
        pipe.zrem(self.keys.delay, item)
        pipe.zrem(self.keys.schedule, item)
        pipe.delete(self.keys.inventory(item))
        pipe.execute()
        self.logger.info("Stopped caching %s", item)
