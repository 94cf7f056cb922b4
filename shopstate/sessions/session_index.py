"""
Session index: login tokens, their recency, and the items each session viewed.

Layout (see core/keys.py):
  login:            hash  token -> user
  recent:           zset  token -> unix time of last touch
  viewed:{token}    zset  item  -> unix time of last view (most recent N kept)

Every touch also feeds the global popularity tracker when an item is given.
Eviction is the reaper's job (workers/reaper.py); this module exposes the
primitives it needs (count, oldest, evict).
"""
import time
from typing import Callable, List, Optional, Sequence

import redis

from shopstate.core.config import RuntimeConfig
from shopstate.core.errors import require_id
from shopstate.core.keys import KeySpace
from shopstate.models import Session, ViewedItem
from shopstate.popularity.tracker import PopularityTracker
from shopstate.utils.logger import get_logger

logger = get_logger("sessions.index")


class SessionIndex:
    def __init__(
        self,
        client: redis.Redis,
        runtime: RuntimeConfig,
        keys: Optional[KeySpace] = None,
        popularity: Optional[PopularityTracker] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.runtime = runtime
        self.keys = keys or KeySpace()
        self.popularity = popularity or PopularityTracker(client, runtime, self.keys)
        self.clock = clock

    def touch(self, token: str, user: str, item: Optional[str] = None) -> float:
        """
        Log `token` in as `user` and mark it active now.

        If `item` is given it is recorded as the session's most recent view,
        the session's viewed list is trimmed to the newest `viewed_items_cap`
        entries, and the item's global popularity is bumped.

        Returns the timestamp written to the recency index.
        """
        require_id("token", token)
        require_id("user", user)
        timestamp = self.clock()
        cap = self.runtime.viewed_items_cap

        pipe = self.client.pipeline(transaction=True)
        pipe.hset(self.keys.login, token, user)
        pipe.zadd(self.keys.recent, {token: timestamp})
        if item:
            viewed_key = self.keys.viewed(token)
            pipe.zadd(viewed_key, {item: timestamp})
            # Keep the newest `cap` entries: drop ranks 0 .. -(cap + 1)
            pipe.zremrangebyrank(viewed_key, 0, -(cap + 1))
            self.popularity.record_view(item, pipe=pipe)
        pipe.execute()
        return timestamp

    def lookup(self, token: str) -> Optional[str]:
        """Return the user logged in with `token`, or None."""
        if not token:
            return None
        return self.client.hget(self.keys.login, token)

    def get_session(self, token: str) -> Optional[Session]:
        if not token:
            return None
        pipe = self.client.pipeline(transaction=False)
        pipe.hget(self.keys.login, token)
        pipe.zscore(self.keys.recent, token)
        user, last_active = pipe.execute()
        if user is None or last_active is None:
            return None
        return Session(token=token, user=user, last_active=last_active)

    def viewed_items(self, token: str) -> List[ViewedItem]:
        """Items the session viewed, most recent first."""
        rows = self.client.zrevrange(self.keys.viewed(token), 0, -1, withscores=True)
        return [ViewedItem(item=item, last_viewed=ts) for item, ts in rows]

    def count(self) -> int:
        return self.client.zcard(self.keys.recent)

    def oldest(self, n: int) -> List[str]:
        """The `n` least recently active tokens, oldest first."""
        if n <= 0:
            return []
        return self.client.zrange(self.keys.recent, 0, n - 1)

    def evict(self, tokens: Sequence[str]) -> int:
        """
        Remove every trace of `tokens` in one MULTI/EXEC block: viewed items,
        cart, login entry and recency entry.

        Returns the number of tokens that were still in the recency index.
        """
        if not tokens:
            return 0
        session_keys = []
        for token in tokens:
            session_keys.append(self.keys.viewed(token))
            session_keys.append(self.keys.cart(token))

        pipe = self.client.pipeline(transaction=True)
        pipe.delete(*session_keys)
        pipe.hdel(self.keys.login, *tokens)
        pipe.zrem(self.keys.recent, *tokens)
        removed = pipe.execute()[-1]
        logger.debug("Evicted %d sessions", removed)
        return removed
