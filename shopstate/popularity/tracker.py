"""
Global view popularity, kept in the sorted set `viewed:`.

Every view subtracts 1 from the item's score, so ascending score order is
popularity order and ZRANK gives the popularity rank (0 = most viewed).

Decay is done in place by rescale(): the long tail beyond `popularity_keep`
is dropped, then ZINTERSTORE of the set with itself under a single weight
multiplies every remaining score by `rescale_decay`. Ratios between scores,
and therefore the ranking, are unchanged; only the magnitudes shrink so that
recent views outweigh old ones.
"""
from typing import List, Optional

import redis

from shopstate.core.config import RuntimeConfig
from shopstate.core.errors import require_id
from shopstate.core.keys import KeySpace
from shopstate.models import PopularityScore
from shopstate.utils.logger import get_logger

logger = get_logger("popularity.tracker")


class PopularityTracker:
    def __init__(self, client: redis.Redis, runtime: RuntimeConfig, keys: Optional[KeySpace] = None):
        self.client = client
        self.runtime = runtime
        self.keys = keys or KeySpace()

    def record_view(self, item: str, pipe=None) -> None:
        """
        Decrement the item's score by exactly one (absent items start at 0).

        When `pipe` is given the command is queued on it instead of being sent,
        so a session touch can record its view in the same transaction.
        """
        require_id("item", item)
        (pipe if pipe is not None else self.client).zincrby(self.keys.popularity, -1, item)

    def rank(self, item: str) -> Optional[int]:
        """Zero-based popularity rank, or None if the item has never been viewed."""
        if not item:
            return None
        return self.client.zrank(self.keys.popularity, item)

    def score(self, item: str) -> Optional[float]:
        if not item:
            return None
        return self.client.zscore(self.keys.popularity, item)

    def top(self, n: int = 50) -> List[PopularityScore]:
        """The n most viewed items, most popular first."""
        if n <= 0:
            return []
        rows = self.client.zrange(self.keys.popularity, 0, n - 1, withscores=True)
        return [PopularityScore(item=item, score=score, rank=i) for i, (item, score) in enumerate(rows)]

    def size(self) -> int:
        return self.client.zcard(self.keys.popularity)

    def rescale(self, keep: Optional[int] = None, factor: Optional[float] = None) -> int:
        """
        Truncate to the `keep` best-ranked items, then scale every score by `factor`.

        Returns the number of items trimmed from the tail.
        """
        keep = self.runtime.popularity_keep if keep is None else keep
        factor = self.runtime.rescale_decay if factor is None else factor
        key = self.keys.popularity
        pipe = self.client.pipeline(transaction=True)
        pipe.zremrangebyrank(key, keep, -1)
        pipe.zinterstore(key, {key: factor})
        trimmed, remaining = pipe.execute()
        logger.info("Rescaled popularity: kept %d items, trimmed %d, factor %s", remaining, trimmed, factor)
        return trimmed
