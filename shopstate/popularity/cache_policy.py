"""
Cacheability policy for item pages, and the page cache that consumes it.

A request is cacheable when:
  1. it names an item via the `item` query parameter,
  2. no other query parameter (name or value) contains the dynamic marker,
     which is taken as a sign of session- or user-specific content, and
  3. the item's popularity rank is known, is not 0, and is below the
     popularity horizon.

Condition 3 also excludes rank 0, the single most viewed item, matching the
historical policy (see DESIGN.md).

# Key pattern          | TTL       | Content
# ---------------------+-----------+-------------------------------------
# cache:{sha256[:16]}  | page_ttl  | rendered page for a cacheable request
"""
from typing import Callable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlparse

import redis

from shopstate.core.config import RuntimeConfig
from shopstate.core.keys import ITEM_PARAM, KeySpace
from shopstate.popularity.tracker import PopularityTracker
from shopstate.utils.logger import get_logger

logger = get_logger("popularity.cache_policy")


def _query_params(request: str) -> List[Tuple[str, str]]:
    return parse_qsl(urlparse(request).query, keep_blank_values=True)


def extract_item_id(request: str) -> Optional[str]:
    """Value of the first non-empty `item` parameter, or None."""
    for name, value in _query_params(request):
        if name == ITEM_PARAM and value:
            return value
    return None


def is_dynamic(request: str, marker: str = "_") -> bool:
    """True if any parameter other than `item` carries the dynamic marker."""
    for name, value in _query_params(request):
        if name == ITEM_PARAM:
            continue
        if marker in name or marker in value:
            return True
    return False


class CacheabilityPolicy:
    def __init__(self, tracker: PopularityTracker, runtime: RuntimeConfig):
        self.tracker = tracker
        self.runtime = runtime

    def is_cacheable(self, request: str) -> bool:
        item_id = extract_item_id(request)
        if not item_id or is_dynamic(request, self.runtime.dynamic_marker):
            return False
        rank = self.tracker.rank(item_id)
        return rank is not None and rank != 0 and rank < self.runtime.popularity_horizon


class PageCache:
    """Serve cacheable pages from Redis; render everything else through the callback."""

    def __init__(
        self,
        client: redis.Redis,
        policy: CacheabilityPolicy,
        runtime: RuntimeConfig,
        keys: Optional[KeySpace] = None,
    ):
        self.client = client
        self.policy = policy
        self.runtime = runtime
        self.keys = keys or KeySpace()

    def cache_request(self, request: str, callback: Callable[[str], str]) -> str:
        if not self.policy.is_cacheable(request):
            return callback(request)

        page_key = self.keys.page(request)
        content = self.client.get(page_key)
        if content is None:
            content = callback(request)
            self.client.setex(page_key, self.runtime.page_ttl, content)
            logger.debug("Cached page %s for %ss", page_key, self.runtime.page_ttl)
        return content

    def invalidate(self, request: str) -> bool:
        return bool(self.client.delete(self.keys.page(request)))
