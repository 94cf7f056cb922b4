"""
Foreground entry point: one object wiring the session index, carts,
popularity tracker, cacheability policy and refresh engine to a shared Redis
client and runtime config.

All operations run synchronously against Redis and return immediately; the
background workers in shopstate.workers take the same ShopState.
"""
import time
from typing import Callable, List, Optional

import redis

from shopstate.core.config import RuntimeConfig, ShopStateConfig, get_config
from shopstate.core.keys import KeySpace
from shopstate.core.store import create_redis_client
from shopstate.models import CartLine
from shopstate.popularity.cache_policy import CacheabilityPolicy, PageCache
from shopstate.popularity.tracker import PopularityTracker
from shopstate.refresh.engine import RefreshEngine
from shopstate.refresh.source import RecordSource
from shopstate.sessions.cart import CartStore
from shopstate.sessions.session_index import SessionIndex


class ShopState:
    def __init__(
        self,
        client: redis.Redis,
        runtime: Optional[RuntimeConfig] = None,
        source: Optional[RecordSource] = None,
        namespace: str = "",
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.runtime = runtime or RuntimeConfig()
        self.keys = KeySpace(namespace)
        self.clock = clock

        self.popularity = PopularityTracker(client, self.runtime, self.keys)
        self.sessions = SessionIndex(client, self.runtime, self.keys, self.popularity, clock=clock)
        self.carts = CartStore(client, self.keys)
        self.policy = CacheabilityPolicy(self.popularity, self.runtime)
        self.pages = PageCache(client, self.policy, self.runtime, self.keys)
        self.refresh = RefreshEngine(client, source, self.keys, clock=clock)

    @classmethod
    def from_config(
        cls, config: Optional[ShopStateConfig] = None, source: Optional[RecordSource] = None
    ) -> "ShopState":
        """Build a ShopState with its own Redis connection from a ShopStateConfig."""
        config = config or get_config()
        return cls(
            create_redis_client(config),
            RuntimeConfig(config),
            source=source,
            namespace=config.namespace,
        )

    # Sessions

    def touch(self, token: str, user: str, item: Optional[str] = None) -> float:
        return self.sessions.touch(token, user, item)

    def lookup(self, token: str) -> Optional[str]:
        return self.sessions.lookup(token)

    # Carts

    def update_cart(self, session: str, item: str, count: int) -> None:
        self.carts.update_cart(session, item, count)

    def get_cart(self, session: str) -> List[CartLine]:
        return self.carts.get_cart(session)

    # Popularity

    def record_view(self, item: str) -> None:
        self.popularity.record_view(item)

    def rank(self, item: str) -> Optional[int]:
        return self.popularity.rank(item)

    def is_cacheable(self, request: str) -> bool:
        return self.policy.is_cacheable(request)

    def cache_request(self, request: str, callback: Callable[[str], str]) -> str:
        return self.pages.cache_request(request, callback)

    # Scheduled rows

    def schedule(self, item: str, delay: float):
        return self.refresh.schedule(item, delay)

    def reset(self) -> None:
        """Drop every key in the current Redis database and restore runtime defaults."""
        self.client.flushdb()
        self.runtime.reset()
