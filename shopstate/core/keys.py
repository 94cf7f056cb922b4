"""
Redis key layout for shopstate.

The layout is the persisted format: workers resume from whatever is already in
the store, so these names must not change between releases.

# Entity                | Key pattern          | Type  | Lifetime
# ----------------------+----------------------+-------+------------------------------------
# Login mapping         | login:               | hash  | token -> user, cleared by the reaper
# Recency index         | recent:              | zset  | token -> last touch (unix seconds)
# Viewed items          | viewed:{token}       | zset  | item -> last view, capped per session
# Global popularity     | viewed:              | zset  | item -> score, decremented per view
# Cart                  | cart:{session}       | hash  | item -> quantity
# Delay registry        | delay:               | zset  | item -> refresh interval (seconds)
# Due-queue             | schedule:            | zset  | item -> next refresh time
# Cached row            | inv:{item}           | str   | JSON row, no TTL (tied to schedule)
# Cached page           | cache:{sha256[:16]}  | str   | rendered page, TTL = page_ttl

With a namespace configured every key above is prefixed with "{namespace}:".
"""
import hashlib

LOGIN = "login:"
RECENT = "recent:"
VIEWED = "viewed:"
CART = "cart:"
DELAY = "delay:"
SCHEDULE = "schedule:"
INVENTORY = "inv:"
PAGE = "cache:"

# Query parameter that carries the item id in cacheable requests
ITEM_PARAM = "item"


class KeySpace:
    """Builds the keys above, optionally under a namespace."""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._prefix = f"{namespace}:" if namespace else ""

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @property
    def login(self) -> str:
        return self._key(LOGIN)

    @property
    def recent(self) -> str:
        return self._key(RECENT)

    @property
    def popularity(self) -> str:
        return self._key(VIEWED)

    @property
    def delay(self) -> str:
        return self._key(DELAY)

    @property
    def schedule(self) -> str:
        return self._key(SCHEDULE)

    def viewed(self, token: str) -> str:
        return self._key(VIEWED + token)

    def cart(self, session: str) -> str:
        return self._key(CART + session)

    def inventory(self, item: str) -> str:
        return self._key(INVENTORY + item)

    def page(self, request: str) -> str:
        digest = hashlib.sha256(request.encode()).hexdigest()[:16]
        return self._key(PAGE + digest)
