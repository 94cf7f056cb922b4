"""
Per-session carts stored as Redis hashes (cart:{session} -> item -> quantity).

Quantities are absolute: update_cart sets, it never increments. A non-positive
quantity removes the line. Whether the item exists in the catalog is the
caller's concern. Carts are deleted with their session by the reaper.
"""
from typing import List, Optional

import redis

from shopstate.core.errors import require_id
from shopstate.core.keys import KeySpace
from shopstate.models import CartLine


class CartStore:
    def __init__(self, client: redis.Redis, keys: Optional[KeySpace] = None):
        self.client = client
        self.keys = keys or KeySpace()

    def update_cart(self, session: str, item: str, count: int) -> None:
        require_id("session", session)
        require_id("item", item)
        key = self.keys.cart(session)
        if count <= 0:
            self.client.hdel(key, item)
        else:
            self.client.hset(key, item, int(count))

    def get_cart(self, session: str) -> List[CartLine]:
        """Cart lines for `session`, sorted by item id."""
        raw = self.client.hgetall(self.keys.cart(session))
        return [
            CartLine(session=session, item=item, quantity=int(quantity))
            for item, quantity in sorted(raw.items())
        ]

    def quantity(self, session: str, item: str) -> int:
        value = self.client.hget(self.keys.cart(session), item)
        return int(value) if value is not None else 0
