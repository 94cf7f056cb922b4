"""
Pydantic v2 models for the records shopstate keeps in Redis.

These are read views: the store layout in core/keys.py is authoritative and
the models are built from it on demand.
"""

from pydantic import BaseModel, Field, ConfigDict


class Session(BaseModel):
    """A logged-in token. At most one user per token (last write wins)."""
    model_config = ConfigDict(frozen=True)

    token: str = Field(..., description="Opaque session token")
    user: str = Field(..., description="User the token is logged in as")
    last_active: float = Field(..., description="Unix time of the last touch")


class ViewedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: str
    last_viewed: float


class PopularityScore(BaseModel):
    """Global view score; lower is more popular (each view subtracts 1)."""
    model_config = ConfigDict(frozen=True)

    item: str
    score: float
    rank: int = Field(..., ge=0, description="Zero-based rank in ascending score order")


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: str
    item: str
    quantity: int = Field(..., gt=0)


class ScheduleEntry(BaseModel):
    """
    Refresh schedule for one item.

    delay <= 0 means the item is being retired: the next refresher pass deletes
    its cached row, registry entry and queue entry.
    """
    model_config = ConfigDict(frozen=True)

    item: str
    delay: float = Field(..., description="Refresh interval in seconds")
    next_due: float = Field(..., description="Unix time the item is due again")

    @property
    def retired(self) -> bool:
        return self.delay <= 0


class CachedRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: str
    payload: str = Field(..., description="Serialized row as last fetched")
