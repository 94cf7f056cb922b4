"""
Collaborators of the refresh engine: where rows come from and how they are
written to the cache.
"""
import json
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from shopstate.core.errors import RowSerializationError


@runtime_checkable
class RecordSource(Protocol):
    """
    Supplies fresh rows for scheduled items.

    fetch() is called from the refresher thread while foreground code may be
    calling it too, so implementations must be thread-safe. Any exception is
    treated as a transient failure for that cycle.
    """

    def fetch(self, item_id: str) -> Any:
        ...


class CallableRecordSource:
    """Adapts a plain function `item_id -> row` to RecordSource."""

    def __init__(self, func):
        self.func = func

    def fetch(self, item_id: str) -> Any:
        return self.func(item_id)


class JsonRowSerializer:
    """Rows as JSON text: pydantic models via model_dump_json, everything else via json.dumps."""

    def dumps(self, row: Any) -> str:
        if row is None:
            raise RowSerializationError("source returned no row")
        # to_dict() and custom pydantic serializers run user code and may raise anything
        try:
            if isinstance(row, BaseModel):
                return row.model_dump_json()
            if hasattr(row, "to_dict"):
                row = row.to_dict()
            return json.dumps(row)
        except Exception as e:
            raise RowSerializationError(f"row is not JSON serializable: {e!r}") from e

    def loads(self, payload: str) -> Any:
        return json.loads(payload)
