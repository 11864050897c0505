from __future__ import annotations

from threading import Lock
from typing import Dict, Optional

from app.schemas import NarrativeRecord, NarrativeStatus

DEFAULT_MAX_ITEMS = 1000


class NarrativeTable:
    """Thread-safe in-memory table of narrative records keyed by id.

    Records are stored and returned as deep copies. Once ``max_items`` is
    exceeded the oldest finished records are evicted; pending records are
    never dropped.
    """

    def __init__(self, name: str = "narratives", max_items: int = DEFAULT_MAX_ITEMS) -> None:
        if max_items < 1:
            raise ValueError("max_items must be positive")
        self.name = name
        self.max_items = max_items
        self._items: Dict[str, NarrativeRecord] = {}
        self._lock = Lock()

    def put_item(self, item: NarrativeRecord) -> None:
        with self._lock:
            self._items[item.narrative_id] = item.model_copy(deep=True)
            self._evict_finished()

    def get_item(self, key: str) -> Optional[NarrativeRecord]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[NarrativeRecord]:
        """Return deep copies of all stored narrative records."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _evict_finished(self) -> None:
        overflow = len(self._items) - self.max_items
        if overflow <= 0:
            return
        # dict order is insertion order, so the first finished keys are the oldest
        stale = [
            key
            for key, record in self._items.items()
            if record.status is not NarrativeStatus.pending
        ][:overflow]
        for key in stale:
            del self._items[key]
