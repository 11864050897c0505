from __future__ import annotations

import logging
from dataclasses import replace
from threading import Lock

from models.records import Dataset

logger = logging.getLogger(__name__)


class DatasetStore:
    """Holds the current dataset and sequences competing uploads.

    Each upload reserves a token before parsing. A finished upload is only
    committed when its token is newer than the last committed one, so a slow
    older upload can never overwrite a newer result.
    """

    def __init__(self, initial: Dataset) -> None:
        self._lock = Lock()
        self._current = initial
        self._reserved = initial.generation
        self._committed = initial.generation

    def current(self) -> Dataset:
        with self._lock:
            return self._current

    def reserve(self) -> int:
        with self._lock:
            self._reserved += 1
            return self._reserved

    def commit(self, token: int, dataset: Dataset) -> bool:
        with self._lock:
            if token <= self._committed:
                logger.info(
                    "Discarding stale upload",
                    extra={"generation": token, "source": dataset.source},
                )
                return False
            self._current = replace(dataset, generation=token)
            self._committed = token
            return True
