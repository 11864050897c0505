"""Orchestration of ingestion, classification and narrative requests."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Optional
from uuid import uuid4

from app.schemas import NarrativeRecord, NarrativeStatus, PredictionResponse, Verdict
from datastore.dataset_store import DatasetStore
from datastore.narrative_table import NarrativeTable
from models.records import DEFAULT_SAMPLES, Dataset, Sample
from services.classifier import HardnessBasis, classify_latest
from services.narrative import FALLBACK_ANALYSIS, NarrativeClient, NarrativeError
from services.normalizer import NanPolicy, normalize
from services.parser import parse_csv_bytes
from settings import get_settings

logger = logging.getLogger(__name__)


def build_dataset(
    samples: Iterable[Sample], source: str = "default", nan_policy: NanPolicy = NanPolicy.skip
) -> Dataset:
    return Dataset(samples=tuple(normalize(samples, nan_policy)), source=source)


class MonitorService:
    """Owns the current dataset and dispatches narrative requests."""

    def __init__(
        self,
        store: DatasetStore,
        narratives: NarrativeTable,
        narrative_client: NarrativeClient,
        hardness_basis: HardnessBasis = HardnessBasis.raw,
        nan_policy: NanPolicy = NanPolicy.skip,
        workers: int = 2,
    ) -> None:
        self.store = store
        self.narratives = narratives
        self.narrative_client = narrative_client
        self.hardness_basis = hardness_basis
        self.nan_policy = nan_policy
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = Lock()

    def ingest_upload(self, contents: Optional[bytes], filename: Optional[str]) -> Optional[Dataset]:
        """Parse, normalize and store an upload.

        Returns ``None`` without touching the store when no file was given.
        ``IngestionError`` propagates and leaves the current dataset as is.
        """
        if contents is None:
            return None

        source = Path(filename or "upload.csv").name
        token = self.store.reserve()
        samples = parse_csv_bytes(contents)
        dataset = build_dataset(samples, source=source, nan_policy=self.nan_policy)
        if self.store.commit(token, dataset):
            logger.info(
                "Dataset replaced",
                extra={"source": source, "generation": token, "row_count": len(dataset)},
            )
        return self.store.current()

    def current_dataset(self) -> Dataset:
        return self.store.current()

    def verdict(self) -> Verdict:
        """Classify the latest sample; raises ``EmptyDatasetError`` if none."""
        verdict = classify_latest(self.store.current(), self.hardness_basis)
        logger.debug(
            "Verdict computed",
            extra={"category": verdict.category.value, "score": verdict.score},
        )
        return verdict

    def predict(self) -> PredictionResponse:
        """Compute the verdict now and start the narrative in the background."""
        dataset = self.store.current()
        verdict = classify_latest(dataset, self.hardness_basis)
        narrative_id = self.request_narrative(dataset)
        return PredictionResponse(verdict=verdict, narrative_id=narrative_id)

    def request_narrative(self, dataset: Dataset) -> str:
        narrative_id = str(uuid4())
        requested_at = datetime.now(timezone.utc)
        self.narratives.put_item(
            NarrativeRecord(
                narrative_id=narrative_id,
                status=NarrativeStatus.pending,
                requested_at=requested_at,
            )
        )

        future = self.executor.submit(
            self._run_narrative,
            narrative_id=narrative_id,
            dataset=dataset,
            requested_at=requested_at,
        )
        with self._futures_lock:
            self._futures[narrative_id] = future
        future.add_done_callback(lambda _f, nid=narrative_id: self._clear_future(nid))
        return narrative_id

    def fetch_narrative(self, narrative_id: str) -> NarrativeRecord:
        record = self.narratives.get_item(narrative_id)
        if record is None:
            raise KeyError(f"Narrative {narrative_id!r} not found.")
        return record

    def list_narratives(self) -> list[NarrativeRecord]:
        return sorted(
            self.narratives.scan(), key=lambda record: record.requested_at, reverse=True
        )

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.narrative_client.close()

    def _clear_future(self, narrative_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(narrative_id, None)

    def _run_narrative(self, narrative_id: str, dataset: Dataset, requested_at: datetime) -> None:
        start_time = time.perf_counter()
        error: Optional[str] = None
        try:
            analysis = self.narrative_client.request_analysis(dataset)
            status = NarrativeStatus.completed
        except NarrativeError as exc:
            logger.warning(
                "Narrative request failed",
                extra={
                    "narrative_id": narrative_id,
                    "reason": exc.reason,
                    "status_code": exc.status_code,
                },
            )
            analysis = FALLBACK_ANALYSIS
            status = NarrativeStatus.failed
            error = exc.reason
        except Exception as exc:
            logger.exception(
                "Narrative request crashed", extra={"narrative_id": narrative_id}
            )
            analysis = FALLBACK_ANALYSIS
            status = NarrativeStatus.failed
            error = f"unexpected error: {exc.__class__.__name__}"

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        self.narratives.put_item(
            NarrativeRecord(
                narrative_id=narrative_id,
                status=status,
                requested_at=requested_at,
                completed_at=datetime.now(timezone.utc),
                elapsed_ms=elapsed_ms,
                analysis=analysis,
                error=error,
            )
        )
        logger.info(
            "Narrative request finished",
            extra={"narrative_id": narrative_id, "reason": error, "elapsed_ms": elapsed_ms},
        )


@lru_cache
def build_default_monitor(workers: Optional[int] = None) -> MonitorService:
    """Factory that wires the monitor from environment settings."""
    settings = get_settings()
    nan_policy = NanPolicy(settings.nan_policy)
    store = DatasetStore(build_dataset(DEFAULT_SAMPLES, nan_policy=nan_policy))
    client = NarrativeClient(
        settings.narrative_service_url, timeout=settings.narrative_timeout
    )
    return MonitorService(
        store=store,
        narratives=NarrativeTable(),
        narrative_client=client,
        hardness_basis=HardnessBasis(settings.hardness_basis),
        nan_policy=nan_policy,
        workers=workers or settings.narrative_workers,
    )
