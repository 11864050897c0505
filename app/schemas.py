"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.records import Dataset, Sample


class QualityCategory(str, Enum):
    """Water quality categories, declared from worst to best."""

    terrible = "Terrible"
    bad = "Bad"
    good = "Good"
    excellent = "Excellent"

    @property
    def rank(self) -> int:
        return list(QualityCategory).index(self)

    @classmethod
    def from_score(cls, score: int) -> QualityCategory:
        categories = list(cls)
        if not 0 <= score < len(categories):
            raise ValueError(f"Score {score} is outside the range 0..{len(categories) - 1}.")
        return categories[score]


class Verdict(BaseModel):
    """Categorical classification of the latest sample."""

    category: QualityCategory
    score: int = Field(..., ge=0, le=3)
    hardness_basis: str
    message: str


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or math.isnan(value):
        return None
    return value


class SampleRecord(BaseModel):
    """A sample as exposed over HTTP; NaN readings are reported as null."""

    time: str
    ph: Optional[float] = None
    turbidity: Optional[float] = None
    hardness: Optional[float] = None
    hardness_normalized: Optional[float] = None

    @classmethod
    def from_sample(cls, sample: Sample) -> SampleRecord:
        return cls(
            time=sample.time,
            ph=_finite_or_none(sample.ph),
            turbidity=_finite_or_none(sample.turbidity),
            hardness=_finite_or_none(sample.hardness),
            hardness_normalized=_finite_or_none(sample.hardness_normalized),
        )


class DatasetResponse(BaseModel):
    """The dataset currently held by the service."""

    source: str
    generation: int = Field(..., ge=0)
    loaded_at: datetime
    sample_count: int = Field(..., ge=0)
    samples: List[SampleRecord] = Field(default_factory=list)

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> DatasetResponse:
        return cls(
            source=dataset.source,
            generation=dataset.generation,
            loaded_at=dataset.loaded_at,
            sample_count=len(dataset),
            samples=[SampleRecord.from_sample(sample) for sample in dataset.samples],
        )


class NarrativeStatus(str, Enum):
    """Lifecycle of a narrative analysis request."""

    pending = "pending"
    completed = "completed"
    failed = "failed"


class NarrativeRecord(BaseModel):
    """Outcome of a request to the external narrative service."""

    narrative_id: str
    status: NarrativeStatus
    requested_at: datetime
    completed_at: Optional[datetime] = None
    elapsed_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from request to answer."
    )
    analysis: Optional[str] = None
    error: Optional[str] = None


class PredictionResponse(BaseModel):
    """Immediate verdict plus a handle on the pending narrative."""

    verdict: Verdict
    narrative_id: str = Field(..., description="Identifier to poll for the narrative analysis.")
