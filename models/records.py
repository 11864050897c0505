"""Domain models shared across services."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional


class EmptyDatasetError(LookupError):
    """Raised when the latest sample of an empty dataset is requested."""


@dataclass(frozen=True, slots=True)
class Sample:
    """A single water sensor reading.

    ``hardness`` always holds the raw reading; ``hardness_normalized`` is
    filled in by normalization and stays ``None`` until then.
    """

    time: str
    ph: float
    turbidity: float
    hardness: float
    hardness_normalized: Optional[float] = None

    @property
    def is_normalized(self) -> bool:
        return self.hardness_normalized is not None

    def with_normalized_hardness(self, value: float) -> Sample:
        return replace(self, hardness_normalized=value)

    def has_invalid_cells(self) -> bool:
        return any(math.isnan(v) for v in (self.ph, self.turbidity, self.hardness))


@dataclass(frozen=True)
class Dataset:
    """Ordered, immutable collection of samples; the last one is the latest."""

    samples: tuple[Sample, ...]
    source: str = "default"
    generation: int = 0
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def latest(self) -> Sample:
        if not self.samples:
            raise EmptyDatasetError("Dataset contains no samples.")
        return self.samples[-1]


DEFAULT_SAMPLES: tuple[Sample, ...] = (
    Sample(time="10:00", ph=7.2, turbidity=1.1, hardness=0.5),
    Sample(time="10:10", ph=6.9, turbidity=1.5, hardness=0.3),
    Sample(time="10:20", ph=7.0, turbidity=1.3, hardness=0.4),
    Sample(time="10:30", ph=7.3, turbidity=1.0, hardness=0.5),
    Sample(time="10:40", ph=7.1, turbidity=1.2, hardness=0.9),
    Sample(time="10:50", ph=6.8, turbidity=1.6, hardness=0.8),
    Sample(time="11:00", ph=7.0, turbidity=1.4, hardness=0.7),
    Sample(time="11:10", ph=7.4, turbidity=1.0, hardness=0.2),
    Sample(time="11:20", ph=7.3, turbidity=1.1, hardness=0.1),
    Sample(time="11:30", ph=7.1, turbidity=1.2, hardness=0.6),
)
