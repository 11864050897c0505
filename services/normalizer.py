"""Min-max rescaling of hardness across a dataset."""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterable, Sequence

from models.records import Sample

NEUTRAL_HARDNESS = 0.5


class NanPolicy(str, Enum):
    """How NaN raw values take part in the min/max reduction."""

    skip = "skip"
    propagate = "propagate"


def min_max_scale(
    values: Sequence[float], nan_policy: NanPolicy = NanPolicy.skip
) -> list[float]:
    """Rescale ``values`` into [0, 1] relative to their own min and max.

    When every usable value is equal the result is ``NEUTRAL_HARDNESS`` for
    each of them. With ``NanPolicy.skip`` NaN entries are left out of the
    bounds and stay NaN; with ``NanPolicy.propagate`` a single NaN turns the
    whole result into NaN.

    This is not idempotent: scaling an already scaled, non-uniform sequence
    rescales it again against its own bounds.
    """
    has_nan = any(math.isnan(v) for v in values)
    if has_nan and nan_policy is NanPolicy.propagate:
        return [math.nan] * len(values)

    usable = [v for v in values if not math.isnan(v)]
    if not usable:
        return [math.nan] * len(values)

    low, high = min(usable), max(usable)
    if low == high:
        return [math.nan if math.isnan(v) else NEUTRAL_HARDNESS for v in values]

    span = high - low
    return [math.nan if math.isnan(v) else (v - low) / span for v in values]


def normalize(
    samples: Iterable[Sample], nan_policy: NanPolicy = NanPolicy.skip
) -> list[Sample]:
    """Return new samples with ``hardness_normalized`` filled in.

    Always scales the raw ``hardness`` field, so feeding the output back in
    gives the same result. ``time``, ``ph`` and ``turbidity`` are untouched.
    """
    source = list(samples)
    scaled = min_max_scale([sample.hardness for sample in source], nan_policy)
    return [
        sample.with_normalized_hardness(value)
        for sample, value in zip(source, scaled)
    ]
