"""Rule-based water quality classification of the latest sample."""

from __future__ import annotations

import math
from enum import Enum

from app.schemas import QualityCategory, Verdict
from models.records import Dataset, Sample

PH_RANGE = (6.5, 8.5)
TURBIDITY_LIMIT = 1.5
HARDNESS_LIMIT = 0.7

MESSAGE_TEMPLATE = "Based on the latest data, the water quality is {category}."


class HardnessBasis(str, Enum):
    """Which hardness value the hardness rule compares against."""

    raw = "raw"
    normalized = "normalized"


def hardness_for(sample: Sample, basis: HardnessBasis) -> float:
    if basis is HardnessBasis.normalized:
        if sample.hardness_normalized is None:
            return math.nan
        return sample.hardness_normalized
    return sample.hardness


def score_sample(sample: Sample, basis: HardnessBasis = HardnessBasis.raw) -> int:
    """Count the satisfied rules. NaN fails every comparison."""
    low, high = PH_RANGE
    score = 0
    if low <= sample.ph <= high:
        score += 1
    if sample.turbidity <= TURBIDITY_LIMIT:
        score += 1
    if hardness_for(sample, basis) <= HARDNESS_LIMIT:
        score += 1
    return score


def classify(sample: Sample, basis: HardnessBasis = HardnessBasis.raw) -> Verdict:
    score = score_sample(sample, basis)
    category = QualityCategory.from_score(score)
    return Verdict(
        category=category,
        score=score,
        hardness_basis=basis.value,
        message=MESSAGE_TEMPLATE.format(category=category.value),
    )


def classify_latest(dataset: Dataset, basis: HardnessBasis = HardnessBasis.raw) -> Verdict:
    """Classify the last sample; raises ``EmptyDatasetError`` if there is none."""
    return classify(dataset.latest, basis)
