"""CSV ingestion for water sensor readings."""

from __future__ import annotations

import csv
import io
import logging
import math
from typing import Mapping, Optional

from models.records import Sample

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("ph", "turbidity", "hardness")
TIME_COLUMN = "time"

_CANDIDATE_DELIMITERS = (",", ";", "\t", "|")


class IngestionError(ValueError):
    """The source could not be read as a sample table at all."""


def parse_csv_bytes(data: bytes) -> list[Sample]:
    """Decode an uploaded payload and parse it into raw samples."""
    if not data:
        raise IngestionError("Uploaded file is empty.")
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise IngestionError("Uploaded file is not valid UTF-8 text.") from exc
    return parse_samples(text)


def parse_samples(text: str) -> list[Sample]:
    """Parse header-delimited text into samples in file order.

    Unparseable numeric cells become NaN instead of rejecting the row.
    Raises ``IngestionError`` when there is no usable header or no data.
    """
    if not text.strip():
        raise IngestionError("Uploaded file is empty.")

    lines = text.splitlines(keepends=True)
    while lines and not lines[0].strip():
        lines.pop(0)
    body = "".join(lines)
    reader = csv.DictReader(io.StringIO(body), delimiter=_detect_delimiter(body))
    if not reader.fieldnames:
        raise IngestionError("CSV file is missing a header row.")

    columns = {(name or "").strip().lower(): name for name in reader.fieldnames}
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise IngestionError(f"CSV missing required columns: {', '.join(missing)}")

    time_col = columns.get(TIME_COLUMN)
    samples: list[Sample] = []
    invalid_cells = 0
    for row in reader:
        if _is_blank(row):
            continue

        index = len(samples)
        time_label = _cell(row, time_col) or f"T{index}"
        ph = _parse_float(_cell(row, columns["ph"]))
        turbidity = _parse_float(_cell(row, columns["turbidity"]))
        hardness = _parse_float(_cell(row, columns["hardness"]))
        invalid_cells += sum(math.isnan(v) for v in (ph, turbidity, hardness))

        samples.append(
            Sample(time=time_label, ph=ph, turbidity=turbidity, hardness=hardness)
        )

    if not samples:
        raise IngestionError("CSV file contains no readings.")

    if invalid_cells:
        logger.info(
            "Unparseable cells replaced with NaN",
            extra={"row_count": len(samples), "invalid_cells": invalid_cells},
        )
    return samples


def _detect_delimiter(text: str) -> str:
    header = text.splitlines()[0]
    best = max(_CANDIDATE_DELIMITERS, key=header.count)
    return best if header.count(best) else ","


def _cell(row: Mapping[Optional[str], object], column: Optional[str]) -> str:
    if column is None:
        return ""
    value = row.get(column)
    return value.strip() if isinstance(value, str) else ""


def _is_blank(row: Mapping[Optional[str], object]) -> bool:
    # Overflow cells land under the ``None`` key as a list.
    return all(
        not value.strip()
        for key, value in row.items()
        if key is not None and isinstance(value, str)
    ) and not row.get(None)


def _parse_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan
