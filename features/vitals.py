"""
features/vitals.py — Vital-sign samples & summary statistics
=============================================================
A *Sample* is one observation delivered by the extraction engine's
metrics callback: the most recent pulse rate and/or breathing rate at a
given engine timestamp.  A sample with neither rate is never stored.

`summarize()` turns the ordered list of samples collected during a
session into the aggregate returned by POST /process-video:

    {
        "heart_rate":     {"avg", "min", "max", "count"}  or  {}
        "breathing_rate": {"avg", "min", "max", "count"}  or  {}
        "readings_count": <total samples>,
        "all_readings":   [<sample>, ...]
    }

Only *present* values contribute to a channel.  An empty channel yields
an empty object (not null, not zero-filled).  Values are reported at the
engine's native precision; nothing is rounded.
"""

import math
from typing import Iterable, Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict

from config import DATA_SOURCE


class Sample(BaseModel):
    """One callback-delivered observation of the rate channels."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: int
    heart_rate_bpm: Optional[float] = None
    breathing_rate_bpm: Optional[float] = None
    source: str = DATA_SOURCE

    @property
    def has_rates(self) -> bool:
        return self.heart_rate_bpm is not None or self.breathing_rate_bpm is not None

    @property
    def has_both_rates(self) -> bool:
        return self.heart_rate_bpm is not None and self.breathing_rate_bpm is not None

    def to_json(self) -> dict:
        """Serialise with absent rate fields omitted rather than null."""
        return self.model_dump(exclude_none=True)


def _present(value: float | None) -> float | None:
    # NaN and infinities are treated as missing readings
    if value is None or not math.isfinite(value):
        return None
    return value


def make_sample(
    timestamp_ms: int,
    heart_rate_bpm: float | None,
    breathing_rate_bpm: float | None,
) -> Sample | None:
    """Build a Sample, or return None when neither rate is present."""
    heart_rate_bpm = _present(heart_rate_bpm)
    breathing_rate_bpm = _present(breathing_rate_bpm)
    if heart_rate_bpm is None and breathing_rate_bpm is None:
        return None
    return Sample(
        timestamp_ms=int(timestamp_ms),
        heart_rate_bpm=heart_rate_bpm,
        breathing_rate_bpm=breathing_rate_bpm,
    )


def channel_stats(values: Iterable[float]) -> dict:
    """
    avg / min / max / count over the given values.

    Returns an empty dict when there are no values.
    """
    arr = np.fromiter(values, dtype=np.float64)
    if arr.size == 0:
        return {}
    total = float(arr.sum())
    return {
        "avg": total / arr.size,
        "min": float(arr.min()),
        "max": float(arr.max()),
        "count": int(arr.size),
    }


def summarize(samples: Sequence[Sample]) -> dict:
    """Aggregate a session's samples.  Pure; never cached."""
    heart_rates = [s.heart_rate_bpm for s in samples if s.heart_rate_bpm is not None]
    breathing_rates = [s.breathing_rate_bpm for s in samples if s.breathing_rate_bpm is not None]
    return {
        "heart_rate": channel_stats(heart_rates),
        "breathing_rate": channel_stats(breathing_rates),
        "readings_count": len(samples),
        "all_readings": [s.to_json() for s in samples],
    }
