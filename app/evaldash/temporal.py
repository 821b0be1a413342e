from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from evaldash.rows import Row

HOURS = 24


@dataclass(frozen=True)
class HourBucket:
    hour: int
    support: int
    correct: int

    @property
    def accuracy(self) -> Optional[float]:
        # No rows in this hour is "unmeasured", not 0% accuracy.
        return None if self.support == 0 else self.correct / self.support


def _utc_hour(ts: pd.Timestamp) -> int:
    # Zone-less timestamps are UTC already.
    ts = pd.Timestamp(ts)
    return (ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")).hour


def hourly_accuracy(rows: Sequence[Row], threshold: float) -> Tuple[HourBucket, ...]:
    """Accuracy per UTC hour of day at ``threshold``; always 24 buckets, hour 0 first."""
    n = len(rows)
    hours = np.fromiter((_utc_hour(r.timestamp) for r in rows), dtype=int, count=n)
    y_true = np.fromiter((r.y_true for r in rows), dtype=np.int8, count=n)
    y_prob = np.fromiter((r.y_prob for r in rows), dtype=float, count=n)

    y_pred = (y_prob >= float(threshold)).astype(np.int8)
    correct = (y_pred == y_true).astype(int)

    support = np.bincount(hours, minlength=HOURS)
    hits = np.bincount(hours, weights=correct, minlength=HOURS)
    return tuple(HourBucket(hour=h, support=int(support[h]), correct=int(hits[h])) for h in range(HOURS))
