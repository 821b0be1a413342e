from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from evaldash.rows import Row


@dataclass(frozen=True)
class CalibrationBin:
    index: int
    mean_prob: float
    pos_rate: float
    count: int
    low: float
    high: float


def calibrate(rows: Sequence[Row], bin_count: int = 10) -> List[CalibrationBin]:
    """Reliability-diagram points over equal-width probability buckets.

    Bucket = floor(y_prob * bin_count) clipped to [0, bin_count - 1], so
    y_prob == 1.0 lands in the top bucket. Empty buckets are left out and
    non-finite probabilities are ignored.
    """
    if bin_count < 1:
        raise ValueError("bin_count must be >= 1")

    y_prob = np.fromiter((r.y_prob for r in rows), dtype=float, count=len(rows))
    y_true = np.fromiter((r.y_true for r in rows), dtype=float, count=len(rows))
    finite = np.isfinite(y_prob)
    y_prob = y_prob[finite]
    y_true = y_true[finite]

    idx = np.clip(np.floor(y_prob * bin_count), 0, bin_count - 1).astype(int)
    support = np.bincount(idx, minlength=bin_count)
    sum_prob = np.bincount(idx, weights=y_prob, minlength=bin_count)
    sum_true = np.bincount(idx, weights=y_true, minlength=bin_count)

    out: List[CalibrationBin] = []
    for b in range(bin_count):
        n = int(support[b])
        if n == 0:
            continue
        out.append(
            CalibrationBin(
                index=b,
                mean_prob=float(sum_prob[b] / n),
                pos_rate=float(sum_true[b] / n),
                count=n,
                low=b / bin_count,
                high=(b + 1) / bin_count,
            )
        )
    return out
