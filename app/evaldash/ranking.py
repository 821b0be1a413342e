from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd

from evaldash.rows import Row


@dataclass(frozen=True)
class RankedRow:
    row: Row
    position: int
    confidence: float
    predicted: int
    correct: bool


def confidence(y_prob: float) -> float:
    """Distance of a probability from the 0.5 decision boundary."""
    return abs(float(y_prob) - 0.5)


def top_by_confidence(rows: Sequence[Row], threshold: float, n: int) -> List[RankedRow]:
    """Up to ``n`` rows ordered by confidence (descending), ties kept in input order.

    ``position`` is the row's index in the input sequence. Rows are wrapped,
    never modified.
    """
    if n <= 0 or not rows:
        return []
    conf = np.fromiter((confidence(r.y_prob) for r in rows), dtype=float, count=len(rows))
    # Stable sort on the negated key keeps equal-confidence rows in input order; NaN sorts last.
    order = np.argsort(-conf, kind="stable")[: int(n)]

    out: List[RankedRow] = []
    for i in order:
        r = rows[int(i)]
        pred = 1 if r.y_prob >= threshold else 0
        out.append(
            RankedRow(
                row=r,
                position=int(i),
                confidence=float(conf[i]),
                predicted=pred,
                correct=pred == r.y_true,
            )
        )
    return out


def ranked_to_frame(ranked: Sequence[RankedRow]) -> pd.DataFrame:
    cols = ["rank", "timestamp", "y_true", "y_prob", "y_pred_thr", "confidence", "correct"]
    if not ranked:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(
        {
            "rank": list(range(1, len(ranked) + 1)),
            "timestamp": [x.row.timestamp for x in ranked],
            "y_true": [x.row.y_true for x in ranked],
            "y_prob": [x.row.y_prob for x in ranked],
            "y_pred_thr": [x.predicted for x in ranked],
            "confidence": [x.confidence for x in ranked],
            "correct": [x.correct for x in ranked],
        }
    )[cols]
