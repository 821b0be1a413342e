"""Threshold-dependent confusion counts and the rates derived from them.

A row is predicted positive when ``y_prob >= threshold`` (inclusive). Every
rate whose denominator is zero is ``None`` rather than 0 or NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from evaldash.rows import Row


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int = 0
    tn: int = 0
    fp: int = 0
    fn: int = 0

    @property
    def total(self) -> int:
        return self.tp + self.tn + self.fp + self.fn

    def as_matrix(self) -> list:
        """``[[TN, FP], [FN, TP]]``, the layout of confusion_matrix.json."""
        return [[self.tn, self.fp], [self.fn, self.tp]]


@dataclass(frozen=True)
class Rates:
    accuracy: Optional[float]
    precision: Optional[float]
    recall: Optional[float]
    f1: Optional[float]
    tnr: Optional[float]
    balanced_accuracy: Optional[float]

    @property
    def tpr(self) -> Optional[float]:
        return self.recall


def safe_div(a: float, b: float) -> Optional[float]:
    return None if b == 0 else a / b


def predict_labels(y_prob: np.ndarray, threshold: float) -> np.ndarray:
    return (y_prob >= float(threshold)).astype(np.int8)


def _arrays(rows: Sequence[Row]):
    y_true = np.fromiter((r.y_true for r in rows), dtype=np.int8, count=len(rows))
    y_prob = np.fromiter((r.y_prob for r in rows), dtype=float, count=len(rows))
    return y_true, y_prob


def compute_confusion(rows: Sequence[Row], threshold: float) -> ConfusionCounts:
    y_true, y_prob = _arrays(rows)
    y_pred = predict_labels(y_prob, threshold)
    pos = y_true == 1
    hit = y_pred == 1
    return ConfusionCounts(
        tp=int(np.sum(pos & hit)),
        tn=int(np.sum(~pos & ~hit)),
        fp=int(np.sum(~pos & hit)),
        fn=int(np.sum(pos & ~hit)),
    )


def derive_rates(counts: ConfusionCounts) -> Rates:
    tp, tn, fp, fn = counts.tp, counts.tn, counts.fp, counts.fn

    accuracy = safe_div(tp + tn, tp + tn + fp + fn)
    precision = safe_div(tp, tp + fp)
    recall = safe_div(tp, tp + fn)
    tnr = safe_div(tn, tn + fp)

    f1 = None
    if precision is not None and recall is not None:
        f1 = safe_div(2 * precision * recall, precision + recall)
    bacc = None if (recall is None or tnr is None) else (recall + tnr) / 2

    return Rates(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        f1=f1,
        tnr=tnr,
        balanced_accuracy=bacc,
    )


def baseline_confusion(matrix: Sequence[Sequence[int]]) -> ConfusionCounts:
    """Read a ``[[TN, FP], [FN, TP]]`` grid; absent cells count as 0."""

    def _cell(i: int, j: int) -> int:
        try:
            val = matrix[i][j]
        except (IndexError, TypeError):
            return 0
        return 0 if val is None else int(val)

    return ConfusionCounts(tn=_cell(0, 0), fp=_cell(0, 1), fn=_cell(1, 0), tp=_cell(1, 1))


def clamp_threshold(value: object, default: float = 0.5) -> float:
    # UI-side guard; engine functions assume a finite threshold.
    try:
        thr = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(thr):
        return float(default)
    return float(min(1.0, max(0.0, thr)))
