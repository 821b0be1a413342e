from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

import pandas as pd


@dataclass(frozen=True)
class Row:
    """One prediction record from the validation table.

    ``y_pred`` is the label precomputed at export time and is kept only for
    display; live views derive the label from ``y_prob`` and the threshold.
    """

    timestamp: pd.Timestamp
    y_true: int
    y_prob: float
    y_pred: Optional[int] = None
    filename: Optional[str] = None
    aux: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SampleRecord:
    tag: str
    timestamp: pd.Timestamp
    y_true: int
    y_pred: int
    y_prob: float
    png: str


@dataclass(frozen=True)
class ModelMetadata:
    dataset: Optional[str] = None
    label_horizon_steps: Optional[int] = None
    window_size: Optional[int] = None
    img_size: Optional[int] = None
    valid_accuracy: Optional[float] = None
    valid_auc: Optional[float] = None

    def setup_line(self) -> str:
        def _v(x: object) -> str:
            return "—" if x is None else str(x)

        return f"Horizon: {_v(self.label_horizon_steps)} | Window: {_v(self.window_size)} | Img: {_v(self.img_size)}px"


def rows_to_frame(rows) -> pd.DataFrame:
    """Flatten rows into a DataFrame for charts and tables (timestamp, y_true, y_prob, y_pred)."""
    if not rows:
        return pd.DataFrame(columns=["timestamp", "y_true", "y_prob", "y_pred"])
    return pd.DataFrame(
        {
            "timestamp": [r.timestamp for r in rows],
            "y_true": [r.y_true for r in rows],
            "y_prob": [r.y_prob for r in rows],
            "y_pred": [r.y_pred for r in rows],
        }
    )
