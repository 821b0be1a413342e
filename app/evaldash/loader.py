from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from evaldash.rows import ModelMetadata, Row, SampleRecord

logger = logging.getLogger(__name__)


class DataLoadError(RuntimeError):
    """Raised when the static result files cannot be loaded."""


class RowParseError(DataLoadError):
    def __init__(self, line_no: int, column: str, value: object, reason: str = "") -> None:
        self.line_no = line_no
        self.column = column
        self.value = value
        msg = f"line {line_no}: cannot parse column '{column}' value {value!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


# ===== Config =====


@dataclass(frozen=True)
class DashboardConfig:
    results_dir: Path = Path("results")
    metrics_json: str = "metrics.json"
    confusion_json: str = "confusion_matrix.json"
    predictions_csv: str = "predictions_valid.csv"
    samples_json: str = "samples.json"
    default_threshold: float = 0.5
    top_n: int = 20
    calibration_bins: int = 10
    hist_bins: int = 40
    log_level: str = "INFO"


def _read_yaml(path: Path) -> dict:
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("pyyaml is required to load dashboard config: pip install pyyaml") from e

    with path.open("r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: Path) -> DashboardConfig:
    data = _read_yaml(config_path) if config_path.exists() else {}

    files = data.get("files") or {}
    defaults = data.get("defaults") or {}

    return DashboardConfig(
        results_dir=Path(data.get("results_dir", "results")),
        metrics_json=str(files.get("metrics_json", "metrics.json")),
        confusion_json=str(files.get("confusion_json", "confusion_matrix.json")),
        predictions_csv=str(files.get("predictions_csv", "predictions_valid.csv")),
        samples_json=str(files.get("samples_json", "samples.json")),
        default_threshold=float(defaults.get("threshold", 0.5)),
        top_n=int(defaults.get("top_n", 20)),
        calibration_bins=int(defaults.get("calibration_bins", 10)),
        hist_bins=int(defaults.get("hist_bins", 40)),
        log_level=str(data.get("log_level", "INFO")),
    )


# ===== Prediction table =====

REQUIRED_COLUMNS = ("datetime", "y_true", "y_prob")
FILE_COLUMNS = ("filename", "file", "png", "image")


def _parse_utc(value: object, *, line_no: int, column: str) -> pd.Timestamp:
    # Naive strings ("2024-01-01 13:00:00") are taken as UTC; offsets are converted.
    try:
        ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError) as e:
        raise RowParseError(line_no, column, value, "not a timestamp") from e
    if pd.isna(ts):
        raise RowParseError(line_no, column, value, "empty timestamp")
    return ts


def _parse_float(value: object, *, line_no: int, column: str) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise RowParseError(line_no, column, value, "not a number") from e


def _parse_label(value: object, *, line_no: int, column: str) -> int:
    num = _parse_float(value, line_no=line_no, column=column)
    if num not in (0.0, 1.0):
        raise RowParseError(line_no, column, value, "expected 0 or 1")
    return int(num)


def parse_predictions_csv(text: str, *, delimiter: str = ",") -> Tuple[Row, ...]:
    """Parse the validation predictions table into an ordered tuple of rows.

    Plain split on ``delimiter``: quoted fields are not supported. Lines with
    fewer fields than the header are skipped. Any unparsable timestamp, number
    or label raises ``RowParseError`` and aborts the whole table.
    """
    lines = text.strip().splitlines()
    if not lines or not lines[0].strip():
        raise DataLoadError("prediction table is empty (no header line)")

    header = [h.strip() for h in lines[0].split(delimiter)]
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise DataLoadError(f"prediction table is missing required columns: {', '.join(missing)}")

    file_col = next((c for c in FILE_COLUMNS if c in header), None)
    known = set(REQUIRED_COLUMNS) | {"y_pred"} | ({file_col} if file_col else set())

    rows: List[Row] = []
    skipped: List[int] = []
    for i, line in enumerate(lines[1:], start=2):
        parts = line.split(delimiter)
        if len(parts) < len(header):
            skipped.append(i)
            continue
        rec: Dict[str, str] = {name: parts[j].strip() for j, name in enumerate(header)}

        y_pred_raw = rec.get("y_pred")
        rows.append(
            Row(
                timestamp=_parse_utc(rec["datetime"], line_no=i, column="datetime"),
                y_true=_parse_label(rec["y_true"], line_no=i, column="y_true"),
                y_prob=_parse_float(rec["y_prob"], line_no=i, column="y_prob"),
                y_pred=_parse_label(y_pred_raw, line_no=i, column="y_pred") if y_pred_raw else None,
                filename=(rec[file_col] or None) if file_col else None,
                aux={k: v for k, v in rec.items() if k not in known},
            )
        )

    if skipped:
        logger.warning("Skipped %d truncated line(s) in prediction table", len(skipped))
        logger.debug("First truncated line: %d", skipped[0])
    return tuple(rows)


def load_predictions_csv(path: os.PathLike | str) -> Tuple[Row, ...]:
    p = Path(path)
    try:
        text = p.read_text()
    except OSError as e:
        raise DataLoadError(f"Failed to read {p}: {e}") from e
    rows = parse_predictions_csv(text)
    logger.info("Loaded %d prediction rows from %s", len(rows), p)
    return rows


# ===== JSON artifacts =====


def _read_json(path: os.PathLike | str) -> Any:
    p = Path(path)
    if not p.exists():
        raise DataLoadError(f"Failed to fetch {p} (file not found)")
    try:
        return json.loads(p.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise DataLoadError(f"Failed to read {p}: {e}") from e


def _opt(d: dict, key: str, cast):
    val = d.get(key)
    if val is None:
        return None
    try:
        return cast(val)
    except (TypeError, ValueError) as e:
        raise DataLoadError(f"metrics field '{key}' has invalid value {val!r}") from e


def parse_model_metadata(data: dict) -> ModelMetadata:
    if not isinstance(data, dict):
        raise DataLoadError("metrics.json must contain an object")
    return ModelMetadata(
        dataset=_opt(data, "dataset", str),
        label_horizon_steps=_opt(data, "label_horizon_steps", int),
        window_size=_opt(data, "window_size", int),
        img_size=_opt(data, "img_size", int),
        valid_accuracy=_opt(data, "valid_accuracy", float),
        valid_auc=_opt(data, "valid_auc", float),
    )


def load_model_metadata(path: os.PathLike | str) -> ModelMetadata:
    return parse_model_metadata(_read_json(path))


def load_confusion_matrix(path: os.PathLike | str) -> List[List[int]]:
    """Return the raw ``[[TN, FP], [FN, TP]]`` grid (may be partial)."""
    data = _read_json(path)
    matrix = data.get("matrix") if isinstance(data, dict) else None
    if matrix is None:
        return []
    if not isinstance(matrix, list):
        raise DataLoadError(f"confusion matrix in {path} is not a list")
    return matrix


def parse_samples(items: list) -> Tuple[SampleRecord, ...]:
    """Same rules as the prediction table: no NaT timestamps, labels strictly 0/1."""
    if not isinstance(items, list):
        raise DataLoadError("samples.json must contain a list")
    out: List[SampleRecord] = []
    for idx, s in enumerate(items):
        try:
            out.append(
                SampleRecord(
                    tag=str(s["tag"]),
                    timestamp=_parse_utc(s["datetime"], line_no=idx, column="datetime"),
                    y_true=_parse_label(s["y_true"], line_no=idx, column="y_true"),
                    y_pred=_parse_label(s["y_pred"], line_no=idx, column="y_pred"),
                    y_prob=_parse_float(s["y_prob"], line_no=idx, column="y_prob"),
                    png=str(s["png"]),
                )
            )
        except RowParseError as e:
            raise DataLoadError(f"sample #{idx} field '{e.column}' has invalid value {e.value!r}") from e
        except (KeyError, TypeError) as e:
            raise DataLoadError(f"sample #{idx} is malformed: {e}") from e
    return tuple(out)


def load_samples(path: os.PathLike | str) -> Tuple[SampleRecord, ...]:
    samples = parse_samples(_read_json(path))
    logger.info("Loaded %d samples from %s", len(samples), path)
    return samples


# ===== All inputs =====


@dataclass(frozen=True)
class DashboardData:
    metadata: ModelMetadata
    baseline_matrix: List[List[int]]
    rows: Tuple[Row, ...]
    samples: Tuple[SampleRecord, ...]
    results_dir: Path


def load_results(cfg: DashboardConfig, results_dir: Optional[os.PathLike | str] = None) -> DashboardData:
    """Load every static input once. Any failure raises ``DataLoadError``."""
    base = Path(results_dir) if results_dir else cfg.results_dir
    if not base.is_dir():
        raise DataLoadError(f"Results folder not found: {base}")

    return DashboardData(
        metadata=load_model_metadata(base / cfg.metrics_json),
        baseline_matrix=load_confusion_matrix(base / cfg.confusion_json),
        rows=load_predictions_csv(base / cfg.predictions_csv),
        samples=load_samples(base / cfg.samples_json),
        results_dir=base,
    )
