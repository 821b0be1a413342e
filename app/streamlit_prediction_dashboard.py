"""Prediction Dashboard: evaluate a binary up/down classifier on the validation split.

Features:
- KPI strip from metrics.json (dataset, setup, validation accuracy/AUC, N rows).
- Baseline confusion matrix (confusion_matrix.json) next to the live-threshold one.
- y_prob time series with threshold line, y_true and y_pred(thr) markers.
- y_prob histogram, calibration curve, hour-of-day accuracy heatmap.
- Top-confidence table and the sample image gallery.

Data sources (folder set in config or sidebar):
- metrics.json, confusion_matrix.json, predictions_valid.csv, samples.json, samples/*.png
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Tuple

import streamlit as st

# Ensure app/ on sys.path so `from evaldash...` works when run via `streamlit run`
THIS_DIR = Path(__file__).resolve().parent
if str(THIS_DIR) not in sys.path:
    sys.path.insert(0, str(THIS_DIR))

from evaldash.calibration import calibrate
from evaldash.gallery import ALL_TAGS, SAMPLE_TAGS, filter_sort
from evaldash.loader import DashboardConfig, DashboardData, DataLoadError, load_config, load_results
from evaldash.metrics import baseline_confusion, clamp_threshold, compute_confusion, derive_rates
from evaldash.plots import (
    calibration_figure,
    confusion_frame,
    fmt,
    hourly_heatmap,
    probability_figure,
    probability_histogram,
)
from evaldash.ranking import ranked_to_frame, top_by_confidence
from evaldash.rows import rows_to_frame
from evaldash.temporal import hourly_accuracy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("configs/dashboard_config.yaml")

SORT_LABELS = {
    "conf_desc": "Confidence (high → low)",
    "conf_asc": "Confidence (low → high)",
    "time_desc": "Time (new → old)",
    "time_asc": "Time (old → new)",
}


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


# ===== Cached loaders =====


@st.cache_data(show_spinner=False)
def _cached_load_config(path: str) -> DashboardConfig:
    return load_config(Path(path))


@st.cache_data(ttl=None, show_spinner=False)
def cached_load_results(cfg: DashboardConfig, results_dir: str) -> DashboardData:
    return load_results(cfg, results_dir)


# ===== Sections =====


def _render_load_failure(err: Exception, results_dir: str) -> None:
    st.error("Dashboard failed to load data")
    st.markdown(
        f"Make sure `{results_dir}` contains metrics.json, confusion_matrix.json, "
        "predictions_valid.csv and samples.json."
    )
    st.code(str(err), language=None)


def _render_kpis(data: DashboardData) -> None:
    meta = data.metadata
    c1, c2, c3, c4, c5 = st.columns([2, 3, 1, 1, 1])
    c1.metric("Dataset", meta.dataset or "—")
    c2.metric("Setup", meta.setup_line())
    c3.metric("Valid acc", fmt(meta.valid_accuracy, 4))
    c4.metric("Valid AUC", fmt(meta.valid_auc, 4))
    c5.metric("N", str(len(data.rows)))


def _render_confusion(title: str, counts, caption: str) -> None:
    rates = derive_rates(counts)
    st.markdown(f"**{title}**")
    st.table(confusion_frame(counts))
    a, b, c = st.columns(3)
    a.metric("TPR", fmt(rates.tpr))
    b.metric("TNR", fmt(rates.tnr))
    c.metric("Balanced acc", fmt(rates.balanced_accuracy))
    d, e, f = st.columns(3)
    d.metric("Accuracy", fmt(rates.accuracy))
    e.metric("Precision", fmt(rates.precision))
    f.metric("F1", fmt(rates.f1))
    st.caption(caption)


def _render_gallery(data: DashboardData, tag: str, sort_key: str, n_cols: int = 4) -> None:
    items = filter_sort(data.samples, tag, sort_key)
    st.caption(f"{len(items)} of {len(data.samples)} samples")
    if not items:
        return
    cols = st.columns(n_cols)
    for i, s in enumerate(items):
        with cols[i % n_cols]:
            img_path = data.results_dir / s.png
            if img_path.exists():
                st.image(str(img_path), use_container_width=True)
            else:
                st.caption(f"missing image: {s.png}")
            badge = ":red[WRONG]" if s.tag == "wrong" else f":green[{s.tag.upper()}]"
            st.markdown(badge)
            st.caption(
                f"time {s.timestamp:%Y-%m-%d %H:%M:%S} | y_true {s.y_true} | "
                f"y_pred {s.y_pred} | y_prob {s.y_prob:.6f}"
            )


def _sidebar(cfg: DashboardConfig) -> Tuple[str, float, bool, bool, int, str, str]:
    with st.sidebar:
        st.subheader("Data")
        results_dir = st.text_input("Results folder", value=str(cfg.results_dir))

        st.subheader("Threshold")
        thr_raw = st.slider(
            "Decision threshold", min_value=0.0, max_value=1.0,
            value=clamp_threshold(cfg.default_threshold), step=0.001, format="%.3f",
        )
        threshold = clamp_threshold(thr_raw, cfg.default_threshold)
        show_truth = st.checkbox("Show y_true", value=True)
        show_pred = st.checkbox("Show y_pred(thr)", value=True)
        top_n = int(st.number_input("Top-N by confidence", min_value=1, max_value=1000, value=int(cfg.top_n)))

        st.subheader("Samples")
        tag = st.selectbox("Filter", options=[ALL_TAGS, *SAMPLE_TAGS])
        sort_key = st.selectbox("Sort", options=list(SORT_LABELS), format_func=lambda k: SORT_LABELS[k])
    return results_dir, threshold, show_truth, show_pred, top_n, tag, sort_key


def main() -> None:
    st.set_page_config(page_title="Prediction Dashboard", layout="wide")
    st.title("Intraday Prediction Dashboard")

    cfg_path = st.sidebar.text_input("Config path", value=str(DEFAULT_CONFIG))
    try:
        cfg = _cached_load_config(cfg_path)
    except Exception as e:
        st.sidebar.warning(f"Config load failed, using defaults. Details: {e}")
        cfg = DashboardConfig()
    _setup_logging(cfg.log_level)

    results_dir, threshold, show_truth, show_pred, top_n, tag, sort_key = _sidebar(cfg)

    try:
        data = cached_load_results(cfg, results_dir)
    except DataLoadError as exc:
        logger.error("Load failed: %s", exc)
        _render_load_failure(exc, results_dir)
        st.stop()

    rows = data.rows
    frame = rows_to_frame(rows)

    _render_kpis(data)
    st.divider()

    # ===== Confusion =====
    col_live, col_base = st.columns(2)
    with col_live:
        _render_confusion(
            f"Live confusion @ {threshold:.3f}",
            compute_confusion(rows, threshold),
            "Predicted positive when y_prob >= threshold.",
        )
    with col_base:
        _render_confusion(
            "Baseline confusion (exported)",
            baseline_confusion(data.baseline_matrix),
            "Fixed matrix from confusion_matrix.json; does not follow the slider.",
        )
    st.divider()

    # ===== Probability charts =====
    st.subheader("Predicted probability over time")
    st.plotly_chart(
        probability_figure(frame, threshold, show_truth=show_truth, show_pred=show_pred),
        use_container_width=True,
    )

    col_h, col_c = st.columns(2)
    with col_h:
        st.subheader("y_prob distribution")
        st.plotly_chart(probability_histogram(frame, nbins=cfg.hist_bins), use_container_width=True)
    with col_c:
        st.subheader("Calibration")
        st.plotly_chart(calibration_figure(calibrate(rows, cfg.calibration_bins)), use_container_width=True)

    st.plotly_chart(hourly_heatmap(hourly_accuracy(rows, threshold)), use_container_width=True)
    st.divider()

    # ===== Top confidence =====
    st.subheader(f"Top {top_n} most confident predictions")
    ranked = top_by_confidence(rows, threshold, top_n)
    st.dataframe(ranked_to_frame(ranked), use_container_width=True, height=360)
    st.divider()

    # ===== Gallery =====
    st.subheader("Sample gallery")
    _render_gallery(data, tag, sort_key)


if __name__ == "__main__":
    main()
