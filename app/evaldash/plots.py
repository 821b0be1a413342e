from __future__ import annotations

import math
from typing import Optional, Sequence

import pandas as pd
import plotly.graph_objects as go

from evaldash.calibration import CalibrationBin
from evaldash.metrics import ConfusionCounts
from evaldash.temporal import HourBucket

PLACEHOLDER = "—"


def fmt(x: Optional[float], d: int = 4) -> str:
    if x is None:
        return PLACEHOLDER
    try:
        val = float(x)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if math.isnan(val):
        return PLACEHOLDER
    return f"{val:.{d}f}"


def confusion_frame(counts: ConfusionCounts) -> pd.DataFrame:
    return pd.DataFrame(
        [[counts.tn, counts.fp], [counts.fn, counts.tp]],
        index=["true 0", "true 1"],
        columns=["pred 0", "pred 1"],
    )


def probability_figure(
    df: pd.DataFrame,
    threshold: float,
    *,
    show_truth: bool = True,
    show_pred: bool = True,
) -> go.Figure:
    """y_prob over time with the threshold line and optional 0/1 markers on a second axis."""
    fig = go.Figure()
    if df.empty:
        return fig

    fig.add_trace(
        go.Scatter(
            x=df["timestamp"],
            y=df["y_prob"],
            mode="lines",
            name="y_prob (P up)",
            line=dict(width=2),
            hovertemplate="Time: %{x}<br>P(up): %{y:.6f}<extra></extra>",
        )
    )
    fig.add_trace(
        go.Scatter(
            x=df["timestamp"],
            y=[threshold] * len(df),
            mode="lines",
            name=f"threshold ({threshold:.3f})",
            line=dict(dash="dot", width=1),
            hoverinfo="skip",
        )
    )
    if show_truth:
        fig.add_trace(
            go.Scatter(
                x=df["timestamp"],
                y=df["y_true"],
                mode="markers",
                name="y_true",
                marker=dict(size=5, opacity=0.7),
                hovertemplate="Time: %{x}<br>y_true: %{y}<extra></extra>",
                yaxis="y2",
            )
        )
    if show_pred:
        thr_pred = (pd.to_numeric(df["y_prob"], errors="coerce") >= threshold).astype(int)
        fig.add_trace(
            go.Scatter(
                x=df["timestamp"],
                y=thr_pred,
                mode="markers",
                name="y_pred(thr)",
                marker=dict(size=5, opacity=0.7),
                hovertemplate="Time: %{x}<br>y_pred: %{y}<extra></extra>",
                yaxis="y2",
            )
        )

    fig.update_layout(
        height=420,
        margin=dict(l=0, r=0, t=20, b=30),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        xaxis=dict(title="Time"),
        yaxis=dict(title="Probability", tickformat=".3f"),
        yaxis2=dict(
            title="Class (0/1)",
            overlaying="y",
            side="right",
            range=[-0.1, 1.1],
            showgrid=False,
            tickmode="array",
            tickvals=[0, 1],
            ticktext=["0", "1"],
        ),
        template="plotly_white",
    )
    return fig


def probability_histogram(df: pd.DataFrame, *, nbins: int = 40) -> go.Figure:
    fig = go.Figure()
    if not df.empty:
        fig.add_trace(
            go.Histogram(
                x=df["y_prob"],
                nbinsx=int(nbins),
                name="y_prob",
                hovertemplate="y_prob: %{x:.6f}<br>count: %{y}<extra></extra>",
            )
        )
    fig.update_layout(
        height=320,
        margin=dict(l=0, r=0, t=30, b=30),
        template="plotly_white",
        xaxis_title="y_prob",
        yaxis_title="count",
        showlegend=False,
    )
    return fig


def calibration_figure(bins: Sequence[CalibrationBin]) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=[0, 1],
            y=[0, 1],
            mode="lines",
            name="perfect",
            line=dict(color="#7f7f7f", dash="dash"),
            hoverinfo="skip",
        )
    )
    if bins:
        fig.add_trace(
            go.Scatter(
                x=[b.mean_prob for b in bins],
                y=[b.pos_rate for b in bins],
                mode="lines+markers",
                name="model",
                marker=dict(size=8, color="#1f77b4"),
                customdata=[[b.count, b.low, b.high] for b in bins],
                hovertemplate=(
                    "mean p: %{x:.4f}<br>positive rate: %{y:.4f}<br>"
                    "bin: [%{customdata[1]:.1f}, %{customdata[2]:.1f})<br>n=%{customdata[0]}<extra></extra>"
                ),
            )
        )
    fig.update_layout(
        height=360,
        margin=dict(l=0, r=0, t=30, b=30),
        template="plotly_white",
        title="Calibration (reliability)",
        xaxis=dict(title="Mean predicted probability", range=[0, 1]),
        yaxis=dict(title="Empirical positive rate", range=[0, 1]),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )
    return fig


def hourly_heatmap(buckets: Sequence[HourBucket]) -> go.Figure:
    """One-row heatmap of accuracy by UTC hour; hours without rows stay blank."""
    acc = [b.accuracy for b in buckets]
    text = [f"{fmt(a, 2)}<br>n={b.support}" for a, b in zip(acc, buckets)]
    fig = go.Figure(
        go.Heatmap(
            z=[acc],
            x=[b.hour for b in buckets],
            y=["accuracy"],
            text=[text],
            texttemplate="%{text}",
            colorscale="RdYlGn",
            zmin=0,
            zmax=1,
            hoverongaps=False,
            hovertemplate="hour %{x}:00 UTC<br>%{text}<extra></extra>",
        )
    )
    fig.update_layout(
        height=220,
        margin=dict(l=0, r=0, t=30, b=30),
        template="plotly_white",
        title="Accuracy by hour of day (UTC)",
        xaxis=dict(title="Hour", dtick=1),
    )
    return fig
