"""Shared fixtures for the evaldash tests."""

import pandas as pd
import pytest

from evaldash.rows import Row, SampleRecord


def make_row(hour: int, y_true: int, y_prob: float, day: int = 1) -> Row:
    ts = pd.Timestamp(year=2024, month=1, day=day, hour=hour, tz="UTC")
    return Row(timestamp=ts, y_true=y_true, y_prob=y_prob)


def make_sample(tag: str, hour: int, y_prob: float, png: str = "") -> SampleRecord:
    ts = pd.Timestamp(year=2024, month=1, day=1, hour=hour, tz="UTC")
    y_true = 1
    y_pred = 1 if tag == "correct" else 0
    return SampleRecord(tag=tag, timestamp=ts, y_true=y_true, y_pred=y_pred, y_prob=y_prob, png=png or f"samples/{hour}.png")


@pytest.fixture
def scenario_rows():
    return (
        make_row(0, 1, 0.8),
        make_row(1, 0, 0.3),
        make_row(2, 1, 0.4),
    )


@pytest.fixture
def mixed_rows():
    # hours 0, 0, 5, 13, 23 with a spread of probabilities
    return (
        make_row(0, 1, 0.95),
        make_row(0, 0, 0.55),
        make_row(5, 0, 0.10),
        make_row(13, 1, 0.50),
        make_row(23, 1, 0.25),
    )


@pytest.fixture
def predictions_csv_text():
    return (
        "datetime,y_true,y_prob,y_pred,filename,split\n"
        "2024-01-01 00:00:00,1,0.81,1,samples/a.png,valid\n"
        "2024-01-01 01:00:00,0,0.30,0,samples/b.png,valid\n"
        "2024-01-01 02:00:00,1,0.40,0,samples/c.png,valid\n"
    )
