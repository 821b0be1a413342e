import json
import logging

import pandas as pd
import pytest

from evaldash.loader import (
    DashboardConfig,
    DataLoadError,
    RowParseError,
    load_config,
    load_confusion_matrix,
    load_results,
    parse_model_metadata,
    parse_predictions_csv,
    parse_samples,
)


def test_parse_keeps_order_and_types(predictions_csv_text):
    rows = parse_predictions_csv(predictions_csv_text)
    assert len(rows) == 3
    assert [r.y_prob for r in rows] == [0.81, 0.30, 0.40]
    assert [r.y_true for r in rows] == [1, 0, 1]
    assert [r.y_pred for r in rows] == [1, 0, 0]
    assert rows[0].filename == "samples/a.png"
    assert rows[0].aux == {"split": "valid"}


def test_naive_timestamps_are_utc(predictions_csv_text):
    rows = parse_predictions_csv(predictions_csv_text)
    assert rows[1].timestamp == pd.Timestamp("2024-01-01 01:00:00", tz="UTC")
    assert str(rows[1].timestamp.tz) == "UTC"


def test_offset_timestamps_are_converted():
    rows = parse_predictions_csv("datetime,y_true,y_prob\n2024-01-01 05:00:00+02:00,0,0.2\n")
    assert rows[0].timestamp.hour == 3


def test_truncated_lines_are_skipped(caplog):
    text = (
        "datetime,y_true,y_prob,y_pred\n"
        "2024-01-01 00:00:00,1,0.9,1\n"
        "2024-01-01 01:00:00,0\n"
        "\n"
        "2024-01-01 02:00:00,0,0.1,0\n"
        "2024-01-01 03:00:00,1"
    )
    with caplog.at_level(logging.WARNING):
        rows = parse_predictions_csv(text)
    assert [r.timestamp.hour for r in rows] == [0, 2]
    assert "Skipped 3 truncated" in caplog.text


def test_extra_fields_beyond_header_are_ignored():
    rows = parse_predictions_csv("datetime,y_true,y_prob\n2024-01-01 00:00:00,1,0.9,junk,more\r\n")
    assert len(rows) == 1
    assert rows[0].aux == {}
    assert rows[0].y_pred is None
    assert rows[0].filename is None


def test_non_numeric_probability_aborts():
    text = "datetime,y_true,y_prob\n2024-01-01 00:00:00,1,0.9\n2024-01-01 01:00:00,0,high\n"
    with pytest.raises(RowParseError) as exc:
        parse_predictions_csv(text)
    assert exc.value.line_no == 3
    assert exc.value.column == "y_prob"
    assert exc.value.value == "high"


def test_non_binary_label_aborts():
    with pytest.raises(RowParseError) as exc:
        parse_predictions_csv("datetime,y_true,y_prob\n2024-01-01 00:00:00,2,0.9\n")
    assert exc.value.column == "y_true"


def test_bad_timestamp_aborts():
    with pytest.raises(RowParseError) as exc:
        parse_predictions_csv("datetime,y_true,y_prob\nyesterday-ish,1,0.9\n")
    assert exc.value.column == "datetime"


def test_missing_header_or_columns():
    with pytest.raises(DataLoadError):
        parse_predictions_csv("")
    with pytest.raises(DataLoadError, match="y_prob"):
        parse_predictions_csv("datetime,y_true\n2024-01-01 00:00:00,1\n")
    assert parse_predictions_csv("datetime,y_true,y_prob\n") == ()


def test_parse_model_metadata():
    meta = parse_model_metadata(
        {"dataset": "BTCUSDT 1m", "label_horizon_steps": 15, "window_size": 60, "img_size": 64,
         "valid_accuracy": 0.53, "valid_auc": 0.55}
    )
    assert meta.setup_line() == "Horizon: 15 | Window: 60 | Img: 64px"
    assert meta.valid_auc == 0.55

    empty = parse_model_metadata({})
    assert empty.dataset is None
    assert empty.setup_line() == "Horizon: — | Window: — | Img: —px"
    with pytest.raises(DataLoadError):
        parse_model_metadata({"window_size": "wide"})


def test_parse_samples():
    samples = parse_samples(
        [{"tag": "wrong", "datetime": "2024-01-01 04:00:00", "y_true": 1, "y_pred": 0,
          "y_prob": "0.42", "png": "samples/x.png"}]
    )
    assert samples[0].tag == "wrong"
    assert samples[0].y_prob == pytest.approx(0.42)
    assert samples[0].timestamp.hour == 4
    with pytest.raises(DataLoadError, match="sample #0"):
        parse_samples([{"tag": "wrong"}])


def _write_results(folder, csv_text):
    (folder / "metrics.json").write_text(json.dumps({"dataset": "demo", "valid_accuracy": 0.6}))
    (folder / "confusion_matrix.json").write_text(json.dumps({"matrix": [[3, 1], [2, 4]]}))
    (folder / "samples.json").write_text(json.dumps([]))
    (folder / "predictions_valid.csv").write_text(csv_text)


def test_load_results_reads_all_files(tmp_path, predictions_csv_text):
    _write_results(tmp_path, predictions_csv_text)
    data = load_results(DashboardConfig(), tmp_path)
    assert data.metadata.dataset == "demo"
    assert data.baseline_matrix == [[3, 1], [2, 4]]
    assert len(data.rows) == 3
    assert data.samples == ()
    assert data.results_dir == tmp_path


def test_load_results_fails_on_missing_file(tmp_path, predictions_csv_text):
    _write_results(tmp_path, predictions_csv_text)
    (tmp_path / "samples.json").unlink()
    with pytest.raises(DataLoadError, match="samples.json"):
        load_results(DashboardConfig(), tmp_path)
    with pytest.raises(DataLoadError):
        load_results(DashboardConfig(), tmp_path / "nope")


def test_load_results_fails_on_bad_json(tmp_path, predictions_csv_text):
    _write_results(tmp_path, predictions_csv_text)
    (tmp_path / "metrics.json").write_text("{not json")
    with pytest.raises(DataLoadError):
        load_results(DashboardConfig(), tmp_path)


def test_confusion_matrix_without_grid(tmp_path):
    path = tmp_path / "cm.json"
    path.write_text(json.dumps({"threshold": 0.5}))
    assert load_confusion_matrix(path) == []


def test_load_config_defaults_and_yaml(tmp_path):
    assert load_config(tmp_path / "missing.yaml") == DashboardConfig()

    cfg_path = tmp_path / "dash.yaml"
    cfg_path.write_text(
        "results_dir: out/run1\n"
        "files:\n  predictions_csv: preds.csv\n"
        "defaults:\n  threshold: 0.55\n  top_n: 5\n"
        "log_level: DEBUG\n"
    )
    cfg = load_config(cfg_path)
    assert str(cfg.results_dir) == "out/run1"
    assert cfg.predictions_csv == "preds.csv"
    assert cfg.metrics_json == "metrics.json"
    assert cfg.default_threshold == 0.55
    assert cfg.top_n == 5
    assert cfg.calibration_bins == 10
    assert cfg.log_level == "DEBUG"


def _sample(**overrides):
    base = {"tag": "correct", "datetime": "2024-01-01 04:00:00", "y_true": 1, "y_pred": 1,
            "y_prob": 0.8, "png": "samples/x.png"}
    base.update(overrides)
    return base


@pytest.mark.parametrize("bad_time", [None, ""])
def test_samples_reject_missing_timestamps(bad_time):
    with pytest.raises(DataLoadError, match="sample #1 field 'datetime'"):
        parse_samples([_sample(), _sample(datetime=bad_time)])


def test_samples_reject_non_binary_labels():
    with pytest.raises(DataLoadError, match="'y_true'"):
        parse_samples([_sample(y_true=0.7)])
    with pytest.raises(DataLoadError, match="'y_pred'"):
        parse_samples([_sample(y_pred=2)])
    with pytest.raises(DataLoadError, match="'y_prob'"):
        parse_samples([_sample(y_prob=None)])


def test_load_config_tolerates_null_sections(tmp_path):
    cfg_path = tmp_path / "dash.yaml"
    cfg_path.write_text("files: null\ndefaults:\n")
    assert load_config(cfg_path) == DashboardConfig()
