"""Tests for detection scoring and tuning runs."""

import json
import tempfile

import numpy as np
import pytest

from floor_plan_rooms.evaluation import (
    DetectionMetrics,
    LabeledPlan,
    TuningLog,
    evaluate_detection,
    evaluate_params,
    grid_search,
)
from floor_plan_rooms.models import DetectionParams


def make_sample():
    image = np.zeros((300, 400, 3), dtype=np.uint8)
    image[80:220, 100:300] = 255
    expected = [{"x": 100, "y": 80, "width": 200, "height": 140}]
    return LabeledPlan(image=image, expected=expected, canvas_size=(400, 300), name="single")


def test_metrics_properties():
    """Test derived scores."""
    metrics = DetectionMetrics(true_positives=3, false_positives=1, false_negatives=2, iou_sum=2.7)

    assert metrics.precision == pytest.approx(0.75)
    assert metrics.recall == pytest.approx(0.6)
    assert metrics.f1 == pytest.approx(2 * 0.75 * 0.6 / 1.35)
    assert metrics.mean_iou == pytest.approx(0.9)


def test_metrics_empty():
    """Test scores with no rooms at all."""
    metrics = DetectionMetrics()

    assert metrics.precision == 0.0
    assert metrics.recall == 0.0
    assert metrics.f1 == 0.0
    assert metrics.mean_iou == 0.0


def test_metrics_add():
    """Test pooling counts across plans."""
    total = DetectionMetrics(true_positives=1) + DetectionMetrics(false_negatives=2)

    assert total.true_positives == 1
    assert total.false_negatives == 2


def test_evaluate_detection_matches():
    """Test greedy matching."""
    detected = [
        {"x": 0, "y": 0, "width": 100, "height": 100},
        {"x": 500, "y": 500, "width": 50, "height": 50},
    ]
    expected = [
        {"x": 0, "y": 0, "width": 100, "height": 90},
        {"x": 200, "y": 200, "width": 100, "height": 100},
    ]

    metrics = evaluate_detection(detected, expected)

    assert metrics.true_positives == 1
    assert metrics.false_positives == 1
    assert metrics.false_negatives == 1
    assert metrics.iou_sum == pytest.approx(0.9)


def test_evaluate_detection_one_to_one():
    """Test that one expected box is matched at most once."""
    box = {"x": 0, "y": 0, "width": 100, "height": 100}

    metrics = evaluate_detection([box, box], [box])

    assert metrics.true_positives == 1
    assert metrics.false_positives == 1


def test_evaluate_params():
    """Test running detection over labelled plans."""
    metrics = evaluate_params([make_sample()])

    assert metrics.true_positives == 1
    assert metrics.f1 == pytest.approx(1.0)
    assert metrics.mean_iou == pytest.approx(1.0)


def test_grid_search_orders_by_f1():
    """Test that the best combination comes first."""
    results = grid_search([make_sample()], {"min_pixel_count": [10**6, 180]})

    assert len(results) == 2
    best_params, best_metrics = results[0]
    assert best_params.min_pixel_count == 180
    assert best_metrics.f1 == pytest.approx(1.0)
    assert results[1][1].f1 == 0.0


def test_tuning_log_creation():
    """Test creating a tuning log."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log = TuningLog(log_dir=tmpdir)

        assert log.log_dir.exists()
        # Log file is only created when the first run is logged
        assert log.log_file.name == "log.md"
        assert log.runs == []


def test_log_run():
    """Test logging a run."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log = TuningLog(log_dir=tmpdir)

        log.log_run("baseline", DetectionParams(), DetectionMetrics(true_positives=2), notes="first")

        assert len(log.runs) == 1
        assert log.runs[0]["name"] == "baseline"
        assert log.runs[0]["params"]["iou_threshold"] == 0.82
        assert log.log_file.exists()
        assert "baseline" in log.log_file.read_text()


def test_runs_persist():
    """Test that runs are reloaded from disk."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log = TuningLog(log_dir=tmpdir)
        log.log_run("a", DetectionParams(), DetectionMetrics())

        reloaded = TuningLog(log_dir=tmpdir)

        assert len(reloaded.runs) == 1
        with open(reloaded.json_file) as f:
            assert json.load(f)[0]["name"] == "a"


def test_best_params():
    """Test picking the best logged parameters."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log = TuningLog(log_dir=tmpdir)
        log.log_run("weak", DetectionParams(min_fill_ratio=0.3), DetectionMetrics(false_positives=1))
        log.log_run("strong", DetectionParams(min_fill_ratio=0.6), DetectionMetrics(true_positives=1))

        assert log.best_run()["name"] == "strong"
        assert log.best_params().min_fill_ratio == 0.6


def test_best_params_empty():
    """Test an empty log."""
    with tempfile.TemporaryDirectory() as tmpdir:
        assert TuningLog(log_dir=tmpdir).best_params() is None
