"""Score detection against labelled floor plans and track tuning runs."""

import itertools
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel

from .detector import detect_rooms
from .geometry import iou
from .models import DetectionParams


class DetectionMetrics(BaseModel):
    """Matching quality of detected rooms against expected rooms."""

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    iou_sum: float = 0.0

    @property
    def precision(self) -> float:
        found = self.true_positives + self.false_positives
        return self.true_positives / found if found else 0.0

    @property
    def recall(self) -> float:
        expected = self.true_positives + self.false_negatives
        return self.true_positives / expected if expected else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if (p + r) else 0.0

    @property
    def mean_iou(self) -> float:
        """Mean IoU over matched pairs."""
        return self.iou_sum / self.true_positives if self.true_positives else 0.0

    def __add__(self, other: "DetectionMetrics") -> "DetectionMetrics":
        return DetectionMetrics(
            true_positives=self.true_positives + other.true_positives,
            false_positives=self.false_positives + other.false_positives,
            false_negatives=self.false_negatives + other.false_negatives,
            iou_sum=self.iou_sum + other.iou_sum,
        )

    def summary(self) -> Dict[str, float]:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "mean_iou": self.mean_iou,
        }


def evaluate_detection(
    detected: Sequence[Any],
    expected: Sequence[Any],
    match_threshold: float = 0.5,
) -> DetectionMetrics:
    """Greedily match detected boxes to expected boxes by IoU.

    Args:
        detected: Detected rooms or rectangles
        expected: Ground truth rectangles in the same coordinates
        match_threshold: Minimum IoU for a match

    Returns:
        Match counts
    """
    pairs = []
    for i, d in enumerate(detected):
        for j, e in enumerate(expected):
            overlap = iou(d, e)
            if overlap >= match_threshold:
                pairs.append((overlap, i, j))

    matched_detected = set()
    matched_expected = set()
    iou_sum = 0.0
    for overlap, i, j in sorted(pairs, reverse=True):
        if i in matched_detected or j in matched_expected:
            continue
        matched_detected.add(i)
        matched_expected.add(j)
        iou_sum += overlap

    tp = len(matched_detected)
    return DetectionMetrics(
        true_positives=tp,
        false_positives=len(detected) - tp,
        false_negatives=len(expected) - tp,
        iou_sum=iou_sum,
    )


@dataclass
class LabeledPlan:
    """Floor plan image with hand-drawn room boxes in canvas coordinates."""

    image: np.ndarray
    expected: List[Dict[str, float]]
    canvas_size: Tuple[int, int] = (980, 700)
    name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


def evaluate_params(
    samples: Sequence[LabeledPlan],
    params: Optional[DetectionParams] = None,
    match_threshold: float = 0.5,
) -> DetectionMetrics:
    """Run detection over labelled plans and pool the match counts."""
    total = DetectionMetrics()
    for sample in samples:
        rooms = detect_rooms(sample.image, *sample.canvas_size, params=params)
        total = total + evaluate_detection(rooms, sample.expected, match_threshold)
    return total


def grid_search(
    samples: Sequence[LabeledPlan],
    grid: Dict[str, Sequence[Any]],
    base: Optional[DetectionParams] = None,
    log: Optional["TuningLog"] = None,
) -> List[Tuple[DetectionParams, DetectionMetrics]]:
    """Try every combination of parameter values.

    Args:
        samples: Labelled plans
        grid: Parameter name -> candidate values
        base: Parameters for anything not in the grid
        log: Optional log to record each run

    Returns:
        (params, metrics) pairs, best F1 first
    """
    base_values = (base or DetectionParams()).to_dict()
    names = list(grid)
    results = []

    for values in itertools.product(*(grid[name] for name in names)):
        params = DetectionParams.from_dict({**base_values, **dict(zip(names, values))})
        metrics = evaluate_params(samples, params)
        results.append((params, metrics))
        if log is not None:
            label = ", ".join(f"{n}={v}" for n, v in zip(names, values))
            log.log_run(label, params, metrics)

    results.sort(key=lambda item: item[1].f1, reverse=True)
    return results


class TuningLog:
    """Record of parameter runs, kept as JSON plus a markdown summary."""

    def __init__(self, log_dir: str = "tuning"):
        """Initialize the log.

        Args:
            log_dir: Directory for storing run logs
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(exist_ok=True, parents=True)
        self.log_file = self.log_dir / "log.md"
        self.json_file = self.log_dir / "runs.json"

        self.runs: List[Dict[str, Any]] = []
        if self.json_file.exists():
            with open(self.json_file, "r") as f:
                self.runs = json.load(f)

    def log_run(
        self,
        name: str,
        params: DetectionParams,
        metrics: DetectionMetrics,
        notes: Optional[str] = None,
    ) -> None:
        """Log one parameter set and how it scored.

        Args:
            name: Run name
            params: Parameters used
            metrics: Pooled match counts
            notes: Additional notes
        """
        run = {
            "timestamp": datetime.now().isoformat(),
            "name": name,
            "params": params.to_dict(),
            "counts": metrics.model_dump(),
            "metrics": metrics.summary(),
            "notes": notes or "",
        }

        self.runs.append(run)
        self._save_runs()
        self._update_markdown()

    def _save_runs(self) -> None:
        with open(self.json_file, "w") as f:
            json.dump(self.runs, f, indent=2)

    def _update_markdown(self) -> None:
        with open(self.log_file, "w") as f:
            f.write("# Room Detection - Tuning Log\n\n")
            f.write(f"- Runs: {len(self.runs)}\n")

            best = self.best_run("f1")
            if best is not None:
                f.write(f"- Best F1: {best['metrics']['f1']:.3f} ({best['name']})\n")
            f.write("\n## Runs\n\n")

            for run in reversed(self.runs):
                timestamp = datetime.fromisoformat(run["timestamp"]).strftime("%Y-%m-%d %H:%M")
                f.write(f"### {run['name']} ({timestamp})\n\n")
                f.write("**Metrics:**\n")
                for key, value in run["metrics"].items():
                    f.write(f"- {key}: {value:.3f}\n")
                f.write("\n")
                if run["notes"]:
                    f.write(f"**Notes:** {run['notes']}\n\n")
                f.write("---\n\n")

    def best_run(self, metric: str = "f1") -> Optional[Dict[str, Any]]:
        """Run with the highest value of a metric, or None."""
        candidates = [r for r in self.runs if metric in r.get("metrics", {})]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r["metrics"][metric])

    def best_params(self, metric: str = "f1") -> Optional[DetectionParams]:
        best = self.best_run(metric)
        return DetectionParams.from_dict(best["params"]) if best else None
