"""
Duration-overlap scoring of predicted against operator-labelled activity.

Ground truth is only known as accumulated frame counts per activity, not per
frame, so predictions are scored by overlap of the counts:

    tp = min(actual_walk, pred_walk) + min(actual_run, pred_run)
    fp = surplus of predicted over actual, summed over both activities
    fn = surplus of actual over predicted, summed over both activities

Undefined ratios (zero denominators) are reported as 0.0.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EvaluationResult:
    """Precision, recall and F1 with the overlap counts they came from."""

    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0
    true_positives: float = 0.0
    false_positives: float = 0.0
    false_negatives: float = 0.0

    def as_dict(self) -> dict:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
        }


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def evaluate_counts(
    actual_walk: int,
    predicted_walk: int,
    actual_run: int,
    predicted_run: int,
) -> EvaluationResult:
    """Score predicted walking/running frame counts against ground-truth counts."""
    for name, value in (
        ("actual_walk", actual_walk),
        ("predicted_walk", predicted_walk),
        ("actual_run", actual_run),
        ("predicted_run", predicted_run),
    ):
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")

    walk, pred_walk = float(actual_walk), float(predicted_walk)
    run, pred_run = float(actual_run), float(predicted_run)

    overlap_walk = min(walk, pred_walk)
    overlap_run = min(run, pred_run)

    tp = overlap_walk + overlap_run
    fp = max(0.0, pred_walk - overlap_walk) + max(0.0, pred_run - overlap_run)
    fn = max(0.0, walk - overlap_walk) + max(0.0, run - overlap_run)

    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)
    f1 = _ratio(2.0 * precision * recall, precision + recall)

    return EvaluationResult(
        precision=precision,
        recall=recall,
        f1=f1,
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
    )
