"""Model performance tracking: ROC/PR curves, confusion matrices, rule precision.

Predictions are kept in a bounded ledger and labeled later when analyst
or chargeback feedback arrives. Metrics are computed on a snapshot of the
labeled records so concurrent writers never see a half-built curve.
"""

import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import numpy as np
import structlog

from .config import TrackerSettings

logger = structlog.get_logger()


@dataclass
class PredictionRecord:
    transaction_id: str
    predicted_probability: float
    triggered_rules: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    actual_fraud: bool = False
    feedback_received: bool = False


@dataclass(frozen=True)
class ConfusionMatrix:
    tp: int
    tn: int
    fp: int
    fn: int
    threshold: float

    @property
    def precision(self) -> float:
        return self.tp / (self.tp + self.fp) if self.tp + self.fp > 0 else 0.0

    @property
    def recall(self) -> float:
        return self.tp / (self.tp + self.fn) if self.tp + self.fn > 0 else 0.0

    @property
    def f1_score(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if p + r > 0 else 0.0

    @property
    def accuracy(self) -> float:
        total = self.tp + self.tn + self.fp + self.fn
        return (self.tp + self.tn) / total if total > 0 else 0.0

    @property
    def specificity(self) -> float:
        return self.tn / (self.tn + self.fp) if self.tn + self.fp > 0 else 0.0


@dataclass(frozen=True)
class ThresholdMetric:
    threshold: float
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    false_positives: int


@dataclass
class RulePerformanceStats:
    """Per-rule outcome counters. Updates are serialized per rule."""

    true_positives: int = 0
    false_positives: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_outcome(self, actual_fraud: bool) -> None:
        with self._lock:
            if actual_fraud:
                self.true_positives += 1
            else:
                self.false_positives += 1

    @property
    def total(self) -> int:
        return self.true_positives + self.false_positives

    @property
    def precision(self) -> float:
        total = self.total
        return self.true_positives / total if total > 0 else 0.0

    def snapshot(self) -> "RulePerformanceStats":
        with self._lock:
            return RulePerformanceStats(
                true_positives=self.true_positives,
                false_positives=self.false_positives,
            )


@dataclass(frozen=True)
class RocPoint:
    fpr: float
    tpr: float
    threshold: float


@dataclass(frozen=True)
class PrPoint:
    recall: float
    precision: float
    threshold: float


@dataclass
class ModelMetrics:
    total_predictions: int = 0
    labeled_predictions: int = 0
    auc_roc: float = 0.5
    auc_pr: float = 0.05
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    accuracy: float = 0.0
    optimal_threshold: float = 0.5
    confusion_matrix: ConfusionMatrix | None = None
    optimal_confusion_matrix: ConfusionMatrix | None = None
    roc_curve: list[RocPoint] = field(default_factory=list)
    pr_curve: list[PrPoint] = field(default_factory=list)
    threshold_metrics: list[ThresholdMetric] = field(default_factory=list)
    rule_performance: dict[str, RulePerformanceStats] = field(default_factory=dict)


def confusion_matrix(records: Sequence[PredictionRecord], threshold: float) -> ConfusionMatrix:
    tp = tn = fp = fn = 0
    for r in records:
        predicted = r.predicted_probability >= threshold
        if predicted and r.actual_fraud:
            tp += 1
        elif predicted:
            fp += 1
        elif r.actual_fraud:
            fn += 1
        else:
            tn += 1
    return ConfusionMatrix(tp=tp, tn=tn, fp=fp, fn=fn, threshold=threshold)


def _by_descending_probability(records: Sequence[PredictionRecord]) -> list[PredictionRecord]:
    return sorted(records, key=lambda r: r.predicted_probability, reverse=True)


def roc_curve(records: Sequence[PredictionRecord]) -> list[RocPoint]:
    positives = sum(1 for r in records if r.actual_fraud)
    negatives = len(records) - positives
    if positives == 0 or negatives == 0:
        return [RocPoint(fpr=0.0, tpr=0.0, threshold=1.0), RocPoint(fpr=1.0, tpr=1.0, threshold=0.0)]

    curve = [RocPoint(fpr=0.0, tpr=0.0, threshold=1.0)]
    tp = fp = 0
    for r in _by_descending_probability(records):
        if r.actual_fraud:
            tp += 1
        else:
            fp += 1
        curve.append(RocPoint(fpr=fp / negatives, tpr=tp / positives, threshold=r.predicted_probability))
    return curve


def pr_curve(records: Sequence[PredictionRecord]) -> list[PrPoint]:
    positives = sum(1 for r in records if r.actual_fraud)
    if positives == 0:
        return [PrPoint(recall=0.0, precision=1.0, threshold=1.0)]

    curve = [PrPoint(recall=0.0, precision=1.0, threshold=1.0)]
    tp = fp = 0
    for r in _by_descending_probability(records):
        if r.actual_fraud:
            tp += 1
        else:
            fp += 1
        curve.append(
            PrPoint(recall=tp / positives, precision=tp / (tp + fp), threshold=r.predicted_probability)
        )
    return curve


def trapezoid_area(x: Sequence[float], y: Sequence[float]) -> float:
    if len(x) < 2:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    return float(np.sum(np.diff(xs) * (ys[1:] + ys[:-1]) / 2.0))


def roc_auc(curve: Sequence[RocPoint]) -> float:
    if len(curve) < 2:
        return 0.5
    area = trapezoid_area([p.fpr for p in curve], [p.tpr for p in curve])
    return max(0.0, min(area, 1.0))


def pr_auc(curve: Sequence[PrPoint]) -> float:
    if len(curve) < 2:
        return 0.0
    area = trapezoid_area([p.recall for p in curve], [p.precision for p in curve])
    return max(0.0, min(abs(area), 1.0))


class ModelPerformanceTracker:
    """Tracks predictions and delayed fraud labels to score model quality."""

    def __init__(self, config: TrackerSettings | None = None) -> None:
        self._config = config or TrackerSettings()
        self._predictions: deque[PredictionRecord] = deque(maxlen=self._config.capacity)
        self._rule_stats: dict[str, RulePerformanceStats] = {}
        self._lock = threading.Lock()
        logger.info(
            "performance_tracker_initialized",
            capacity=self._config.capacity,
            threshold_points=len(self._config.thresholds),
        )

    def record_prediction(
        self,
        transaction_id: str,
        probability: float,
        triggered_rules: Sequence[str] = (),
    ) -> None:
        record = PredictionRecord(
            transaction_id=transaction_id,
            predicted_probability=probability,
            triggered_rules=tuple(triggered_rules),
        )
        with self._lock:
            # deque(maxlen) evicts the oldest record
            self._predictions.append(record)
        logger.debug("prediction_recorded", transaction_id=transaction_id, probability=probability)

    def record_feedback(self, transaction_id: str, actual_fraud: bool) -> bool:
        """Label the first unlabeled prediction for ``transaction_id``.

        Returns False when the id is unknown or already labeled, so repeated
        feedback never double counts rule outcomes.
        """
        with self._lock:
            record = next(
                (
                    r
                    for r in self._predictions
                    if r.transaction_id == transaction_id and not r.feedback_received
                ),
                None,
            )
            if record is None:
                logger.debug("feedback_ignored", transaction_id=transaction_id)
                return False
            record.actual_fraud = actual_fraud
            record.feedback_received = True
            stats = [
                self._rule_stats.setdefault(rule_id, RulePerformanceStats())
                for rule_id in record.triggered_rules
            ]

        for rule_stats in stats:
            rule_stats.record_outcome(actual_fraud)

        logger.debug(
            "feedback_recorded", transaction_id=transaction_id, actual_fraud=actual_fraud
        )
        return True

    def _snapshot(self) -> tuple[int, list[PredictionRecord], dict[str, RulePerformanceStats]]:
        with self._lock:
            total = len(self._predictions)
            labeled = [
                PredictionRecord(
                    transaction_id=r.transaction_id,
                    predicted_probability=r.predicted_probability,
                    triggered_rules=r.triggered_rules,
                    timestamp=r.timestamp,
                    actual_fraud=r.actual_fraud,
                    feedback_received=True,
                )
                for r in self._predictions
                if r.feedback_received
            ]
            rule_stats = dict(self._rule_stats)
        return total, labeled, {k: v.snapshot() for k, v in rule_stats.items()}

    def calculate_metrics(self) -> ModelMetrics:
        cfg = self._config
        total, labeled, rule_performance = self._snapshot()

        if len(labeled) < cfg.min_labeled:
            return ModelMetrics(
                total_predictions=total,
                labeled_predictions=len(labeled),
                auc_roc=cfg.baseline_auc_roc,
                auc_pr=cfg.baseline_auc_pr,
                optimal_threshold=cfg.default_threshold,
                rule_performance=rule_performance,
            )

        roc = roc_curve(labeled)
        pr = pr_curve(labeled)
        cm = confusion_matrix(labeled, cfg.default_threshold)
        optimal = self.find_optimal_threshold(labeled)
        optimal_cm = confusion_matrix(labeled, optimal)

        return ModelMetrics(
            total_predictions=total,
            labeled_predictions=len(labeled),
            auc_roc=roc_auc(roc),
            auc_pr=pr_auc(pr),
            precision=cm.precision,
            recall=cm.recall,
            f1_score=optimal_cm.f1_score,
            accuracy=cm.accuracy,
            optimal_threshold=optimal,
            confusion_matrix=cm,
            optimal_confusion_matrix=optimal_cm,
            roc_curve=roc,
            pr_curve=pr,
            threshold_metrics=self._threshold_metrics(labeled),
            rule_performance=rule_performance,
        )

    def find_optimal_threshold(self, records: Sequence[PredictionRecord]) -> float:
        """Grid threshold with the best F1. Ties keep the lowest threshold."""
        best_threshold = self._config.default_threshold
        best_f1 = 0.0
        for threshold in self._config.thresholds:
            f1 = confusion_matrix(records, threshold).f1_score
            if f1 > best_f1:
                best_f1 = f1
                best_threshold = threshold
        return best_threshold

    def _threshold_metrics(self, records: Sequence[PredictionRecord]) -> list[ThresholdMetric]:
        metrics = []
        for threshold in self._config.thresholds:
            cm = confusion_matrix(records, threshold)
            metrics.append(
                ThresholdMetric(
                    threshold=threshold,
                    precision=cm.precision,
                    recall=cm.recall,
                    f1_score=cm.f1_score,
                    true_positives=cm.tp,
                    false_positives=cm.fp,
                )
            )
        return metrics

    def get_health_report(self) -> dict[str, Any]:
        """Current model quality summary for dashboards."""
        metrics = self.calculate_metrics()
        return {
            "total_predictions": metrics.total_predictions,
            "labeled_predictions": metrics.labeled_predictions,
            "sufficient_labels": metrics.labeled_predictions >= self._config.min_labeled,
            "auc_roc": metrics.auc_roc,
            "auc_pr": metrics.auc_pr,
            "precision": metrics.precision,
            "recall": metrics.recall,
            "f1_score": metrics.f1_score,
            "accuracy": metrics.accuracy,
            "optimal_threshold": metrics.optimal_threshold,
            "rule_performance": {
                rule_id: {
                    "true_positives": stats.true_positives,
                    "false_positives": stats.false_positives,
                    "precision": stats.precision,
                }
                for rule_id, stats in sorted(metrics.rule_performance.items())
            },
        }

    def reset(self) -> None:
        with self._lock:
            self._predictions.clear()
            self._rule_stats.clear()
        logger.info("performance_tracker_reset")
