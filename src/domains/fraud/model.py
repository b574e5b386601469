"""Fixed-weight linear fraud model."""

from collections.abc import Sequence

import numpy as np

from .config import FraudConfig, default_config
from .exceptions import RiskAssessmentError


class ProbabilisticFraudModel:
    """Dot product of normalized features with fixed policy weights.

    Weights are not learned. With features in [0, 1] and weights summing to
    1.0 the output is itself a probability.
    """

    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or default_config
        self._weights = tuple(self._config.ensemble.model_weights)

    @property
    def weights(self) -> tuple[float, ...]:
        return self._weights

    def predict(self, features: Sequence[float], weights: Sequence[float] | None = None) -> float:
        """Probability for ``features``.

        Without explicit weights the feature vector is padded with zeros or
        truncated to the model width. Explicit weights must match exactly.
        """
        if weights is None:
            width = len(self._weights)
            padded = list(features[:width]) + [0.0] * max(0, width - len(features))
            return self._dot(padded, self._weights)

        if len(features) != len(weights):
            raise RiskAssessmentError(
                f"Features and weights must have the same length "
                f"({len(features)} != {len(weights)})"
            )
        return self._dot(features, weights)

    def is_fraudulent(self, probability: float) -> bool:
        return probability >= self._config.ensemble.model_fraud_threshold

    @staticmethod
    def _dot(features: Sequence[float], weights: Sequence[float]) -> float:
        return float(np.dot(np.asarray(features, dtype=float), np.asarray(weights, dtype=float)))
