"""Adapter around the externally supplied relational classifier.

The classifier is opaque: any pair of callables ``train(features, targets)``
and ``predict(model, features)`` works, e.g. a thin wrapper over a
scikit-learn estimator's ``fit`` and ``predict_proba``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np

from netlearning.exceptions import ShapeMismatchError
from netlearning.state import ObsAxis

TrainFn = Callable[[np.ndarray, np.ndarray], Any]
PredictFn = Callable[[Any, np.ndarray], np.ndarray]


@dataclass
class RelationalClassifier:
    """A trained relational model with its prediction function.

    Features are handed over in the learner's orientation: one entity per
    row for ``obs_axis="rows"``, one per column otherwise. Predictions are
    returned with one entity per row regardless.

    Attributes:
        train_fn: Training function.
        predict_fn: Prediction function.
        model: Whatever ``train_fn`` returned.
        obs_axis: Orientation expected by the external functions.
    """

    train_fn: TrainFn
    predict_fn: PredictFn
    model: Any = None
    obs_axis: ObsAxis = "rows"

    @classmethod
    def fit(
        cls,
        train_fn: TrainFn,
        predict_fn: PredictFn,
        features: np.ndarray,
        targets: np.ndarray,
        obs_axis: ObsAxis = "rows",
    ) -> RelationalClassifier:
        """Train the external model on entity-per-row ``features``."""
        oriented = features if obs_axis == "rows" else features.T
        model = train_fn(oriented, targets)
        return cls(train_fn=train_fn, predict_fn=predict_fn, model=model, obs_axis=obs_axis)

    def predict(self, features: np.ndarray, n_estimates: int | None = None) -> np.ndarray:
        """Predict estimates for entity-per-row ``features``.

        Raises:
            ShapeMismatchError: If the prediction doesn't have one row per
                feature row (and ``n_estimates`` columns, when given).
        """
        oriented = features if self.obs_axis == "rows" else features.T
        predicted = np.asarray(self.predict_fn(self.model, oriented), dtype=float)
        if predicted.ndim != 2:
            raise ShapeMismatchError("prediction", "a 2-dimensional matrix", predicted.shape)
        if self.obs_axis == "columns":
            predicted = predicted.T
        width = n_estimates if n_estimates is not None else predicted.shape[1]
        expected = (features.shape[0], width)
        if predicted.shape != expected:
            raise ShapeMismatchError("prediction", expected, predicted.shape)
        return predicted
