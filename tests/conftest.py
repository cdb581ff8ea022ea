"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest

from netlearning import Adjacency
from netlearning.config import get_settings


class BlockMeanClassifier:
    """Stand-in for an external relational classifier.

    ``predict`` averages the per-relation feature blocks, so with a single
    relation it simply echoes the relational features. ``train`` records
    what it was trained on.
    """

    def __init__(self, p: int, obs_axis: str = "rows") -> None:
        self.p = p
        self.obs_axis = obs_axis
        self.trained_on: tuple[np.ndarray, np.ndarray] | None = None
        self.predict_calls = 0

    def train(self, features: np.ndarray, targets: np.ndarray) -> dict[str, Any]:
        self.trained_on = (features.copy(), np.asarray(targets).copy())
        return {"p": self.p}

    def predict(self, model: dict[str, Any], features: np.ndarray) -> np.ndarray:
        self.predict_calls += 1
        p = model["p"]
        rows = features if self.obs_axis == "rows" else features.T
        out = rows.reshape(rows.shape[0], -1, p).mean(axis=1)
        return out if self.obs_axis == "rows" else out.T


class RecordingLogger:
    """Minimal structlog-compatible logger that keeps every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **kw: Any) -> None:
        self.events.append((level, event, kw))

    def debug(self, event: str, **kw: Any) -> None:
        self._record("debug", event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._record("info", event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._record("warning", event, **kw)

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


@pytest.fixture
def block_mean() -> BlockMeanClassifier:
    """Two-class block-mean classifier."""
    return BlockMeanClassifier(p=2)


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def square_graph() -> Adjacency:
    """Four entities on a cycle 0-1-3-2-0."""
    return Adjacency(
        np.array(
            [
                [0, 1, 1, 0],
                [1, 0, 0, 1],
                [1, 0, 0, 1],
                [0, 1, 1, 0],
            ],
            dtype=float,
        )
    )


@pytest.fixture
def square_estimates() -> np.ndarray:
    """Two fixed entities of opposite class, two uncertain ones."""
    return np.array(
        [
            [1.0, 0.0],
            [0.0, 1.0],
            [0.6, 0.4],
            [0.3, 0.7],
        ]
    )


@pytest.fixture
def square_update() -> np.ndarray:
    return np.array([False, False, True, True])


@pytest.fixture
def two_cliques() -> Adjacency:
    """Edges 0-1 and 2-3: two disconnected pairs."""
    return Adjacency.from_edges(4, [(0, 1), (2, 3)])


@pytest.fixture
def make_block_mean():
    """Factory for extra block-mean classifiers."""
    return BlockMeanClassifier


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read NETLEARNING_* variables in every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
