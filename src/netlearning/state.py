"""Mutable state shared across collective inference passes."""

from __future__ import annotations

from typing import Literal

import numpy as np

from netlearning.exceptions import ShapeMismatchError

ObsAxis = Literal["rows", "columns"]


def as_rows(estimates: np.ndarray, obs_axis: ObsAxis) -> np.ndarray:
    """Entity-per-row view of an estimate matrix.

    For column-major input this is a transposed view, so writes through it
    land in the caller's array.
    """
    return estimates if obs_axis == "rows" else estimates.T


class LearnerState:
    """Estimates for all entities plus the mask of those that may change.

    Entities whose mask value is False are training or high-certainty
    observations; their estimates are never written by inference.

    Attributes:
        estimates: The estimate matrix, in the caller's orientation. It is
            mutated in place by every inference pass.
        update: Boolean vector, one value per entity.
        obs_axis: Whether entities are rows or columns of ``estimates``.
    """

    def __init__(
        self,
        estimates: np.ndarray,
        update: np.ndarray | list[bool],
        obs_axis: ObsAxis = "rows",
    ) -> None:
        if obs_axis not in ("rows", "columns"):
            raise ValueError(f"obs_axis must be 'rows' or 'columns', got {obs_axis!r}")
        if not isinstance(estimates, np.ndarray) or estimates.ndim != 2:
            raise ShapeMismatchError(
                "estimates", "a 2-dimensional numpy array", np.shape(estimates)
            )
        # estimates are overwritten in place; an integer array would truncate them
        if not np.issubdtype(estimates.dtype, np.floating):
            raise TypeError(
                f"estimates must have a floating dtype, got {estimates.dtype}; "
                "convert with estimates.astype(float) first"
            )
        mask = np.asarray(update, dtype=bool)
        if mask.ndim != 1:
            raise ShapeMismatchError("update", "a 1-dimensional mask", mask.shape)
        n = estimates.shape[0] if obs_axis == "rows" else estimates.shape[1]
        if mask.shape[0] != n:
            raise ShapeMismatchError("update", n, mask.shape[0])
        self.estimates = estimates
        self.update = mask
        self.obs_axis: ObsAxis = obs_axis

    @property
    def rows(self) -> np.ndarray:
        """Entity-per-row view of the estimates."""
        return as_rows(self.estimates, self.obs_axis)

    @property
    def n_entities(self) -> int:
        return self.update.shape[0]

    @property
    def n_estimates(self) -> int:
        """Estimates per entity (p)."""
        return self.rows.shape[1]

    @property
    def n_updatable(self) -> int:
        return int(self.update.sum())

    @property
    def fixed(self) -> np.ndarray:
        """Mask of the entities that inference must not modify."""
        return ~self.update

    def __repr__(self) -> str:
        return (
            f"NetworkLearner state: {self.n_updatable}/{self.n_entities} "
            "entities can be updated"
        )
