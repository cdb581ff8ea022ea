"""Relational learners: neighbor estimates to relational features.

Each learner is fitted once on the fixed (training) entities of a single
relation and can then be applied any number of times. Applying a learner
reads the *current* estimates of every entity's neighbors, so its output
changes as collective inference rewrites the estimate array.

Aggregation rules, for entity i with neighbors j and edge weights w_ij:
- SimpleRN: unweighted mean of neighbor estimates
- WeightedRN: w_ij-weighted mean of neighbor estimates
- ClassDistributionRN: similarity of the weighted neighbor distribution to
  per-class reference distributions, scaled by the class priors
- BayesRN: naive Bayes posterior over classes given neighbor evidence

An entity without neighbors gets an all-zero row (the priors for BayesRN).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar, NamedTuple

import numpy as np
import scipy.sparse as sp

from netlearning.adjacency import Adjacency
from netlearning.config import resolve_learner
from netlearning.exceptions import ShapeMismatchError

# Floor for probabilities entering a logarithm
_LOG_FLOOR = 1e-12


def one_hot(targets: np.ndarray, p: int) -> np.ndarray:
    """Indicator matrix (len(targets), p) of integer class labels.

    Raises:
        ShapeMismatchError: If a label lies outside [0, p).
    """
    labels = np.asarray(targets)
    if labels.ndim != 1:
        raise ShapeMismatchError("targets", "a 1-dimensional label vector", labels.shape)
    labels = labels.astype(int)
    if labels.size and (labels.min() < 0 or labels.max() >= p):
        raise ShapeMismatchError("targets", f"labels in [0, {p})", (labels.min(), labels.max()))
    out = np.zeros((labels.shape[0], p), dtype=float)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


def l1_normalize(block: np.ndarray) -> np.ndarray:
    """Rescale every row of ``block`` in place to unit L1 norm.

    All-zero rows are left at zero.
    """
    norms = np.abs(block).sum(axis=1, keepdims=True)
    np.divide(block, norms, out=block, where=norms > 0)
    return block


class PreparedRelation(NamedTuple):
    """Row slice of a relation's weight matrix, ready for aggregation.

    Built once per inference pass and reused by every iteration, since
    neither the relation nor the updatable rows change within a pass.

    Attributes:
        matrix: Weight rows of the selected entities, shape (rows, n).
        totals: Weight total of each selected row.
    """

    matrix: sp.csr_matrix
    totals: np.ndarray


def _weighted_mean_into(
    prepared: PreparedRelation, evidence: np.ndarray, out: np.ndarray
) -> np.ndarray:
    """Write the weighted neighbor mean of ``evidence`` into ``out``.

    Rows without neighbors are set to zero. Returns the mask of rows that
    have neighbors.
    """
    has_neighbors = prepared.totals > 0
    out.fill(0.0)
    np.divide(
        prepared.matrix @ evidence,
        prepared.totals[:, None],
        out=out,
        where=has_neighbors[:, None],
    )
    return has_neighbors


class RelationalLearner(ABC):
    """Base class of the relational learner family.

    Attributes:
        priors: Class priors, one per estimate column.
        normalize: Rescale feature rows to unit L1 norm.
    """

    kind: ClassVar[str]
    # class-conditional learners read hard neighbor labels when supplied
    uses_labels: ClassVar[bool] = False
    # aggregate over unit edge weights
    binary: ClassVar[bool] = False

    def __init__(self, priors: np.ndarray, normalize: bool = True) -> None:
        self.priors = np.asarray(priors, dtype=float)
        self.normalize = normalize

    @property
    def n_estimates(self) -> int:
        return self.priors.shape[0]

    @classmethod
    def fit(
        cls,
        adjacency: Adjacency,
        estimates: np.ndarray,
        targets: np.ndarray,
        priors: Sequence[float] | np.ndarray,
        normalize: bool = True,
    ) -> RelationalLearner:
        """Fit a learner on the fixed entities of one relation.

        Args:
            adjacency: Relation restricted to the fixed entities.
            estimates: Fixed-entity estimates, one row per entity.
            targets: Integer class label of every fixed entity.
            priors: Probability vector over the p classes.
            normalize: Rescale feature rows to unit L1 norm.

        Raises:
            ShapeMismatchError: If the inputs are not aligned.
        """
        estimates = np.asarray(estimates, dtype=float)
        priors = np.asarray(priors, dtype=float)
        if estimates.shape[1] != priors.shape[0]:
            raise ShapeMismatchError("priors", estimates.shape[1], priors.shape[0])
        if adjacency.n_entities != estimates.shape[0]:
            raise ShapeMismatchError("adjacency", estimates.shape[0], adjacency.n_entities)
        if np.shape(targets)[0] != estimates.shape[0]:
            raise ShapeMismatchError("targets", estimates.shape[0], np.shape(targets)[0])
        learner = cls(priors, normalize=normalize)
        learner._fit(adjacency, estimates, np.asarray(targets))
        return learner

    def _fit(self, adjacency: Adjacency, estimates: np.ndarray, targets: np.ndarray) -> None:
        """Learn aggregation parameters. Stateless learners need none."""

    def prepare(self, adjacency: Adjacency, rows: np.ndarray | None = None) -> PreparedRelation:
        """Slice (and for ``binary`` learners, binarize) the relation once.

        Args:
            adjacency: Relation over all entities.
            rows: Entities features will be computed for (all when None).
        """
        matrix = adjacency.binarized() if self.binary else adjacency.matrix
        if rows is not None:
            matrix = matrix[rows]
        totals = np.asarray(matrix.sum(axis=1), dtype=float).ravel()
        return PreparedRelation(matrix, totals)

    def transform(
        self,
        adjacency: Adjacency,
        estimates: np.ndarray,
        targets: np.ndarray | None = None,
        rows: np.ndarray | None = None,
        out: np.ndarray | None = None,
        prepared: PreparedRelation | None = None,
    ) -> np.ndarray:
        """Compute relational features from the current neighbor estimates.

        Args:
            adjacency: Relation over all entities of ``estimates``.
            estimates: Current estimates, one row per entity.
            targets: Hard labels per entity. When given, class-conditional
                learners use their one-hot encoding as neighbor evidence
                instead of the soft estimates.
            rows: Entities to compute features for (all when None).
            out: Pre-allocated (len(rows), p) buffer to write into.
            prepared: Result of ``prepare(adjacency, rows)`` to reuse.

        Returns:
            The feature block (``out`` when provided).
        """
        if adjacency.n_entities != estimates.shape[0]:
            raise ShapeMismatchError("adjacency", estimates.shape[0], adjacency.n_entities)
        if prepared is None:
            prepared = self.prepare(adjacency, rows)
        shape = (prepared.matrix.shape[0], estimates.shape[1])
        if out is None:
            out = np.zeros(shape, dtype=float)
        elif out.shape != shape:
            raise ShapeMismatchError("out", shape, out.shape)
        if targets is not None and self.uses_labels:
            evidence = one_hot(targets, estimates.shape[1])
        else:
            evidence = estimates
        self._aggregate(prepared, evidence, out)
        if self.normalize:
            l1_normalize(out)
        return out

    @abstractmethod
    def _aggregate(
        self, prepared: PreparedRelation, evidence: np.ndarray, out: np.ndarray
    ) -> None: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(p={self.n_estimates}, normalize={self.normalize})"


class SimpleRN(RelationalLearner):
    """Unweighted mean of neighbor estimates."""

    kind = "simple"
    binary = True

    def _aggregate(self, prepared, evidence, out):
        _weighted_mean_into(prepared, evidence, out)


class WeightedRN(RelationalLearner):
    """Edge-weighted mean of neighbor estimates."""

    kind = "weighted"

    def _aggregate(self, prepared, evidence, out):
        _weighted_mean_into(prepared, evidence, out)


class ClassDistributionRN(RelationalLearner):
    """Class-distribution relational neighbor.

    Fitting builds one reference vector per class: the mean weighted
    neighbor distribution of the fixed entities holding that class. An
    entity's feature for class c is ``priors[c] * (1 - ||d - RV_c||_1 / 2)``
    where d is its own weighted neighbor distribution.
    """

    kind = "classdistribution"
    uses_labels = True

    def __init__(self, priors: np.ndarray, normalize: bool = True) -> None:
        super().__init__(priors, normalize)
        p = self.n_estimates
        self.reference = np.zeros((p, p), dtype=float)

    def _fit(self, adjacency: Adjacency, estimates: np.ndarray, targets: np.ndarray) -> None:
        p = self.n_estimates
        labels = one_hot(targets, p)
        agg = np.zeros_like(labels)
        # entities without neighbors carry no distributional evidence
        has_neighbors = _weighted_mean_into(self.prepare(adjacency), labels, agg).astype(float)
        counts = labels.T @ has_neighbors
        sums = labels.T @ agg
        np.divide(sums, counts[:, None], out=self.reference, where=counts[:, None] > 0)

    def _aggregate(self, prepared, evidence, out):
        has_neighbors = _weighted_mean_into(prepared, evidence, out)
        # (rows, 1, p) - (1, classes, p) -> L1 distance per class
        dist = np.abs(out[:, None, :] - self.reference[None, :, :]).sum(axis=2)
        np.multiply(np.clip(1.0 - 0.5 * dist, 0.0, None), self.priors[None, :], out=out)
        out[~has_neighbors] = 0.0


class BayesRN(RelationalLearner):
    """Naive Bayes relational neighbor.

    Fitting estimates the class-conditional distribution of neighbor
    classes ``P(k | c)`` from the fixed entities, with Laplace smoothing.
    Applying it combines the priors with the weighted neighbor evidence:
    ``log post_c = log prior_c + sum_j w_ij sum_k e_jk log P(k | c)``.
    """

    kind = "bayesian"
    uses_labels = True

    def __init__(self, priors: np.ndarray, normalize: bool = True) -> None:
        super().__init__(priors, normalize)
        p = self.n_estimates
        self.log_likelihood = np.full((p, p), -np.log(p), dtype=float)
        self._log_prior = np.log(np.clip(self.priors, _LOG_FLOOR, None))

    def _fit(self, adjacency: Adjacency, estimates: np.ndarray, targets: np.ndarray) -> None:
        p = self.n_estimates
        labels = one_hot(targets, p)
        neighbor_mass = np.asarray(adjacency.matrix @ labels, dtype=float)
        counts = labels.T @ neighbor_mass + 1.0
        self.log_likelihood = np.log(counts / counts.sum(axis=1, keepdims=True))

    def _aggregate(self, prepared, evidence, out):
        np.matmul(prepared.matrix @ evidence, self.log_likelihood.T, out=out)
        out += self._log_prior[None, :]
        out -= out.max(axis=1, keepdims=True)
        np.exp(out, out=out)
        out /= out.sum(axis=1, keepdims=True)
        out[prepared.totals <= 0] = self.priors


RELATIONAL_LEARNERS: dict[str, type[RelationalLearner]] = {
    SimpleRN.kind: SimpleRN,
    WeightedRN.kind: WeightedRN,
    ClassDistributionRN.kind: ClassDistributionRN,
    BayesRN.kind: BayesRN,
}


def make_relational_learner(
    kind: str | type[RelationalLearner], strict: bool = False, logger: Any = None
) -> type[RelationalLearner]:
    """Select a relational learner class by name.

    Unknown names fall back to ``WeightedRN`` with a warning.

    Raises:
        InvalidConfigurationError: If ``kind`` is unknown and ``strict`` is set.
    """
    if isinstance(kind, type) and issubclass(kind, RelationalLearner):
        return kind
    return RELATIONAL_LEARNERS[resolve_learner(kind, strict=strict, logger=logger)]


def prepare_relations(
    learners: Sequence[RelationalLearner],
    adjacencies: Sequence[Adjacency],
    rows: np.ndarray | None = None,
) -> list[PreparedRelation]:
    """Prepare every relation for repeated feature computation over ``rows``."""
    if len(learners) != len(adjacencies):
        raise ShapeMismatchError("adjacencies", len(learners), len(adjacencies))
    return [learner.prepare(a, rows) for learner, a in zip(learners, adjacencies)]


def relational_features(
    learners: Sequence[RelationalLearner],
    adjacencies: Sequence[Adjacency],
    estimates: np.ndarray,
    targets: np.ndarray | None = None,
    rows: np.ndarray | None = None,
    out: np.ndarray | None = None,
    prepared: Sequence[PreparedRelation] | None = None,
) -> np.ndarray:
    """Concatenate the feature blocks of every relation, in order.

    Block i occupies columns ``i*p:(i+1)*p`` of the result and is written
    in place.

    Args:
        learners: One fitted learner per relation.
        adjacencies: The relations, aligned with ``learners``.
        estimates: Current estimates, one row per entity.
        targets: Optional hard labels per entity.
        rows: Entities to compute features for (all when None).
        out: Pre-allocated (len(rows), len(learners) * p) buffer.
        prepared: Output of ``prepare_relations`` for the same ``rows``.
    """
    if prepared is None:
        prepared = prepare_relations(learners, adjacencies, rows)
    elif len(adjacencies) != len(learners):
        raise ShapeMismatchError("adjacencies", len(learners), len(adjacencies))
    elif len(prepared) != len(learners):
        raise ShapeMismatchError("prepared", len(learners), len(prepared))
    p = estimates.shape[1]
    n_rows = estimates.shape[0] if rows is None else len(rows)
    if out is None:
        out = np.zeros((n_rows, len(learners) * p), dtype=float)
    elif out.shape != (n_rows, len(learners) * p):
        raise ShapeMismatchError("out", (n_rows, len(learners) * p), out.shape)
    for i, (learner, adjacency) in enumerate(zip(learners, adjacencies)):
        learner.transform(
            adjacency,
            estimates,
            targets,
            rows,
            out=out[:, i * p : (i + 1) * p],
            prepared=prepared[i],
        )
    return out
