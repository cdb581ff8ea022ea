"""Collective inference strategies.

Every strategy repeats the same cycle over the updatable entities:
1. Recompute relational features from the current estimates
2. Predict new estimates with the relational classifier
3. Write them back into the updatable rows only
4. Stop once the mean absolute change is at most ``tol``

Strategies differ in how step 3 is done:
- Relaxation labeling: damped update, the damping constant decays each round
- Iterative classification: full replacement plus hard relabeling
- Gibbs sampling: sampled labels, averaged after a burn-in period

References:
- Macskassy & Provost 2007: Classification in networked data
- Sen et al. 2008: Collective classification in network data
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from netlearning.adjacency import Adjacency
from netlearning.classifier import RelationalClassifier
from netlearning.config import (
    DEFAULT_ALPHA,
    DEFAULT_BRATIO,
    DEFAULT_KAPPA,
    DEFAULT_MAXITER,
    DEFAULT_TOL,
    EPSILON,
    resolve_inference,
)
from netlearning.exceptions import ShapeMismatchError
from netlearning.logging import null_logger
from netlearning.relational import (
    PreparedRelation,
    RelationalLearner,
    one_hot,
    prepare_relations,
    relational_features,
)

TargetFn = Callable[[np.ndarray], Any]


def argmax_target(estimate: np.ndarray) -> int:
    """Default target extraction: index of the largest estimate."""
    return int(np.argmax(estimate))


def extract_targets(target_fn: TargetFn, estimates: np.ndarray) -> np.ndarray:
    """Apply ``target_fn`` to every row of ``estimates``."""
    if target_fn is argmax_target:
        return estimates.argmax(axis=1)
    return np.fromiter(
        (target_fn(row) for row in estimates), dtype=int, count=estimates.shape[0]
    )


def sample_labels(probabilities: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Draw one class label per row of a score matrix.

    Rows are clipped to be non-negative and rescaled to sum to one; a row
    without any mass is sampled uniformly.
    """
    weights = np.clip(probabilities, 0.0, None)
    totals = weights.sum(axis=1, keepdims=True)
    p = weights.shape[1]
    weights = np.where(totals > 0, weights / np.where(totals > 0, totals, 1.0), 1.0 / p)
    cdf = np.cumsum(weights, axis=1)
    u = rng.random(weights.shape[0])[:, None] * cdf[:, -1:]
    return np.minimum((u >= cdf).sum(axis=1), p - 1)


class InferenceResult(BaseModel):
    """Result of one collective inference pass.

    Attributes:
        iterations: Iterations performed.
        converged: Whether the tolerance was met before the budget ran out.
        final_delta: Mean absolute estimate change in the last iteration.
        entities_updated: Number of updatable entities.
        samples: Post burn-in samples averaged (Gibbs sampling only).
    """

    model_config = ConfigDict(extra="forbid")

    iterations: int = Field(default=0, ge=0)
    converged: bool = Field(default=False)
    final_delta: float = Field(default=0.0, ge=0.0)
    entities_updated: int = Field(default=0, ge=0)
    samples: int = Field(default=0, ge=0)


class CollectiveInferer(ABC):
    """Base class of the collective inference family.

    Holds only hyperparameters; all iteration state lives in the arrays
    passed to ``run``.

    Attributes:
        maxiter: Iteration budget (at least 1).
        tol: Convergence tolerance on the mean absolute change (at least 0).
        target_fn: Maps an estimate vector to a class label.
    """

    kind: ClassVar[str]

    def __init__(
        self,
        maxiter: int = DEFAULT_MAXITER,
        tol: float = DEFAULT_TOL,
        target_fn: TargetFn = argmax_target,
    ) -> None:
        self.maxiter = max(int(maxiter), 1)
        self.tol = max(float(tol), 0.0)
        self.target_fn = target_fn

    def run(
        self,
        estimates: np.ndarray,
        classifier: RelationalClassifier,
        learners: Sequence[RelationalLearner],
        adjacencies: Sequence[Adjacency],
        update: np.ndarray,
        logger: Any = None,
    ) -> InferenceResult:
        """Re-estimate the updatable entities in place.

        Args:
            estimates: Estimates with one row per entity; mutated in place.
            classifier: Trained relational classifier.
            learners: One fitted relational learner per relation.
            adjacencies: Relations over all entities, aligned with ``learners``.
            update: Boolean mask of the entities that may change.
            logger: Optional structlog logger; silent when None.

        Returns:
            InferenceResult with iteration statistics.

        Raises:
            ShapeMismatchError: If the mask or relations don't match the
                number of entities.
        """
        log = logger if logger is not None else null_logger()
        update = np.asarray(update, dtype=bool)
        n, p = estimates.shape
        if update.shape != (n,):
            raise ShapeMismatchError("update", n, update.shape[0] if update.ndim else update.shape)
        for adjacency in adjacencies:
            if adjacency.n_entities != n:
                raise ShapeMismatchError("adjacency", n, adjacency.n_entities)

        rows = np.flatnonzero(update)
        if rows.size == 0:
            return InferenceResult(converged=True)

        # Sliced relations and scratch buffers, reused by every iteration of this pass
        prepared = prepare_relations(learners, adjacencies, rows)
        features = np.zeros((rows.size, len(learners) * p), dtype=float)
        previous = np.empty((rows.size, p), dtype=float)

        result = self._iterate(
            estimates,
            classifier,
            learners,
            adjacencies,
            prepared,
            rows,
            features,
            previous,
            log,
        )
        result.entities_updated = int(rows.size)

        log.info(
            "collective_inference_finished",
            inferer=self.kind,
            iterations=result.iterations,
            converged=result.converged,
            delta=result.final_delta,
            entities=result.entities_updated,
        )
        return result

    def _predict(
        self,
        classifier: RelationalClassifier,
        learners: Sequence[RelationalLearner],
        adjacencies: Sequence[Adjacency],
        prepared: Sequence[PreparedRelation],
        estimates: np.ndarray,
        targets: np.ndarray | None,
        rows: np.ndarray,
        features: np.ndarray,
    ) -> np.ndarray:
        relational_features(
            learners, adjacencies, estimates, targets, rows, out=features, prepared=prepared
        )
        return classifier.predict(features, n_estimates=estimates.shape[1])

    @staticmethod
    def _delta(current: np.ndarray, previous: np.ndarray) -> float:
        return float(np.mean(np.abs(current - previous)))

    @abstractmethod
    def _iterate(
        self,
        estimates: np.ndarray,
        classifier: RelationalClassifier,
        learners: Sequence[RelationalLearner],
        adjacencies: Sequence[Adjacency],
        prepared: Sequence[PreparedRelation],
        rows: np.ndarray,
        features: np.ndarray,
        previous: np.ndarray,
        log: Any,
    ) -> InferenceResult: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(maxiter={self.maxiter}, tol={self.tol})"


class RelaxationLabelingInferer(CollectiveInferer):
    """Damped re-estimation.

    Iteration t (starting at 1) blends the fresh prediction into the
    previous estimate with weight ``kappa * alpha**t``.
    """

    kind = "relaxationlabeling"

    def __init__(
        self,
        maxiter: int = DEFAULT_MAXITER,
        tol: float = DEFAULT_TOL,
        target_fn: TargetFn = argmax_target,
        kappa: float = DEFAULT_KAPPA,
        alpha: float = DEFAULT_ALPHA,
    ) -> None:
        super().__init__(maxiter, tol, target_fn)
        self.kappa = min(max(float(kappa), EPSILON), 1.0)
        self.alpha = min(max(float(alpha), EPSILON), 1.0)

    def _iterate(
        self, estimates, classifier, learners, adjacencies, prepared, rows, features, previous, log
    ):
        result = InferenceResult()
        kappa = self.kappa
        for iteration in range(1, self.maxiter + 1):
            kappa *= self.alpha
            predicted = self._predict(
                classifier, learners, adjacencies, prepared, estimates, None, rows, features
            )
            previous[...] = estimates[rows]
            estimates[rows] = kappa * predicted + (1.0 - kappa) * previous

            result.iterations = iteration
            result.final_delta = self._delta(estimates[rows], previous)
            log.debug(
                "collective_inference_iteration",
                iteration=iteration,
                delta=result.final_delta,
                kappa=kappa,
            )
            if result.final_delta <= self.tol:
                result.converged = True
                break
        return result

    def __repr__(self) -> str:
        return (
            f"RelaxationLabelingInferer(maxiter={self.maxiter}, tol={self.tol}, "
            f"kappa={self.kappa}, alpha={self.alpha})"
        )


class IterativeClassificationInferer(CollectiveInferer):
    """Undamped re-estimation with hard relabeling.

    Predictions replace the previous estimates outright, and the labels
    extracted from them are what class-conditional relational learners
    condition on in the next round.
    """

    kind = "iterativeclassification"

    def _iterate(
        self, estimates, classifier, learners, adjacencies, prepared, rows, features, previous, log
    ):
        result = InferenceResult()
        targets = extract_targets(self.target_fn, estimates)
        for iteration in range(1, self.maxiter + 1):
            predicted = self._predict(
                classifier, learners, adjacencies, prepared, estimates, targets, rows, features
            )
            previous[...] = estimates[rows]
            estimates[rows] = predicted
            targets[rows] = extract_targets(self.target_fn, predicted)

            result.iterations = iteration
            result.final_delta = self._delta(predicted, previous)
            log.debug(
                "collective_inference_iteration",
                iteration=iteration,
                delta=result.final_delta,
            )
            if result.final_delta <= self.tol:
                result.converged = True
                break
        return result


class GibbsSamplingInferer(CollectiveInferer):
    """Markov chain sweep over entity labels.

    Each round samples a label for every updatable entity from its
    predicted distribution. Samples live in a scratch copy of the
    estimates; the first ``burnin`` rounds are discarded. Afterwards the
    reported estimate of an entity is the running empirical average of its
    one-hot samples, so a burn-in covering the whole budget leaves the
    estimates untouched.

    Attributes:
        burnin: Rounds discarded before sampling counts.
        seed: Seed of the random generator (fresh entropy when None).
    """

    kind = "gibbssampling"

    def __init__(
        self,
        maxiter: int = DEFAULT_MAXITER,
        tol: float = DEFAULT_TOL,
        target_fn: TargetFn = argmax_target,
        burnin: int | None = None,
        seed: int | None = None,
    ) -> None:
        super().__init__(maxiter, tol, target_fn)
        if burnin is None:
            burnin = math.ceil(self.maxiter * DEFAULT_BRATIO)
        self.burnin = max(int(burnin), 0)
        self.seed = seed

    @classmethod
    def from_ratio(
        cls,
        maxiter: int = DEFAULT_MAXITER,
        tol: float = DEFAULT_TOL,
        target_fn: TargetFn = argmax_target,
        bratio: float = DEFAULT_BRATIO,
        seed: int | None = None,
    ) -> GibbsSamplingInferer:
        """Build a sampler whose burn-in is ``ceil(maxiter * bratio)`` rounds."""
        maxiter = max(int(maxiter), 1)
        bratio = min(max(float(bratio), EPSILON), 1.0 - EPSILON)
        return cls(maxiter, tol, target_fn, burnin=math.ceil(maxiter * bratio), seed=seed)

    def _iterate(
        self, estimates, classifier, learners, adjacencies, prepared, rows, features, previous, log
    ):
        result = InferenceResult()
        rng = np.random.default_rng(self.seed)
        p = estimates.shape[1]
        work = np.array(estimates, dtype=float, copy=True)
        targets = extract_targets(self.target_fn, work)
        counts = np.zeros((rows.size, p), dtype=float)

        for iteration in range(1, self.maxiter + 1):
            predicted = self._predict(
                classifier, learners, adjacencies, prepared, work, targets, rows, features
            )
            sampled = sample_labels(predicted, rng)
            targets[rows] = sampled
            work[rows] = one_hot(sampled, p)
            result.iterations = iteration

            if iteration <= self.burnin:
                log.debug("collective_inference_iteration", iteration=iteration, burnin=True)
                continue

            result.samples += 1
            counts += work[rows]
            previous[...] = estimates[rows]
            estimates[rows] = counts / result.samples
            result.final_delta = self._delta(estimates[rows], previous)
            log.debug(
                "collective_inference_iteration",
                iteration=iteration,
                delta=result.final_delta,
                samples=result.samples,
            )
            # the first sample is compared against the pre-inference estimates
            if result.samples > 1 and result.final_delta <= self.tol:
                result.converged = True
                break
        return result

    def __repr__(self) -> str:
        return (
            f"GibbsSamplingInferer(maxiter={self.maxiter}, tol={self.tol}, "
            f"burnin={self.burnin})"
        )


COLLECTIVE_INFERERS: dict[str, type[CollectiveInferer]] = {
    RelaxationLabelingInferer.kind: RelaxationLabelingInferer,
    IterativeClassificationInferer.kind: IterativeClassificationInferer,
    GibbsSamplingInferer.kind: GibbsSamplingInferer,
}


def make_inferer(
    kind: str,
    maxiter: int = DEFAULT_MAXITER,
    tol: float = DEFAULT_TOL,
    target_fn: TargetFn = argmax_target,
    kappa: float = DEFAULT_KAPPA,
    alpha: float = DEFAULT_ALPHA,
    bratio: float = DEFAULT_BRATIO,
    seed: int | None = None,
    strict: bool = False,
    logger: Any = None,
) -> CollectiveInferer:
    """Build a collective inferer by name.

    Unknown names fall back to relaxation labeling with a warning.
    Strategy-specific options are ignored by the other strategies.

    Raises:
        InvalidConfigurationError: If ``kind`` is unknown and ``strict`` is set.
    """
    resolved = resolve_inference(kind, strict=strict, logger=logger)
    if resolved == IterativeClassificationInferer.kind:
        return IterativeClassificationInferer(maxiter, tol, target_fn)
    if resolved == GibbsSamplingInferer.kind:
        return GibbsSamplingInferer.from_ratio(maxiter, tol, target_fn, bratio=bratio, seed=seed)
    return RelaxationLabelingInferer(maxiter, tol, target_fn, kappa=kappa, alpha=alpha)
