"""Entity-based network learner.

Training composes the relational pieces:
1. Split entities by the update mask into fixed and updatable
2. Extract target labels of the fixed entities
3. Fit one relational learner per relation on the fixed subgraph
4. Build the fixed entities' relational features (relation blocks in order)
5. Train the external relational classifier on them
6. Run one collective inference pass over all entities

Only updatable entities' estimates are ever modified.

Example:
    ```python
    from netlearning import Adjacency, NetworkLearner

    learner = NetworkLearner.fit(
        estimates,                      # (n, p) local model output
        update,                         # True where estimates may change
        [Adjacency(friends), Adjacency(colleagues)],
        train=train_fn,
        predict=predict_fn,
        learner="wrn",
        inference="ic",
    )
    learner.infer()                     # re-run inference on the current state
    ```
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from netlearning.adjacency import Adjacency
from netlearning.classifier import PredictFn, RelationalClassifier, TrainFn
from netlearning.config import NetworkLearnerConfig
from netlearning.exceptions import ShapeMismatchError
from netlearning.inference import (
    CollectiveInferer,
    InferenceResult,
    TargetFn,
    argmax_target,
    extract_targets,
    make_inferer,
)
from netlearning.logging import null_logger
from netlearning.relational import RelationalLearner, make_relational_learner, relational_features
from netlearning.state import LearnerState


def _as_adjacency(adjacency: Any) -> Adjacency:
    return adjacency if isinstance(adjacency, Adjacency) else Adjacency(adjacency)


class NetworkLearner:
    """A fitted entity-based network learner.

    Attributes:
        state: Estimates and update mask; mutated by every inference pass.
        classifier: Trained relational model and its prediction function.
        relational_learners: One fitted learner per relation.
        inferer: Collective inference strategy.
        adjacencies: Relations over all entities.
        size_out: Estimates per entity (p).
        config: Options the learner was fitted with.
        last_result: Statistics of the most recent inference pass.
    """

    def __init__(
        self,
        state: LearnerState,
        classifier: RelationalClassifier,
        relational_learners: list[RelationalLearner],
        inferer: CollectiveInferer,
        adjacencies: list[Adjacency],
        config: NetworkLearnerConfig,
        last_result: InferenceResult | None = None,
    ) -> None:
        self.state = state
        self.classifier = classifier
        self.relational_learners = relational_learners
        self.inferer = inferer
        self.adjacencies = adjacencies
        self.config = config
        self.last_result = last_result

    @property
    def size_out(self) -> int:
        return self.state.n_estimates

    @property
    def obs_axis(self) -> str:
        return self.state.obs_axis

    @classmethod
    def fit(
        cls,
        estimates: np.ndarray,
        update: np.ndarray | Sequence[bool],
        adjacencies: Sequence[Adjacency | Any],
        train: TrainFn,
        predict: PredictFn,
        config: NetworkLearnerConfig | None = None,
        target_fn: TargetFn = argmax_target,
        strict: bool = False,
        logger: Any = None,
        **overrides: Any,
    ) -> NetworkLearner:
        """Train a network learner and run collective inference once.

        Args:
            estimates: Initial estimates (e.g. local model output), one
                entity per row (or per column with ``obs_axis="columns"``).
                Updatable entities are overwritten in place.
            update: True for entities whose estimates may be re-estimated,
                False for fixed/training entities.
            adjacencies: One relation per entry: ``Adjacency`` objects,
                dense arrays or scipy sparse matrices.
            train: External relational model training function,
                ``train(features, targets) -> model``.
            predict: External relational model prediction function,
                ``predict(model, features) -> estimates``.
            config: Options; built from the ``NETLEARNING_*`` settings plus
                ``overrides`` when None.
            target_fn: Maps an estimate vector to its class label.
            strict: Raise on unknown selectors instead of falling back.
            logger: Optional structlog logger; silent when None.
            **overrides: Config fields overriding ``config``.

        Returns:
            The fitted NetworkLearner.

        Raises:
            ShapeMismatchError: If the mask, priors or relations don't match
                the estimates.
            TypeError: If the estimates are not a floating-point array.
            InvalidConfigurationError: Unknown selector with ``strict`` set.
        """
        log = logger if logger is not None else null_logger()
        if config is None:
            config = NetworkLearnerConfig.from_settings(**overrides)
        elif overrides:
            config = NetworkLearnerConfig(**{**config.model_dump(), **overrides})

        # Selectors are resolved before any computation
        learner_cls = make_relational_learner(config.learner, strict=strict, logger=log)
        inferer = make_inferer(
            config.inference,
            maxiter=config.maxiter,
            tol=config.tol,
            target_fn=target_fn,
            kappa=config.kappa,
            alpha=config.alpha,
            bratio=config.bratio,
            seed=config.seed,
            strict=strict,
            logger=log,
        )

        state = LearnerState(estimates, update, obs_axis=config.obs_axis)
        X = state.rows
        n, p = state.n_entities, state.n_estimates
        priors = np.asarray(config.resolve_priors(p), dtype=float)
        if priors.shape[0] != p:
            raise ShapeMismatchError("priors", p, priors.shape[0])
        adjacencies = [_as_adjacency(a) for a in adjacencies]
        for adjacency in adjacencies:
            if adjacency.n_entities != n:
                raise ShapeMismatchError("adjacency", n, adjacency.n_entities)

        fixed = state.fixed
        X_fixed = X[fixed]
        y_fixed = extract_targets(target_fn, X_fixed)
        fixed_adjacencies = [a.subset(fixed) for a in adjacencies]
        relational_learners = [
            learner_cls.fit(a, X_fixed, y_fixed, priors=priors, normalize=config.normalize)
            for a in fixed_adjacencies
        ]
        log.debug(
            "relational_learners_fitted",
            learner=learner_cls.kind,
            relations=len(relational_learners),
            fixed_entities=int(fixed.sum()),
        )

        features = relational_features(relational_learners, fixed_adjacencies, X_fixed, y_fixed)
        classifier = RelationalClassifier.fit(
            train, predict, features, y_fixed, obs_axis=config.obs_axis
        )
        log.debug("relational_model_trained", features=features.shape[1])

        model = cls(
            state=state,
            classifier=classifier,
            relational_learners=relational_learners,
            inferer=inferer,
            adjacencies=adjacencies,
            config=config,
        )
        model.infer(logger=log)
        return model

    def infer(self, logger: Any = None) -> None:
        """Re-run collective inference on the current state.

        Uses the already fitted relational learners and relational model;
        nothing is retrained. Mutates ``state.estimates`` in place.
        """
        self.last_result = self.inferer.run(
            self.state.rows,
            self.classifier,
            self.relational_learners,
            self.adjacencies,
            self.state.update,
            logger=logger,
        )

    def update_state(
        self,
        estimates: np.ndarray | None = None,
        update: np.ndarray | Sequence[bool] | None = None,
    ) -> None:
        """Replace the estimates and/or update mask used by ``infer``.

        Raises:
            ShapeMismatchError: If the new state doesn't fit the relations
                or the number of estimates per entity.
        """
        state = LearnerState(
            self.state.estimates if estimates is None else estimates,
            self.state.update if update is None else update,
            obs_axis=self.state.obs_axis,
        )
        if state.n_estimates != self.size_out:
            raise ShapeMismatchError("estimates", self.size_out, state.n_estimates)
        for adjacency in self.adjacencies:
            if adjacency.n_entities != state.n_entities:
                raise ShapeMismatchError("adjacency", state.n_entities, adjacency.n_entities)
        self.state = state

    def __repr__(self) -> str:
        return (
            f"NetworkLearner({self.size_out} estimates, entity-based, "
            f"{self.state.n_updatable}/{self.state.n_entities} updatable, "
            f"learners={self.relational_learners!r}, inferer={self.inferer!r})"
        )


def fit(
    estimates: np.ndarray,
    update: np.ndarray | Sequence[bool],
    adjacencies: Sequence[Adjacency | Any],
    train: TrainFn,
    predict: PredictFn,
    **kwargs: Any,
) -> NetworkLearner:
    """Shortcut for ``NetworkLearner.fit``."""
    return NetworkLearner.fit(estimates, update, adjacencies, train, predict, **kwargs)


def infer(learner: NetworkLearner, logger: Any = None) -> None:
    """Shortcut for ``NetworkLearner.infer``."""
    learner.infer(logger=logger)
