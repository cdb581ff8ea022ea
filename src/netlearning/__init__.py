"""Netlearning: entity-based collective inference over relational networks.

Given initial per-entity estimates, one or more relations between the
entities and a mask of which entities are fixed, netlearning refines the
estimates of the remaining entities by combining neighbor-derived
relational features with an externally supplied relational classifier.

Quick Start:
    import numpy as np
    from netlearning import Adjacency, NetworkLearner

    learner = NetworkLearner.fit(
        estimates,                  # (n, p) scores from a local model
        update,                     # (n,) True = may be re-estimated
        [Adjacency(A)],             # one (n, n) matrix per relation
        train=lambda X, y: fit_model(X, y),
        predict=lambda model, X: model.predict_proba(X),
        learner="wrn",              # simple | weighted | classdistribution | bayesian
        inference="rl",             # relaxationlabeling | iterativeclassification | gibbssampling
    )

Components:
    - LearnerState: estimates + update mask, mutated in place
    - Relational learners: neighbor estimates to relational features
    - Collective inferers: iterative re-estimation strategies
    - NetworkLearner: training orchestrator and re-inference entry point
"""

__version__ = "0.1.0"

# Adjacency
from .adjacency import Adjacency

# External classifier adapter
from .classifier import RelationalClassifier

# Configuration
from .config import NetworkLearnerConfig, Settings, get_settings

# Exceptions
from .exceptions import (
    InvalidConfigurationError,
    NetLearningError,
    ShapeMismatchError,
    UnknownSelectorWarning,
)

# Collective inference
from .inference import (
    CollectiveInferer,
    GibbsSamplingInferer,
    InferenceResult,
    IterativeClassificationInferer,
    RelaxationLabelingInferer,
    argmax_target,
    make_inferer,
)

# Learner
from .learner import NetworkLearner, fit, infer

# Logging
from .logging import (
    configure_from_settings,
    configure_logging,
    get_logger,
    null_logger,
)

# Relational learners
from .relational import (
    BayesRN,
    ClassDistributionRN,
    RelationalLearner,
    SimpleRN,
    WeightedRN,
    make_relational_learner,
    relational_features,
)

# State
from .state import LearnerState

__all__ = [
    # Version
    "__version__",
    # Core
    "NetworkLearner",
    "fit",
    "infer",
    "LearnerState",
    "Adjacency",
    "RelationalClassifier",
    # Relational learners
    "RelationalLearner",
    "SimpleRN",
    "WeightedRN",
    "ClassDistributionRN",
    "BayesRN",
    "make_relational_learner",
    "relational_features",
    # Collective inference
    "CollectiveInferer",
    "RelaxationLabelingInferer",
    "IterativeClassificationInferer",
    "GibbsSamplingInferer",
    "InferenceResult",
    "make_inferer",
    "argmax_target",
    # Configuration
    "NetworkLearnerConfig",
    "Settings",
    "get_settings",
    # Exceptions
    "NetLearningError",
    "ShapeMismatchError",
    "InvalidConfigurationError",
    "UnknownSelectorWarning",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "null_logger",
]
