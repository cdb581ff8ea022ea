"""Relational learners for entity-based network learning.

A relational learner turns the estimates of an entity's neighbors under one
relation into a relational feature vector. One learner is fitted per
adjacency structure; the feature blocks of all relations are concatenated
into the matrix the relational classifier sees.

Example:
    ```python
    from netlearning.relational import WeightedRN, relational_features

    learner = WeightedRN.fit(adjacency, estimates, targets, priors=[0.5, 0.5])
    features = relational_features([learner], [adjacency], estimates)
    ```
"""

from .learners import (
    RELATIONAL_LEARNERS,
    BayesRN,
    ClassDistributionRN,
    PreparedRelation,
    RelationalLearner,
    SimpleRN,
    WeightedRN,
    l1_normalize,
    make_relational_learner,
    one_hot,
    prepare_relations,
    relational_features,
)

__all__ = [
    # Learners
    "RelationalLearner",
    "SimpleRN",
    "WeightedRN",
    "ClassDistributionRN",
    "BayesRN",
    "RELATIONAL_LEARNERS",
    # Functions
    "make_relational_learner",
    "relational_features",
    "prepare_relations",
    "PreparedRelation",
    "l1_normalize",
    "one_hot",
]
