"""Collective inference over relational networks.

Collective inference repeatedly re-estimates the updatable entities of a
network from the relational features of their neighbors until the
estimates stop moving or the iteration budget is spent. Fixed entities are
read but never written.

Example:
    ```python
    from netlearning.inference import make_inferer

    inferer = make_inferer("ic", maxiter=50, tol=1e-4)
    result = inferer.run(estimates, classifier, learners, adjacencies, update)
    print(f"{result.iterations} iterations, converged={result.converged}")
    ```
"""

from .inferers import (
    COLLECTIVE_INFERERS,
    CollectiveInferer,
    GibbsSamplingInferer,
    InferenceResult,
    IterativeClassificationInferer,
    RelaxationLabelingInferer,
    TargetFn,
    argmax_target,
    extract_targets,
    make_inferer,
    sample_labels,
)

__all__ = [
    # Inferers
    "CollectiveInferer",
    "RelaxationLabelingInferer",
    "IterativeClassificationInferer",
    "GibbsSamplingInferer",
    "COLLECTIVE_INFERERS",
    "InferenceResult",
    "TargetFn",
    # Functions
    "make_inferer",
    "argmax_target",
    "extract_targets",
    "sample_labels",
]
