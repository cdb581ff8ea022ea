"""Unit tests for the collective inference strategies."""

from __future__ import annotations

import numpy as np
import pytest

from netlearning.adjacency import Adjacency
from netlearning.classifier import RelationalClassifier
from netlearning.exceptions import ShapeMismatchError, UnknownSelectorWarning
from netlearning.inference import (
    GibbsSamplingInferer,
    InferenceResult,
    IterativeClassificationInferer,
    RelaxationLabelingInferer,
    argmax_target,
    extract_targets,
    make_inferer,
    sample_labels,
)
from netlearning.relational import SimpleRN, WeightedRN

PRIORS = np.array([0.5, 0.5])


def constant_classifier(row: list[float]) -> RelationalClassifier:
    """Classifier predicting the same estimate for every entity."""
    return RelationalClassifier(
        train_fn=lambda features, targets: None,
        predict_fn=lambda model, features: np.tile(row, (features.shape[0], 1)),
    )


def echo_classifier(block_mean) -> RelationalClassifier:
    return RelationalClassifier(
        train_fn=block_mean.train, predict_fn=block_mean.predict, model={"p": 2}
    )


@pytest.fixture
def pair() -> Adjacency:
    return Adjacency.from_edges(2, [(0, 1)])


class TestTargets:
    """Tests for label extraction and sampling helpers."""

    def test_argmax_target(self):
        assert argmax_target(np.array([0.1, 0.7, 0.2])) == 1

    def test_extract_targets_default(self):
        estimates = np.array([[0.9, 0.1], [0.2, 0.8]])
        assert extract_targets(argmax_target, estimates).tolist() == [0, 1]

    def test_extract_targets_custom(self):
        estimates = np.array([[0.9, 0.1], [0.2, 0.8]])
        always_last = lambda row: len(row) - 1  # noqa: E731
        assert extract_targets(always_last, estimates).tolist() == [1, 1]

    def test_sample_labels_deterministic_rows(self):
        rng = np.random.default_rng(0)
        probabilities = np.array([[0.0, 1.0], [1.0, 0.0], [0.0, 0.0]])
        labels = sample_labels(probabilities, rng)
        assert labels[:2].tolist() == [1, 0]
        assert 0 <= labels[2] < 2

    def test_sample_labels_seeded(self):
        probabilities = np.full((20, 3), 1.0 / 3.0)
        first = sample_labels(probabilities, np.random.default_rng(7))
        second = sample_labels(probabilities, np.random.default_rng(7))
        assert first.tolist() == second.tolist()

    def test_sample_labels_ignores_negative_scores(self):
        rng = np.random.default_rng(1)
        labels = sample_labels(np.array([[-5.0, 0.5]] * 10), rng)
        assert set(labels.tolist()) == {1}


class TestInferenceResult:
    """Tests for the InferenceResult model."""

    def test_defaults(self):
        result = InferenceResult()
        assert result.iterations == 0
        assert result.converged is False
        assert result.final_delta == 0.0
        assert result.samples == 0

    def test_model_dump(self):
        result = InferenceResult(iterations=3, converged=True, final_delta=1e-7)
        assert result.model_dump()["iterations"] == 3


class TestMakeInferer:
    """Tests for the inferer factory."""

    @pytest.mark.parametrize(
        ("kind", "cls"),
        [
            ("rl", RelaxationLabelingInferer),
            ("relaxationlabeling", RelaxationLabelingInferer),
            ("ic", IterativeClassificationInferer),
            ("gs", GibbsSamplingInferer),
        ],
    )
    def test_known_kinds(self, kind, cls):
        assert type(make_inferer(kind)) is cls

    def test_unknown_falls_back_to_relaxation_labeling(self):
        with pytest.warns(UnknownSelectorWarning):
            assert type(make_inferer("annealing")) is RelaxationLabelingInferer

    def test_hyperparameters_forwarded(self):
        inferer = make_inferer("rl", maxiter=7, tol=0.5, kappa=0.4, alpha=0.9)
        assert inferer.maxiter == 7
        assert inferer.tol == 0.5
        assert inferer.kappa == 0.4
        assert inferer.alpha == 0.9

    def test_burnin_from_ratio(self):
        inferer = make_inferer("gs", maxiter=25, bratio=0.1)
        assert inferer.burnin == 3

    def test_budget_clamped(self):
        inferer = make_inferer("ic", maxiter=0, tol=-1.0)
        assert inferer.maxiter == 1
        assert inferer.tol == 0.0


class TestRun:
    """Tests shared by every strategy."""

    @pytest.mark.parametrize("kind", ["rl", "ic", "gs"])
    def test_fixed_rows_unchanged(
        self, kind, square_graph, square_estimates, square_update, block_mean
    ):
        learner = WeightedRN(PRIORS)
        before = square_estimates.copy()
        make_inferer(kind, maxiter=20, seed=0).run(
            square_estimates,
            echo_classifier(block_mean),
            [learner],
            [square_graph],
            square_update,
        )
        np.testing.assert_array_equal(square_estimates[:2], before[:2])

    def test_nothing_to_update(self, square_graph, square_estimates, block_mean):
        before = square_estimates.copy()
        result = make_inferer("ic").run(
            square_estimates,
            echo_classifier(block_mean),
            [WeightedRN(PRIORS)],
            [square_graph],
            np.zeros(4, dtype=bool),
        )
        assert result.converged is True
        assert result.iterations == 0
        assert block_mean.predict_calls == 0
        np.testing.assert_array_equal(square_estimates, before)

    def test_mask_length_checked(self, square_graph, square_estimates, block_mean):
        with pytest.raises(ShapeMismatchError):
            make_inferer("ic").run(
                square_estimates,
                echo_classifier(block_mean),
                [WeightedRN(PRIORS)],
                [square_graph],
                np.array([True, False]),
            )

    def test_adjacency_size_checked(self, square_estimates, square_update, block_mean):
        with pytest.raises(ShapeMismatchError):
            make_inferer("rl").run(
                square_estimates,
                echo_classifier(block_mean),
                [WeightedRN(PRIORS)],
                [Adjacency.from_edges(3, [(0, 1)])],
                square_update,
            )

    def test_finished_event_logged(
        self, square_graph, square_estimates, square_update, block_mean, recording_logger
    ):
        make_inferer("ic").run(
            square_estimates,
            echo_classifier(block_mean),
            [WeightedRN(PRIORS)],
            [square_graph],
            square_update,
            logger=recording_logger,
        )
        names = recording_logger.names()
        assert "collective_inference_iteration" in names
        assert names[-1] == "collective_inference_finished"
        _, _, fields = recording_logger.events[-1]
        assert fields["inferer"] == "iterativeclassification"
        assert fields["entities"] == 2

    def test_relations_prepared_once_per_pass(
        self, monkeypatch, square_graph, square_estimates, square_update, block_mean
    ):
        binarized = []
        original = Adjacency.binarized

        def counting(adjacency):
            binarized.append(adjacency)
            return original(adjacency)

        monkeypatch.setattr(Adjacency, "binarized", counting)
        result = IterativeClassificationInferer(maxiter=10, tol=0.0).run(
            square_estimates,
            echo_classifier(block_mean),
            [SimpleRN(PRIORS)],
            [square_graph],
            square_update,
        )
        assert result.iterations == 10
        assert len(binarized) == 1

    def test_feature_buffer_reused(self, square_graph, square_estimates, square_update):
        seen = []

        def predict(model, features):
            seen.append(features)
            return features.copy()

        classifier = RelationalClassifier(train_fn=lambda X, y: None, predict_fn=predict)
        IterativeClassificationInferer(maxiter=4, tol=0.0).run(
            square_estimates, classifier, [WeightedRN(PRIORS)], [square_graph], square_update
        )
        assert len(seen) == 4
        assert all(features is seen[0] for features in seen)


class TestRelaxationLabeling:
    """Tests for the damped strategy."""

    def test_damping_decays_before_first_update(self, pair):
        estimates = np.array([[1.0, 0.0], [0.0, 1.0]])
        inferer = RelaxationLabelingInferer(maxiter=1, kappa=0.5, alpha=0.5)
        result = inferer.run(
            estimates,
            constant_classifier([1.0, 0.0]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        np.testing.assert_allclose(estimates[1], [0.25, 0.75])
        assert result.iterations == 1
        assert result.final_delta == pytest.approx(0.25)

    def test_converges_to_constant_prediction(self, pair):
        estimates = np.array([[1.0, 0.0], [0.0, 1.0]])
        result = RelaxationLabelingInferer(maxiter=100).run(
            estimates,
            constant_classifier([1.0, 0.0]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        assert result.converged is True
        assert result.iterations < 100
        np.testing.assert_allclose(estimates[1], [1.0, 0.0], atol=1e-5)

    def test_budget_exhausted_without_convergence(self, pair):
        estimates = np.array([[1.0, 0.0], [0.0, 1.0]])
        result = RelaxationLabelingInferer(maxiter=2, tol=0.0, kappa=0.1, alpha=1.0).run(
            estimates,
            constant_classifier([1.0, 0.0]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        assert result.iterations == 2
        assert result.converged is False


class TestIterativeClassification:
    """Tests for the undamped strategy."""

    def test_replaces_estimates(self, pair):
        estimates = np.array([[1.0, 0.0], [0.0, 1.0]])
        IterativeClassificationInferer(maxiter=1).run(
            estimates,
            constant_classifier([0.8, 0.2]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        np.testing.assert_allclose(estimates[1], [0.8, 0.2])

    def test_stops_once_stable(self, pair):
        estimates = np.array([[1.0, 0.0], [0.0, 1.0]])
        result = IterativeClassificationInferer(maxiter=50).run(
            estimates,
            constant_classifier([0.8, 0.2]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        assert result.converged is True
        assert result.iterations == 2
        assert result.final_delta == 0.0


class TestGibbsSampling:
    """Tests for the sampling strategy."""

    def test_burnin_covering_budget_leaves_estimates(self, pair):
        estimates = np.array([[1.0, 0.0], [0.3, 0.7]])
        result = GibbsSamplingInferer(maxiter=5, burnin=5, seed=0).run(
            estimates,
            constant_classifier([1.0, 0.0]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        np.testing.assert_array_equal(estimates[1], [0.3, 0.7])
        assert result.samples == 0
        assert result.iterations == 5

    def test_certain_prediction_is_sampled(self, pair):
        estimates = np.array([[1.0, 0.0], [0.3, 0.7]])
        result = GibbsSamplingInferer(maxiter=10, burnin=1, seed=0).run(
            estimates,
            constant_classifier([0.0, 1.0]),
            [WeightedRN(PRIORS)],
            [pair],
            np.array([False, True]),
        )
        np.testing.assert_array_equal(estimates[1], [0.0, 1.0])
        # first sample moves the estimate, the second confirms it
        assert result.samples == 2
        assert result.converged is True

    def test_seeded_runs_match(self, square_graph, square_estimates, square_update, block_mean):
        first = square_estimates.copy()
        second = square_estimates.copy()
        for estimates in (first, second):
            GibbsSamplingInferer(maxiter=30, burnin=3, seed=11).run(
                estimates,
                echo_classifier(block_mean),
                [WeightedRN(PRIORS)],
                [square_graph],
                square_update,
            )
        np.testing.assert_array_equal(first, second)
        np.testing.assert_allclose(first.sum(axis=1), 1.0)

    def test_from_ratio(self):
        inferer = GibbsSamplingInferer.from_ratio(maxiter=10, bratio=1.0)
        assert inferer.burnin == 10
        inferer = GibbsSamplingInferer.from_ratio(maxiter=10, bratio=0.0)
        assert inferer.burnin == 1
