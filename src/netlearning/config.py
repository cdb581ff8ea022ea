"""Configuration management for netlearning."""

from __future__ import annotations

import warnings
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from netlearning.exceptions import InvalidConfigurationError, UnknownSelectorWarning

# Lower bound for clamped (0, 1] constants
EPSILON = 1e-6

DEFAULT_LEARNER = "weighted"
DEFAULT_INFERENCE = "relaxationlabeling"
DEFAULT_TOL = 1e-6
DEFAULT_KAPPA = 1.0
DEFAULT_ALPHA = 0.99
DEFAULT_MAXITER = 100
DEFAULT_BRATIO = 0.1

LEARNER_ALIASES: dict[str, str] = {
    "rn": "simple",
    "simple": "simple",
    "simplern": "simple",
    "wrn": "weighted",
    "wvrn": "weighted",
    "weighted": "weighted",
    "weightedrn": "weighted",
    "cdrn": "classdistribution",
    "classdistribution": "classdistribution",
    "classdistributionrn": "classdistribution",
    "bayesrn": "bayesian",
    "bayes": "bayesian",
    "bayesian": "bayesian",
}

INFERENCE_ALIASES: dict[str, str] = {
    "rl": "relaxationlabeling",
    "relaxationlabeling": "relaxationlabeling",
    "relaxation_labeling": "relaxationlabeling",
    "ic": "iterativeclassification",
    "iterativeclassification": "iterativeclassification",
    "iterative_classification": "iterativeclassification",
    "gs": "gibbssampling",
    "gibbssampling": "gibbssampling",
    "gibbs_sampling": "gibbssampling",
}


def canonical_learner(kind: str) -> str | None:
    """Map a relational learner selector to its canonical name, or None."""
    return LEARNER_ALIASES.get(str(kind).strip().lower())


def canonical_inference(kind: str) -> str | None:
    """Map an inference selector to its canonical name, or None."""
    return INFERENCE_ALIASES.get(str(kind).strip().lower())


def _resolve(
    selector: str,
    kind: str,
    canonical: str | None,
    fallback: str,
    strict: bool,
    logger: Any,
) -> str:
    if canonical is not None:
        return canonical
    error = InvalidConfigurationError(selector, kind, fallback)
    if strict:
        raise error
    warnings.warn(error.message, UnknownSelectorWarning, stacklevel=3)
    if logger is not None:
        logger.warning("unknown_selector", selector=selector, value=str(kind), fallback=fallback)
    return fallback


def resolve_learner(kind: str, strict: bool = False, logger: Any = None) -> str:
    """Canonical relational learner name, falling back to weighted.

    Unknown selectors emit an ``UnknownSelectorWarning`` and an
    ``unknown_selector`` log event, or raise in strict mode.

    Raises:
        InvalidConfigurationError: If ``kind`` is unknown and ``strict`` is set.
    """
    return _resolve("learner", kind, canonical_learner(kind), DEFAULT_LEARNER, strict, logger)


def resolve_inference(kind: str, strict: bool = False, logger: Any = None) -> str:
    """Canonical inference strategy name, falling back to relaxation labeling.

    Raises:
        InvalidConfigurationError: If ``kind`` is unknown and ``strict`` is set.
    """
    return _resolve(
        "inference", kind, canonical_inference(kind), DEFAULT_INFERENCE, strict, logger
    )


class NetworkLearnerConfig(BaseModel):
    """Options recognized by the network learner.

    Numeric hyperparameters are clamped into their admissible range rather
    than rejected. Selectors are stored as given; unknown values are
    resolved to the defaults by the factories, which emit a diagnostic.

    Attributes:
        learner: Relational learner kind.
        inference: Collective inference strategy.
        normalize: L1-normalize relational feature rows.
        priors: Class priors; uniform over the p classes when None.
        obs_axis: Whether entities are the rows or the columns of the
            estimate matrix.
        tol: Mean absolute change at which inference is considered converged.
        kappa: Relaxation labeling starting constant.
        alpha: Relaxation labeling decay constant.
        maxiter: Maximum number of collective inference iterations.
        bratio: Fraction of ``maxiter`` used as Gibbs sampling burn-in.
        seed: Seed for the Gibbs sampler's random generator.
    """

    model_config = ConfigDict(extra="forbid")

    learner: str = Field(default=DEFAULT_LEARNER, description="Relational learner kind")
    inference: str = Field(default=DEFAULT_INFERENCE, description="Collective inference strategy")
    normalize: bool = Field(default=True, description="L1-normalize relational features")
    priors: list[float] | None = Field(default=None, description="Class priors")
    obs_axis: Literal["rows", "columns"] = Field(
        default="rows",
        description="Entities are the rows or the columns of the estimate matrix",
    )
    tol: float = Field(default=DEFAULT_TOL, description="Convergence tolerance")
    kappa: float = Field(default=DEFAULT_KAPPA, description="Relaxation labeling constant")
    alpha: float = Field(default=DEFAULT_ALPHA, description="Relaxation labeling decay")
    maxiter: int = Field(default=DEFAULT_MAXITER, description="Iteration budget")
    bratio: float = Field(default=DEFAULT_BRATIO, description="Gibbs burn-in ratio")
    seed: int | None = Field(default=None, description="Gibbs sampler seed")

    @field_validator("tol", mode="before")
    @classmethod
    def _clamp_tol(cls, v: Any) -> float:
        return max(float(v), 0.0)

    @field_validator("kappa", "alpha", mode="before")
    @classmethod
    def _clamp_unit(cls, v: Any) -> float:
        return min(max(float(v), EPSILON), 1.0)

    @field_validator("maxiter", mode="before")
    @classmethod
    def _clamp_maxiter(cls, v: Any) -> int:
        v = int(v)
        return v if v > 0 else 1

    @field_validator("bratio", mode="before")
    @classmethod
    def _clamp_bratio(cls, v: Any) -> float:
        return min(max(float(v), EPSILON), 1.0 - EPSILON)

    @field_validator("priors", mode="before")
    @classmethod
    def _check_priors(cls, v: Any) -> list[float] | None:
        # accepts numpy vectors as well as sequences
        if v is None:
            return None
        v = [float(x) for x in v]
        if not all(0.0 <= x <= 1.0 for x in v):
            raise ValueError("All priors have to be between 0.0 and 1.0.")
        return v

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> NetworkLearnerConfig:
        """Build a config from environment settings plus explicit overrides."""
        if settings is None:
            settings = get_settings()
        values: dict[str, Any] = {
            "learner": settings.default_learner,
            "inference": settings.default_inference,
            "tol": settings.default_tol,
            "maxiter": settings.default_maxiter,
        }
        values.update(overrides)
        return cls(**values)

    def resolve_priors(self, p: int) -> list[float]:
        """Return the configured priors, or uniform priors over p classes."""
        if self.priors is None:
            return [1.0 / p] * p
        return list(self.priors)


class Settings(BaseSettings):
    """Netlearning settings loaded from environment variables.

    All settings can be overridden via environment variables with
    the NETLEARNING_ prefix. For example:
        NETLEARNING_LOG_LEVEL=DEBUG
        NETLEARNING_DEFAULT_INFERENCE=ic
    """

    model_config = SettingsConfigDict(env_prefix="NETLEARNING_", extra="ignore")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    default_learner: str = Field(default=DEFAULT_LEARNER, description="Default relational learner")
    default_inference: str = Field(
        default=DEFAULT_INFERENCE, description="Default collective inference strategy"
    )
    default_tol: float = Field(default=DEFAULT_TOL, ge=0.0, description="Default tolerance")
    default_maxiter: int = Field(
        default=DEFAULT_MAXITER, ge=1, description="Default iteration budget"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
