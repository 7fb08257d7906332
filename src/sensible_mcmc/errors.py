"""Exception and warning types raised by sensible_mcmc."""

from __future__ import annotations

__all__ = [
    "SensibleMCMCError",
    "SchemaError",
    "ValidationError",
    "SamplingError",
    "InsufficientDataError",
    "KeyMismatchError",
    "RunDataError",
    "ConvergenceWarning",
    "SamplerWarning",
]


class SensibleMCMCError(Exception):
    """Base class for all library errors."""


class SchemaError(SensibleMCMCError, ValueError):
    """Malformed ModelSpec: contradictory bounds or dangling references."""


class ValidationError(SensibleMCMCError, ValueError):
    """Dataset does not satisfy the constraints declared by a ModelSpec."""


class SamplingError(SensibleMCMCError, ValueError):
    """Invalid run configuration or a failure inside the sampler."""


class InsufficientDataError(SensibleMCMCError, ValueError):
    """Too few chains or draws to compute a diagnostic."""


class KeyMismatchError(SensibleMCMCError, ValueError):
    """Generating values do not line up with the parameters of a run."""


class RunDataError(SamplingError, ValidationError):
    """run() was handed a dataset that fails ModelSpec.validate()."""


class ConvergenceWarning(UserWarning):
    """At least one component has R_hat above the convergence threshold."""


class SamplerWarning(UserWarning):
    """The sampler reported divergences or a degenerate acceptance rate."""
