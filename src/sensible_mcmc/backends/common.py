from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

import numpy as np

from ..transforms import ParameterLayout


@dataclass(frozen=True)
class BackendResult:
    """Normalized result returned by any backend for one chain."""

    draws: np.ndarray  # unconstrained draws, shape (num_iterations, dim)
    stats: Dict[str, Any] = field(default_factory=dict)


class Target:
    """Log-density of a model over the unconstrained vector z.

    Includes the log Jacobian of the bounded-parameter transforms. Read-only:
    one Target may be shared by chains running on different threads.
    """

    def __init__(self, spec: Any, dataset: Mapping[str, Any], layout: ParameterLayout):
        self.spec = spec
        self.dataset = dataset
        self.layout = layout

    @property
    def dim(self) -> int:
        return self.layout.size

    @property
    def has_gradient(self) -> bool:
        return bool(self.spec.has_gradient)

    def logp(self, z: np.ndarray) -> float:
        params, log_jac = self.layout.constrain(z)
        lp = self.spec.log_density(params, self.dataset)
        if not math.isfinite(lp) or not math.isfinite(log_jac):
            return -math.inf
        return lp + log_jac

    def logp_and_grad(self, z: np.ndarray) -> Tuple[float, Optional[np.ndarray]]:
        """Return (logp, gradient); gradient is None where logp is not finite."""
        params, log_jac, parts = self.layout.constrain_with_grad(z)
        lp = self.spec.log_density(params, self.dataset)
        if not math.isfinite(lp) or not math.isfinite(log_jac):
            return -math.inf, None
        grad = self.layout.chain_rule(self.spec.gradient(params, self.dataset), parts)
        if not np.all(np.isfinite(grad)):
            return -math.inf, None
        return lp + log_jac, grad


class Backend(Protocol):
    """Backend protocol: draw one Markov chain from a Target."""

    name: str
    requires_gradient: bool

    def sample(
        self,
        *,
        target: Target,
        z0: np.ndarray,
        num_iterations: int,
        num_warmup: int,
        rng: np.random.Generator,
        options: dict[str, Any],
    ) -> BackendResult: ...


def regularized_variance(samples: np.ndarray) -> np.ndarray:
    """Per-coordinate variance shrunk toward 1e-3, as used for mass/proposal scales."""
    n = samples.shape[0]
    var = np.var(samples, axis=0, ddof=1) if n > 1 else np.ones(samples.shape[1])
    return (n / (n + 5.0)) * var + 1e-3 * (5.0 / (n + 5.0))


def regularized_covariance(samples: np.ndarray) -> np.ndarray:
    n, d = samples.shape
    cov = np.atleast_2d(np.cov(samples, rowvar=False))
    return (n / (n + 5.0)) * cov + 1e-3 * (5.0 / (n + 5.0)) * np.eye(d)


def accept(rng: np.random.Generator, log_ratio: float) -> bool:
    """Metropolis acceptance test; always consumes exactly one uniform."""
    u = float(rng.random())
    if math.isnan(log_ratio):
        return False
    return u < math.exp(min(0.0, log_ratio))
