"""Hierarchical beta-binomial model of batting ability (partial pooling).

    phi      ~ Uniform(0, 1)           population mean ability
    kappa    ~ Pareto(1, 1.5)          population concentration
    theta[n] ~ Beta(phi * kappa, (1 - phi) * kappa)
    y[n]     ~ Binomial(K[n], theta[n])

Data are Efron & Morris's (1975) hits in the first 45 at-bats of the 1970
season for 18 major-league players.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy.special import digamma

from ..inference import loglike_binomial, logpdf_beta, logpdf_pareto
from ..model import ModelSpec
from ..params import DataField

PLAYERS = (
    "Roberto Clemente",
    "Frank Robinson",
    "Frank Howard",
    "Jay Johnstone",
    "Ken Berry",
    "Jim Spencer",
    "Don Kessinger",
    "Luis Alvarado",
    "Ron Santo",
    "Ron Swoboda",
    "Del Unser",
    "Billy Williams",
    "George Scott",
    "Rico Petrocelli",
    "Ellie Rodriguez",
    "Bert Campaneris",
    "Thurman Munson",
    "Max Alvis",
)

EFRON_MORRIS: Dict[str, Any] = {
    "N": len(PLAYERS),
    "K": np.full(len(PLAYERS), 45, dtype=int),
    "y": np.array([18, 17, 16, 15, 14, 14, 13, 12, 11, 11, 10, 10, 10, 10, 10, 9, 8, 7]),
}

PARETO_MIN = 1.0
PARETO_SHAPE = 1.5


def batting_log_density(phi, kappa, theta, *, N, K, y):
    a = phi * kappa
    b = (1.0 - phi) * kappa
    return (
        logpdf_pareto(kappa, PARETO_MIN, PARETO_SHAPE)
        + logpdf_beta(theta, a, b)
        + loglike_binomial(y, K, theta)
    )


def batting_gradient(phi, kappa, theta, *, N, K, y):
    theta = np.asarray(theta, dtype=float)
    K = np.asarray(K, dtype=float)
    y = np.asarray(y, dtype=float)
    a = phi * kappa
    b = (1.0 - phi) * kappa
    log_t = np.log(theta)
    log_1mt = np.log1p(-theta)
    dig_a = digamma(a)
    dig_b = digamma(b)
    return {
        "phi": kappa * float(np.sum(log_t - log_1mt - dig_a + dig_b)),
        "kappa": float(
            np.sum(phi * log_t + (1.0 - phi) * log_1mt - phi * dig_a - (1.0 - phi) * dig_b)
            + theta.size * digamma(kappa)
        )
        - (PARETO_SHAPE + 1.0) / kappa,
        "theta": (a - 1.0 + y) / theta - (b - 1.0 + K - y) / (1.0 - theta),
    }


def some_ability_gt_350(draw) -> float:
    """1.0 if any player's ability exceeds .350 in this draw."""
    return float(np.max(draw["theta"]) > 0.35)


def batting_model(*, name: str = "batting") -> ModelSpec:
    """Return the partial-pooling batting ModelSpec."""
    return (
        ModelSpec.from_function(batting_log_density, name=name)
        .data(
            N=DataField.integer(lower=1),
            K=DataField.integer(shape="N", lower=0),
            y=DataField.integer(shape="N", lower=0, upper="K"),
        )
        .bound(phi=(0.0, 1.0), kappa=(PARETO_MIN, None), theta=(0.0, 1.0))
        .shape(theta="N")
        .with_gradient(batting_gradient)
        .derive(
            "some_ability_gt_350",
            some_ability_gt_350,
            doc="Posterior probability that some player's ability exceeds .350",
        )
    )


def simulate(
    N: int = 18,
    K: int = 45,
    phi: float = 0.270,
    kappa: float = 50.0,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Simulate (data, generating values) for N players with K at-bats each."""
    if rng is None:
        rng = np.random.default_rng()
    theta = rng.beta(phi * kappa, (1.0 - phi) * kappa, size=N)
    at_bats = np.full(N, int(K), dtype=int)
    hits = rng.binomial(at_bats, theta)
    data = {"N": int(N), "K": at_bats, "y": hits}
    truth = {"phi": float(phi), "kappa": float(kappa), "theta": theta}
    return data, truth
