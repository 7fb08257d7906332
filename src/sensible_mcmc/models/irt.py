"""Hierarchical two-parameter logistic (2PL) item response model.

    theta[j]                 ~ Normal(0, 1)                 person ability
    (log alpha[i], beta[i])  ~ BVN(mu, diag(tau) Omega diag(tau))
    mu[0] ~ Normal(0, 1),  mu[1] ~ Normal(0, 5)
    tau[k] ~ Exponential(0.1)
    Omega = [[1, rho], [rho, 1]] ~ LKJ(4)
    y[n] ~ Bernoulli(logit^-1(alpha[ii[n]] * (theta[jj[n]] - beta[ii[n]])))

alpha is the item discrimination and beta the item difficulty. Responses are
in long format: response n is person jj[n] answering item ii[n] (0-based).
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
from scipy.special import expit

from ..inference import (
    loglike_bernoulli_logit,
    logpdf_bivariate_normal,
    logpdf_exponential,
    logpdf_lkj_corr_2x2,
    logpdf_normal,
)
from ..errors import ValidationError
from ..model import ModelSpec
from ..params import DataField

MU_SCALE = (1.0, 5.0)
TAU_RATE = 0.1
LKJ_ETA = 4.0


def _indices(ii, jj):
    return np.asarray(ii, dtype=np.intp), np.asarray(jj, dtype=np.intp)


def irt_log_density(theta, log_alpha, beta, mu, tau, rho, *, I, J, N, ii, jj, y):
    ii, jj = _indices(ii, jj)
    alpha = np.exp(log_alpha)
    eta = alpha[ii] * (theta[jj] - beta[ii])
    return (
        loglike_bernoulli_logit(y, eta)
        + logpdf_normal(theta, 0.0, 1.0)
        + logpdf_bivariate_normal(log_alpha, beta, mu, tau, rho)
        + logpdf_normal(mu[0], 0.0, MU_SCALE[0])
        + logpdf_normal(mu[1], 0.0, MU_SCALE[1])
        + logpdf_exponential(tau, TAU_RATE)
        + logpdf_lkj_corr_2x2(rho, LKJ_ETA)
    )


def irt_gradient(theta, log_alpha, beta, mu, tau, rho, *, I, J, N, ii, jj, y):
    ii, jj = _indices(ii, jj)
    theta = np.asarray(theta, dtype=float)
    log_alpha = np.asarray(log_alpha, dtype=float)
    beta = np.asarray(beta, dtype=float)
    alpha = np.exp(log_alpha)

    alpha_n = alpha[ii]
    eta = alpha_n * (theta[jj] - beta[ii])
    resid = np.asarray(y, dtype=float) - expit(eta)
    r_alpha = resid * alpha_n

    g_theta = np.bincount(jj, weights=r_alpha, minlength=int(J)) - theta
    g_log_alpha = np.bincount(ii, weights=resid * eta, minlength=int(I))
    g_beta = -np.bincount(ii, weights=r_alpha, minlength=int(I))

    # bivariate normal item prior
    a = (log_alpha - mu[0]) / tau[0]
    b = (beta - mu[1]) / tau[1]
    s = 1.0 - rho * rho
    ga = (a - rho * b) / s
    gb = (b - rho * a) / s
    q = a * a - 2.0 * rho * a * b + b * b
    g_log_alpha = g_log_alpha - ga / tau[0]
    g_beta = g_beta - gb / tau[1]

    g_mu = np.array(
        [
            float(np.sum(ga)) / tau[0] - mu[0] / MU_SCALE[0] ** 2,
            float(np.sum(gb)) / tau[1] - mu[1] / MU_SCALE[1] ** 2,
        ]
    )
    g_tau = np.array(
        [
            float(np.sum(ga * a - 1.0)) / tau[0] - TAU_RATE,
            float(np.sum(gb * b - 1.0)) / tau[1] - TAU_RATE,
        ]
    )
    g_rho = float(np.sum(rho / s + a * b / s - q * rho / (s * s)))
    g_rho -= 2.0 * (LKJ_ETA - 1.0) * rho / s

    return {
        "theta": g_theta,
        "log_alpha": g_log_alpha,
        "beta": g_beta,
        "mu": g_mu,
        "tau": g_tau,
        "rho": g_rho,
    }


def discrimination(draw) -> np.ndarray:
    """Item discriminations alpha = exp(log_alpha)."""
    return np.exp(draw["log_alpha"])


def irt_model(*, name: str = "hierarchical 2PL") -> ModelSpec:
    """Return the hierarchical 2PL ModelSpec with derived quantity 'alpha'."""
    return (
        ModelSpec.from_function(irt_log_density, name=name)
        .data(
            I=DataField.integer(lower=1),
            J=DataField.integer(lower=1),
            N=DataField.integer(lower=1),
            ii=DataField.integer(shape="N", lower=0),
            jj=DataField.integer(shape="N", lower=0),
            y=DataField.integer(shape="N", lower=0, upper=1),
        )
        .shape(theta="J", log_alpha="I", beta="I", mu=2, tau=2)
        .bound(tau=(0.0, None), rho=(-1.0, 1.0))
        .check(check_indices)
        .with_gradient(irt_gradient)
        .derive("alpha", discrimination, doc="Item discrimination exp(log_alpha)")
    )


def check_indices(data) -> None:
    """Item and person indices must address existing items and persons."""
    for idx, count in (("ii", "I"), ("jj", "J")):
        arr = np.asarray(data[idx])
        bad = np.flatnonzero(arr >= int(data[count]))
        if bad.size:
            raise ValidationError(
                f"Data field {idx!r} violates upper bound {count!r} - 1 at index "
                f"{int(bad[0])}: {int(arr[bad[0]])} >= {int(data[count])}."
            )


def simulate(
    I: int = 20,
    J: int = 1000,
    mu: Sequence[float] = (0.0, 0.0),
    tau: Sequence[float] = (0.25, 1.0),
    rho: float = 0.3,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Simulate (data, generating values) for I items answered by J persons."""
    if rng is None:
        rng = np.random.default_rng()
    mu = np.asarray(mu, dtype=float)
    tau = np.asarray(tau, dtype=float)
    omega = np.array([[1.0, rho], [rho, 1.0]])
    cov = np.diag(tau) @ omega @ np.diag(tau)
    xi = rng.multivariate_normal(mu, cov, size=I)
    log_alpha, beta = xi[:, 0], xi[:, 1]
    theta = rng.normal(0.0, 1.0, size=J)

    jj, ii = np.divmod(np.arange(I * J), I)
    eta = np.exp(log_alpha)[ii] * (theta[jj] - beta[ii])
    y = rng.binomial(1, expit(eta))

    data = {"I": int(I), "J": int(J), "N": int(I * J), "ii": ii, "jj": jj, "y": y}
    truth = {
        "theta": theta,
        "log_alpha": log_alpha,
        "beta": beta,
        "mu": mu,
        "tau": tau,
        "rho": float(rho),
        "alpha": np.exp(log_alpha),
    }
    return data, truth
