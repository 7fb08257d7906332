"""Log-density building blocks for model definitions.

All functions return summed log densities as python floats and include the
normalizing constants, so models built from them are proper unnormalized
posteriors. Arguments broadcast like numpy.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.special import betaln, gammaln, log_expit, xlog1py, xlogy

_LOG_2PI = math.log(2.0 * math.pi)


def loglike_binomial(k, n, p) -> float:
    """Binomial(n, p) log-likelihood of k successes."""
    k = np.asarray(k, dtype=float)
    n = np.asarray(n, dtype=float)
    p = np.asarray(p, dtype=float)
    log_c = gammaln(n + 1.0) - gammaln(k + 1.0) - gammaln((n - k) + 1.0)
    ll = log_c + xlogy(k, p) + xlog1py(n - k, -p)
    return float(np.sum(ll))


def logpdf_beta(x, a, b) -> float:
    """Beta(a, b) log-density at x."""
    x = np.asarray(x, dtype=float)
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ll = xlogy(a - 1.0, x) + xlog1py(b - 1.0, -x) - betaln(a, b)
    return float(np.sum(ll))


def logpdf_pareto(x, x_min, alpha) -> float:
    """Pareto(x_min, alpha) log-density; -inf below x_min."""
    x = np.asarray(x, dtype=float)
    if np.any(x < x_min):
        return -math.inf
    ll = math.log(alpha) + alpha * math.log(x_min) - (alpha + 1.0) * np.log(x)
    return float(np.sum(ll))


def logpdf_normal(x, mu, sigma) -> float:
    x = np.asarray(x, dtype=float)
    z = (x - mu) / sigma
    ll = -0.5 * z * z - np.log(sigma) - 0.5 * _LOG_2PI
    return float(np.sum(ll))


def logpdf_exponential(x, rate) -> float:
    x = np.asarray(x, dtype=float)
    if np.any(x < 0):
        return -math.inf
    return float(np.sum(math.log(rate) - rate * x))


def loglike_bernoulli_logit(y, eta) -> float:
    """Bernoulli log-likelihood with success log-odds eta."""
    y = np.asarray(y, dtype=float)
    eta = np.asarray(eta, dtype=float)
    ll = y * log_expit(eta) + (1.0 - y) * log_expit(-eta)
    return float(np.sum(ll))


def logpdf_lkj_corr_2x2(rho, eta) -> float:
    """LKJ(eta) log-density of a 2x2 correlation matrix with off-diagonal rho.

    For dimension 2 the LKJ density reduces to Beta(eta, eta) on (rho + 1) / 2,
    i.e. proportional to (1 - rho^2)^(eta - 1).
    """
    rho = float(rho)
    if not -1.0 < rho < 1.0:
        return -math.inf
    log_norm = -betaln(eta, eta) - (2.0 * eta - 1.0) * math.log(2.0)
    return float((eta - 1.0) * math.log1p(-rho * rho) + log_norm)


def logpdf_bivariate_normal(u, v, mu, tau, rho) -> float:
    """Independent rows (u[i], v[i]) ~ BVN(mu, diag(tau) Omega(rho) diag(tau))."""
    u = np.asarray(u, dtype=float)
    v = np.asarray(v, dtype=float)
    s = 1.0 - rho * rho
    if s <= 0.0 or not (tau[0] > 0.0 and tau[1] > 0.0):
        return -math.inf
    a = (u - mu[0]) / tau[0]
    b = (v - mu[1]) / tau[1]
    q = a * a - 2.0 * rho * a * b + b * b
    ll = -_LOG_2PI - np.log(tau[0]) - np.log(tau[1]) - 0.5 * np.log(s) - 0.5 * q / s
    return float(np.sum(ll))
