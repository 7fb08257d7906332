from __future__ import annotations

import math
from typing import Any

import numpy as np

from ..errors import SamplingError
from .common import BackendResult, Target, accept, regularized_covariance, regularized_variance


class MetropolisBackend:
    name = "metropolis"
    requires_gradient = False

    def sample(
        self,
        *,
        target: Target,
        z0: np.ndarray,
        num_iterations: int,
        num_warmup: int,
        rng: np.random.Generator,
        options: dict[str, Any],
    ) -> BackendResult:
        """Random-walk Metropolis in unconstrained space.

        Warm-up adapts the proposal scale by Robbins-Monro toward a target
        acceptance rate and re-estimates the proposal covariance from warm-up
        draws at the midpoint and three-quarter point of warm-up. The kernel is
        frozen after warm-up, so retained draws form a time-homogeneous chain.

        Backend options:
        - target_accept: acceptance rate targeted during warm-up (default: 0.234)
        - initial_scale: proposal scale multiplier (default: 2.38 / sqrt(dim))
        - adapt_covariance: learn a full covariance (default: True when dim <= 200,
          otherwise a diagonal one)
        """
        d = target.dim
        target_accept = float(options.get("target_accept", 0.234))
        scale0 = float(options.get("initial_scale", 2.38 / math.sqrt(max(d, 1))))
        full_cov = bool(options.get("adapt_covariance", d <= 200))

        z = np.array(z0, dtype=float)
        lp = target.logp(z)
        if not math.isfinite(lp):
            raise SamplingError("metropolis: initial point has non-finite log-density.")

        log_scale = math.log(scale0)
        chol = np.eye(d)
        cov_start = num_warmup // 4
        updates = {num_warmup // 2, (3 * num_warmup) // 4}

        draws = np.empty((num_iterations, d), dtype=float)
        n_accept = 0
        n_accept_warmup = 0

        for t in range(num_iterations):
            if t < num_warmup and t in updates and t - cov_start > 1:
                window = draws[cov_start:t]
                if full_cov:
                    chol = np.linalg.cholesky(regularized_covariance(window))
                else:
                    chol = np.diag(np.sqrt(regularized_variance(window)))
                log_scale = math.log(scale0)

            step = math.exp(log_scale) * (chol @ rng.standard_normal(d))
            z_prop = z + step
            lp_prop = target.logp(z_prop)
            log_ratio = lp_prop - lp if math.isfinite(lp_prop) else -math.inf
            ok = accept(rng, log_ratio)
            if ok:
                z = z_prop
                lp = lp_prop

            if t < num_warmup:
                n_accept_warmup += int(ok)
                alpha = math.exp(min(0.0, log_ratio)) if math.isfinite(log_ratio) else 0.0
                log_scale += (alpha - target_accept) / (t + 1.0) ** 0.6
            else:
                n_accept += int(ok)
            draws[t] = z

        n_kept = num_iterations - num_warmup
        return BackendResult(
            draws=draws,
            stats={
                "backend": self.name,
                "accept_rate": n_accept / n_kept if n_kept else float("nan"),
                "accept_rate_warmup": n_accept_warmup / num_warmup if num_warmup else float("nan"),
                "scale": math.exp(log_scale),
            },
        )
