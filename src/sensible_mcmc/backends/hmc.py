from __future__ import annotations

import math
from typing import Any, List, Optional, Tuple

import numpy as np

from ..errors import SamplingError
from .common import BackendResult, Target, accept, regularized_variance


class _DualAveraging:
    """Nesterov dual averaging of log step size toward a target acceptance."""

    def __init__(self, step_size: float, target_accept: float):
        self.target_accept = target_accept
        self.restart(step_size)

    def restart(self, step_size: float) -> None:
        self.mu = math.log(10.0 * step_size)
        self.h_bar = 0.0
        self.log_step_bar = 0.0
        self.k = 0

    def update(self, accept_prob: float, gamma=0.05, t0=10.0, kappa=0.75) -> float:
        self.k += 1
        eta = 1.0 / (self.k + t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (self.target_accept - accept_prob)
        log_step = self.mu - math.sqrt(self.k) / gamma * self.h_bar
        w = self.k ** (-kappa)
        self.log_step_bar = w * log_step + (1.0 - w) * self.log_step_bar
        return math.exp(log_step)

    @property
    def final_step_size(self) -> float:
        return math.exp(self.log_step_bar)


def _mass_windows(num_warmup: int) -> List[Tuple[int, int]]:
    """Warm-up windows for mass-matrix estimation: [start, stop) pairs."""
    if num_warmup < 20:
        return []
    init = int(0.15 * num_warmup)
    term = int(0.1 * num_warmup)
    mid = num_warmup - init - term
    first = mid // 3
    return [(init, init + first), (init + first, num_warmup - term)]


class HMCBackend:
    name = "hmc"
    requires_gradient = True

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
        """Reference Hamiltonian Monte Carlo kernel with a diagonal mass matrix.

        A small, dependency-free static-trajectory sampler kept for comparison
        and for fast tests; the "nuts" backend (PyMC) is the default gradient
        sampler.

        Warm-up tunes the step size by dual averaging and estimates the inverse
        mass matrix from two consecutive windows of warm-up draws. After
        warm-up the step size is fixed (with uniform jitter) and the number of
        leapfrog steps is constant.

        Backend options:
        - num_steps: leapfrog steps per iteration (default: 16)
        - target_accept: mean acceptance targeted in warm-up (default: 0.85)
        - step_size: initial step size (default: found heuristically)
        - jitter: relative step-size jitter (default: 0.1)
        - max_energy_error: energy error counted as divergence (default: 1000)
        """
        d = target.dim
        num_steps = int(options.get("num_steps", 16))
        target_accept = float(options.get("target_accept", 0.85))
        jitter = float(options.get("jitter", 0.1))
        max_energy_error = float(options.get("max_energy_error", 1000.0))
        if num_steps < 1:
            raise SamplingError(f"hmc: num_steps must be >= 1; got {num_steps}.")

        z = np.array(z0, dtype=float)
        lp, grad = target.logp_and_grad(z)
        if grad is None:
            raise SamplingError("hmc: initial point has non-finite log-density or gradient.")

        inv_mass = np.ones(d, dtype=float)
        step = options.get("step_size")
        if step is None:
            step = self._initial_step(target, z, lp, grad, inv_mass, rng)
        step = float(step)
        adapter = _DualAveraging(step, target_accept)
        windows = _mass_windows(num_warmup)

        draws = np.empty((num_iterations, d), dtype=float)
        n_accept = 0
        divergent = 0
        divergent_warmup = 0
        accept_sum = 0.0

        for t in range(num_iterations):
            eps = step * (1.0 + jitter * (2.0 * float(rng.random()) - 1.0))
            p0 = rng.standard_normal(d) / np.sqrt(inv_mass)
            z_new, lp_new, grad_new, p_new = self._leapfrog(
                target, z, grad, p0, eps, num_steps, inv_mass
            )
            h0 = -lp + 0.5 * float(np.sum(inv_mass * p0 * p0))
            if grad_new is None:
                energy_error = math.inf
            else:
                h1 = -lp_new + 0.5 * float(np.sum(inv_mass * p_new * p_new))
                energy_error = h1 - h0
            is_divergent = not math.isfinite(energy_error) or energy_error > max_energy_error
            log_ratio = -math.inf if is_divergent else -energy_error
            accept_prob = 0.0 if is_divergent else math.exp(min(0.0, log_ratio))

            ok = accept(rng, log_ratio)
            if ok:
                z, lp, grad = z_new, lp_new, grad_new
            draws[t] = z

            if t < num_warmup:
                divergent_warmup += int(is_divergent)
                step = adapter.update(accept_prob)
                for start, stop in windows:
                    if t == stop - 1:
                        inv_mass = regularized_variance(draws[start:stop])
                        step = self._initial_step(target, z, lp, grad, inv_mass, rng)
                        adapter.restart(step)
                if t == num_warmup - 1:
                    step = adapter.final_step_size
            else:
                n_accept += int(ok)
                divergent += int(is_divergent)
                accept_sum += accept_prob

        n_kept = num_iterations - num_warmup
        return BackendResult(
            draws=draws,
            stats={
                "backend": self.name,
                "accept_rate": n_accept / n_kept if n_kept else float("nan"),
                "mean_accept_prob": accept_sum / n_kept if n_kept else float("nan"),
                "step_size": step,
                "num_steps": num_steps,
                "divergences": divergent,
                "divergences_warmup": divergent_warmup,
                "inv_mass": inv_mass,
            },
        )

    @staticmethod
    def _leapfrog(
        target: Target,
        z: np.ndarray,
        grad: np.ndarray,
        p: np.ndarray,
        eps: float,
        num_steps: int,
        inv_mass: np.ndarray,
    ) -> Tuple[np.ndarray, float, Optional[np.ndarray], np.ndarray]:
        z = z.copy()
        p = p + 0.5 * eps * grad
        lp = -math.inf
        g: Optional[np.ndarray] = grad
        for i in range(num_steps):
            z = z + eps * inv_mass * p
            lp, g = target.logp_and_grad(z)
            if g is None:
                return z, -math.inf, None, p
            if i != num_steps - 1:
                p = p + eps * g
        p = p + 0.5 * eps * g
        return z, lp, g, p

    def _initial_step(
        self,
        target: Target,
        z: np.ndarray,
        lp: float,
        grad: np.ndarray,
        inv_mass: np.ndarray,
        rng: np.random.Generator,
    ) -> float:
        """Double or halve a unit step until one-step acceptance crosses 0.5."""
        step = 1.0
        p = rng.standard_normal(z.shape[0]) / np.sqrt(inv_mass)
        h0 = -lp + 0.5 * float(np.sum(inv_mass * p * p))

        def log_accept(eps: float) -> float:
            _, lp1, g1, p1 = self._leapfrog(target, z, grad, p, eps, 1, inv_mass)
            if g1 is None:
                return -math.inf
            h1 = -lp1 + 0.5 * float(np.sum(inv_mass * p1 * p1))
            return h0 - h1 if math.isfinite(h1) else -math.inf

        direction = 1.0 if log_accept(step) > math.log(0.5) else -1.0
        for _ in range(50):
            nxt = step * (2.0 ** direction)
            la = log_accept(nxt)
            crossed = la < math.log(0.5) if direction > 0 else la > math.log(0.5)
            if crossed:
                return step if direction > 0 else nxt
            step = nxt
        return step
