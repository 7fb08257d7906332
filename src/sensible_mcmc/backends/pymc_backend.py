from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..errors import SamplingError
from .common import BackendResult, Target


class _Evaluator:
    """One-entry cache so the log-density and gradient Ops share an evaluation."""

    def __init__(self, target: Target):
        self.target = target
        self._key: Optional[bytes] = None
        self._value: Tuple[float, np.ndarray] = (-np.inf, np.zeros(target.dim))

    def __call__(self, z: np.ndarray) -> Tuple[float, np.ndarray]:
        z = np.asarray(z, dtype=float)
        key = z.tobytes()
        if key != self._key:
            lp, grad = self.target.logp_and_grad(z)
            if grad is None:
                lp, grad = -np.inf, np.zeros(self.target.dim)
            self._key = key
            self._value = (float(lp), np.asarray(grad, dtype=float))
        return self._value


def _ops(evaluator: _Evaluator):
    """Black-box pytensor Ops: z -> log-density and z -> its gradient."""
    import pytensor.tensor as pt
    from pytensor.graph.basic import Apply
    from pytensor.graph.op import Op

    class GradientOp(Op):
        def make_node(self, z):
            z = pt.as_tensor_variable(z)
            return Apply(self, [z], [pt.dvector()])

        def perform(self, node, inputs, outputs):
            outputs[0][0] = evaluator(inputs[0])[1].copy()

    class LogDensityOp(Op):
        def __init__(self):
            self.grad_op = GradientOp()

        def make_node(self, z):
            z = pt.as_tensor_variable(z)
            return Apply(self, [z], [pt.dscalar()])

        def perform(self, node, inputs, outputs):
            outputs[0][0] = np.asarray(evaluator(inputs[0])[0], dtype=np.float64)

        def grad(self, inputs, output_grads):
            return [output_grads[0] * self.grad_op(inputs[0])]

    return LogDensityOp()


class PyMCBackend:
    name = "nuts"
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
        """No-U-Turn sampling of one chain with PyMC.

        The target enters the PyMC model as a black-box potential on a flat
        unconstrained vector; its gradient comes from the model's gradient
        function. PyMC tunes the step size and a diagonal mass matrix during
        warm-up, which is kept (``discard_tuned_samples=False``) so warm-up
        draws line up with the other backends.

        Backend options:
        - target_accept: NUTS target acceptance (default: 0.85)
        - max_treedepth: NUTS maximum tree depth (default: 10)
        - sample_kwargs: extra keyword arguments for ``pymc.sample``
        """
        import pymc as pm

        backend_options = dict(options or {})
        target_accept = float(backend_options.pop("target_accept", 0.85))
        max_treedepth = int(backend_options.pop("max_treedepth", 10))
        sample_kwargs = dict(backend_options.pop("sample_kwargs", {}) or {})

        d = target.dim
        n_kept = num_iterations - num_warmup
        seed = int(rng.integers(2**31 - 1))
        log_density = _ops(_Evaluator(target))

        with pm.Model():
            z = pm.Flat("z", shape=(d,))
            pm.Potential("log_density", log_density(z))
            try:
                idata = pm.sample(
                    draws=n_kept,
                    tune=num_warmup,
                    chains=1,
                    cores=1,
                    init="adapt_diag",
                    initvals={"z": np.asarray(z0, dtype=float)},
                    random_seed=seed,
                    discard_tuned_samples=False,
                    compute_convergence_checks=False,
                    progressbar=False,
                    nuts={"target_accept": target_accept, "max_treedepth": max_treedepth},
                    **sample_kwargs,
                )
            except pm.exceptions.SamplingError as e:
                raise SamplingError(f"nuts: {e}") from e

        kept = np.asarray(idata.posterior["z"].values[0], dtype=float).reshape(n_kept, d)
        warm = getattr(idata, "warmup_posterior", None)
        if num_warmup:
            warm_draws = np.asarray(warm["z"].values[0], dtype=float).reshape(num_warmup, d)
            draws = np.concatenate([warm_draws, kept], axis=0)
        else:
            draws = kept

        stats: Dict[str, Any] = {"backend": self.name, "seed": seed}
        sample_stats = idata.sample_stats
        stats["divergences"] = int(np.sum(sample_stats["diverging"].values))
        stats["mean_accept_prob"] = float(np.mean(sample_stats["acceptance_rate"].values))
        stats["step_size"] = float(np.asarray(sample_stats["step_size"].values).ravel()[-1])
        stats["mean_tree_depth"] = float(np.mean(sample_stats["tree_depth"].values))
        warm_stats = getattr(idata, "warmup_sample_stats", None)
        if warm_stats is not None:
            stats["divergences_warmup"] = int(np.sum(warm_stats["diverging"].values))
        return BackendResult(draws=draws, stats=stats)
