from __future__ import annotations

import concurrent.futures
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from warnings import warn

import numpy as np

from .backends import Target, resolve_backend
from .data import as_dataset
from .errors import RunDataError, SamplerWarning, SamplingError, SensibleMCMCError, ValidationError
from .run import Chain, RunResult

__all__ = ["RunConfig", "run", "chain_rng"]

# Stan-style initialization: uniform on (-2, 2) in unconstrained space.
INIT_RADIUS = 2.0
MAX_INIT_TRIES = 100


def chain_rng(seed: int, chain_index: int) -> np.random.Generator:
    """Independent, reproducible random stream for one chain of a run."""
    return np.random.default_rng(np.random.SeedSequence([int(seed), int(chain_index)]))


@dataclass(frozen=True)
class RunConfig:
    """Run configuration bundle for scripted and command-line use."""

    num_chains: int = 4
    num_iterations: int = 1000
    num_warmup: int = 500
    seed: int = 0
    backend: str = "auto"
    backend_options: Dict[str, Any] = field(default_factory=dict)
    n_jobs: int = 1

    def run(self, spec: Any, dataset: Any) -> RunResult:
        return run(
            spec,
            dataset,
            self.num_chains,
            self.num_iterations,
            self.num_warmup,
            self.seed,
            backend=self.backend,
            backend_options=self.backend_options,
            n_jobs=self.n_jobs,
        )


def run(
    spec: Any,
    dataset: Any,
    num_chains: int = 4,
    num_iterations: int = 1000,
    num_warmup: int = 500,
    seed: int = 0,
    *,
    backend: str = "auto",
    backend_options: Optional[Mapping[str, Any]] = None,
    n_jobs: int = 1,
    inits: Optional[Mapping[str, Any]] = None,
) -> RunResult:
    """Sample num_chains independent Markov chains from spec's posterior given dataset.

    Chain c draws from ``chain_rng(seed, c)`` so identical arguments reproduce
    identical draws whether chains run sequentially or on ``n_jobs`` threads.
    Warm-up draws are kept and flagged. Any chain failure fails the whole run.

    ``inits`` optionally fixes the starting point (constrained values) of every
    chain; otherwise each chain starts uniformly in (-2, 2) on the unconstrained
    scale.
    """
    num_chains = int(num_chains)
    num_iterations = int(num_iterations)
    num_warmup = int(num_warmup)
    if num_chains < 1:
        raise SamplingError(f"num_chains must be >= 1; got {num_chains}.")
    if num_warmup < 0:
        raise SamplingError(f"num_warmup must be >= 0; got {num_warmup}.")
    if num_warmup >= num_iterations:
        raise SamplingError(
            f"num_warmup ({num_warmup}) must be < num_iterations ({num_iterations})."
        )
    if int(n_jobs) < 1:
        raise SamplingError(f"n_jobs must be >= 1; got {n_jobs}.")

    ds = as_dataset(dataset)
    try:
        spec.validate(ds)
    except ValidationError as e:
        raise RunDataError(str(e)) from e

    impl = resolve_backend(backend, has_gradient=spec.has_gradient)
    options = dict(backend_options or {})
    layout = spec.layout(ds)
    target = Target(spec, ds, layout)

    z_init = None
    if inits is not None:
        z_init = layout.unconstrain(inits)
        if not math.isfinite(target.logp(z_init)):
            raise SamplingError("Initial values have non-finite log-density.")

    def _one(c: int) -> Chain:
        rng = chain_rng(seed, c)
        try:
            z0 = z_init.copy() if z_init is not None else _random_init(target, rng, c)
            result = impl.sample(
                target=target,
                z0=z0,
                num_iterations=num_iterations,
                num_warmup=num_warmup,
                rng=rng,
                options=options,
            )
        except SensibleMCMCError:
            raise
        except (ArithmeticError, ValueError) as e:
            raise SamplingError(f"Chain {c}: {impl.name} failed: {e}") from e
        draws = layout.constrain_many(result.draws)
        return Chain(index=c, draws=draws, num_warmup=num_warmup, stats=dict(result.stats))

    if int(n_jobs) == 1 or num_chains == 1:
        chains: List[Chain] = [_one(c) for c in range(num_chains)]
    else:
        workers = min(int(n_jobs), num_chains)
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
            chains = list(ex.map(_one, range(num_chains)))

    _warn_on_sampler_stats(chains)

    return RunResult(
        spec=spec,
        dataset=ds,
        chains=tuple(chains),
        num_iterations=num_iterations,
        num_warmup=num_warmup,
        seed=int(seed),
        backend=impl.name,
        param_shapes=layout.shapes,
    )


def _random_init(target: Target, rng: np.random.Generator, chain_index: int) -> np.ndarray:
    for _ in range(MAX_INIT_TRIES):
        z0 = rng.uniform(-INIT_RADIUS, INIT_RADIUS, size=target.dim)
        if math.isfinite(target.logp(z0)):
            return z0
    raise SamplingError(
        f"Chain {chain_index}: no finite log-density found in {MAX_INIT_TRIES} random "
        "initializations; pass inits=... explicitly."
    )


def _warn_on_sampler_stats(chains: List[Chain]) -> None:
    divergent = [c.index for c in chains if int(c.stats.get("divergences", 0)) > 0]
    if divergent:
        total = sum(int(chains[i].stats["divergences"]) for i in divergent)
        warn(
            f"{total} divergent transitions after warm-up in chains {divergent}; "
            "consider a higher target_accept or a reparameterization.",
            SamplerWarning,
            stacklevel=3,
        )
    stuck = [c.index for c in chains if c.stats.get("accept_rate", 1.0) == 0.0]
    if stuck:
        warn(
            f"Chains {stuck} accepted no proposals after warm-up.",
            SamplerWarning,
            stacklevel=3,
        )
