from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from .runner import run
from .summary import ComparisonReport, summarize

__all__ = ["CoverageResult", "coverage_study"]

Simulator = Callable[..., Tuple[Mapping[str, Any], Mapping[str, Any]]]


@dataclass(frozen=True)
class CoverageResult:
    """Outcome of a repeated simulate -> run -> summarize study."""

    name: str
    prob: float
    covered: Tuple[bool, ...]
    reports: Tuple[ComparisonReport, ...]

    @property
    def n_replications(self) -> int:
        return len(self.covered)

    @property
    def coverage(self) -> float:
        """Fraction of replications whose interval contains the generating value."""
        if not self.covered:
            return float("nan")
        return sum(self.covered) / len(self.covered)


def coverage_study(
    spec: Any,
    simulate: Simulator,
    n_replications: int,
    name: str,
    *,
    seed: int = 0,
    prob: float = 0.95,
    run_options: Optional[Mapping[str, Any]] = None,
) -> CoverageResult:
    """Estimate interval coverage for one scalar component by simulation.

    Each replication r draws a fresh dataset with ``simulate(rng=...)`` from a
    stream seeded by (seed, r), samples its posterior with run seed ``seed + r``
    and records whether the central ``prob`` interval for ``name`` (e.g.
    ``"phi"`` or ``"theta[0]"``) covers the generating value. A calibrated
    model covers about ``prob`` of the time.
    """
    if int(n_replications) < 1:
        raise ValueError(f"n_replications must be >= 1; got {n_replications}.")
    options: Dict[str, Any] = {"num_chains": 4, "num_iterations": 1000, "num_warmup": 500}
    options.update(run_options or {})

    covered = []
    reports = []
    for r in range(int(n_replications)):
        rng = np.random.default_rng(np.random.SeedSequence([int(seed), r]))
        data, truth = simulate(rng=rng)
        result = run(spec, data, seed=int(seed) + r, **options)
        report = summarize(
            result,
            {k: v for k, v in truth.items() if result.has(k)},
            prob=prob,
        )
        if name not in report:
            raise KeyError(f"{name!r} is not a component of {spec.name!r}.")
        covered.append(bool(report[name].covers))
        reports.append(report)
    return CoverageResult(
        name=name, prob=float(prob), covered=tuple(covered), reports=tuple(reports)
    )
