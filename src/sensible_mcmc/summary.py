from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import uncertainties

from .errors import KeyMismatchError
from .util import component_names, uncertainty_to_string

__all__ = ["ParamSummary", "ComparisonReport", "summarize", "credible_interval"]


@dataclass(frozen=True)
class ParamSummary:
    """Posterior summary of one scalar component, optionally against its true value."""

    name: str
    mean: float
    sd: float
    lower: float
    upper: float
    prob: float = 0.95
    generating: Optional[float] = None
    derived: bool = False

    @property
    def discrepancy(self) -> Optional[float]:
        if self.generating is None:
            return None
        return self.mean - self.generating

    @property
    def discrepancy_interval(self) -> Optional[Tuple[float, float]]:
        if self.generating is None:
            return None
        return (self.lower - self.generating, self.upper - self.generating)

    @property
    def covers(self) -> Optional[bool]:
        """True if the discrepancy interval contains zero (successful recovery)."""
        di = self.discrepancy_interval
        if di is None:
            return None
        return bool(di[0] <= 0.0 <= di[1])

    @property
    def u(self):
        """Posterior mean ± sd as an uncertainties.ufloat."""
        return uncertainties.ufloat(self.mean, self.sd, tag=self.name)

    def __getitem__(self, key: str) -> Any:
        if key in ("mean", "sd", "lower", "upper", "prob", "generating", "derived"):
            return getattr(self, key)
        if key in ("discrepancy", "covers"):
            return getattr(self, key)
        raise KeyError(key)


def credible_interval(draws: np.ndarray, prob: float = 0.95) -> Tuple[np.ndarray, np.ndarray]:
    """Central interval of draws along axis 0 (linear interpolation of order statistics)."""
    if not 0.0 < prob < 1.0:
        raise ValueError(f"prob must be in (0, 1); got {prob}.")
    tail = 0.5 * (1.0 - prob)
    q = np.quantile(np.asarray(draws, dtype=float), [tail, 1.0 - tail], axis=0, method="linear")
    return q[0], q[1]


class ComparisonReport(Mapping[str, ParamSummary]):
    """Read-only mapping component name -> ParamSummary."""

    def __init__(
        self,
        items: Sequence[ParamSummary],
        *,
        shapes: Mapping[str, Tuple[int, ...]],
        prob: float = 0.95,
    ):
        self._items: Dict[str, ParamSummary] = {s.name: s for s in items}
        self._shapes = dict(shapes)
        self.prob = float(prob)

    def __getitem__(self, key: str) -> ParamSummary:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def names(self) -> Tuple[str, ...]:
        """Parameter (and derived) names covered by this report."""
        return tuple(self._shapes.keys())

    def components(self, name: str) -> List[ParamSummary]:
        """All component summaries of a parameter, in row-major order."""
        if name not in self._shapes:
            raise KeyError(name)
        return [self._items[c] for c in component_names(name, self._shapes[name])]

    def array(self, name: str, attr: str = "mean") -> np.ndarray:
        """One attribute of every component of name, shaped like the parameter."""
        vals = [np.nan if s[attr] is None else float(s[attr]) for s in self.components(name)]
        return np.asarray(vals, dtype=float).reshape(self._shapes[name])

    def recovered(self, name: Optional[str] = None) -> List[str]:
        """Components whose discrepancy interval covers zero."""
        items = self._items.values() if name is None else self.components(name)
        return [s.name for s in items if s.covers]

    def coverage(self, name: Optional[str] = None) -> float:
        """Fraction of compared components (optionally of one parameter) that cover."""
        items = list(self._items.values()) if name is None else self.components(name)
        compared = [s for s in items if s.generating is not None]
        if not compared:
            return float("nan")
        return sum(1 for s in compared if s.covers) / len(compared)

    def table(self, names: Optional[Sequence[str]] = None, digits: int | str = "auto") -> str:
        names = list(self._items) if names is None else list(names)
        width = max([len(n) for n in names] + [9])
        pct = f"{100 * self.prob:g}%"
        compare = any(self._items[n].generating is not None for n in names)
        head = f"{'component':>{width}s} {'mean(sd)':>14s} {pct + ' interval':>24s}"
        if compare:
            head += f" {'true':>10s} {'discrepancy':>12s}  covers"
        lines = [head, "-" * len(head)]
        for n in names:
            s = self._items[n]
            ms = uncertainty_to_string(s.mean, s.sd, precision=digits)
            iv = f"[{s.lower:.4g}, {s.upper:.4g}]"
            row = f"{n:>{width}s} {ms:>14s} {iv:>24s}"
            if compare:
                if s.generating is None:
                    row += f" {'-':>10s} {'-':>12s}  -"
                else:
                    row += f" {s.generating:10.4g} {s.discrepancy:12.4g}  {'yes' if s.covers else 'NO'}"
            lines.append(row)
        return "\n".join(lines)


def summarize(
    run_result: Any,
    generating_values: Optional[Mapping[str, Any]] = None,
    *,
    prob: float = 0.95,
    include_derived: bool = False,
    required: Optional[Sequence[str]] = None,
) -> ComparisonReport:
    """Posterior mean, sd and central credible interval of pooled post-warm-up draws.

    With ``generating_values`` (simulation-study mode) every component also
    gets ``discrepancy = mean - generating`` and a ``covers`` flag telling
    whether the interval shifted by the generating value contains zero.

    Raises KeyMismatchError when a generating value names something the run
    does not have, has the wrong shape, or when a required parameter (all
    parameters unless ``required`` narrows them) has no generating value.
    """
    names = list(run_result.param_names)
    derived = list(run_result.derived_names)
    gen = dict(generating_values) if generating_values is not None else None

    if gen is not None:
        unknown = [k for k in gen if not run_result.has(k)]
        if unknown:
            raise KeyMismatchError(
                f"Generating values for unknown names {unknown}; run has parameters "
                f"{tuple(names)} and derived quantities {tuple(derived)}."
            )
        need = names if required is None else list(required)
        bad_required = [k for k in need if not run_result.has(k)]
        if bad_required:
            raise KeyMismatchError(f"Required names {bad_required} are not in the run.")
        missing = [k for k in need if k not in gen]
        if missing:
            raise KeyMismatchError(f"Missing generating values for parameters {missing}.")

    summarized = list(names)
    if include_derived:
        summarized += derived
    elif gen is not None:
        summarized += [d for d in derived if d in gen]

    items: List[ParamSummary] = []
    shapes: Dict[str, Tuple[int, ...]] = {}
    for name in summarized:
        pooled = run_result.pooled(name)
        shape = tuple(pooled.shape[1:])
        shapes[name] = shape
        truth = None
        if gen is not None and name in gen:
            truth = np.asarray(gen[name], dtype=float)
            if truth.shape != shape:
                raise KeyMismatchError(
                    f"Generating value for {name!r} has shape {truth.shape}; expected {shape}."
                )
            truth = truth.reshape(-1)

        flat = pooled.reshape((pooled.shape[0], -1))
        mean = flat.mean(axis=0)
        sd = flat.std(axis=0, ddof=1) if flat.shape[0] > 1 else np.full(flat.shape[1], math.nan)
        lo, hi = credible_interval(flat, prob)
        for j, label in enumerate(component_names(name, shape)):
            items.append(
                ParamSummary(
                    name=label,
                    mean=float(mean[j]),
                    sd=float(sd[j]),
                    lower=float(lo[j]),
                    upper=float(hi[j]),
                    prob=float(prob),
                    generating=None if truth is None else float(truth[j]),
                    derived=name in derived,
                )
            )
    return ComparisonReport(items, shapes=shapes, prob=prob)
