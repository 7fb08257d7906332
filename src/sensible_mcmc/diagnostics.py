"""Convergence diagnostics across chains: split R-hat and effective sample size."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence
from warnings import warn

import numpy as np
from scipy.fft import next_fast_len

from .errors import ConvergenceWarning, InsufficientDataError

__all__ = [
    "RHAT_THRESHOLD",
    "ParamDiagnostic",
    "DiagnosticReport",
    "diagnose",
    "split_chains",
    "split_rhat",
    "effective_sample_size",
]

RHAT_THRESHOLD = 1.1


@dataclass(frozen=True)
class ParamDiagnostic:
    """Diagnostics for one scalar component (e.g. 'phi' or 'theta[3]')."""

    name: str
    rhat: float
    ess: float
    applicable: bool = True
    threshold: float = RHAT_THRESHOLD

    @property
    def converged(self) -> Optional[bool]:
        """True/False when R-hat is defined; None when not applicable."""
        if not self.applicable:
            return None
        return bool(self.rhat <= self.threshold)

    @property
    def status(self) -> str:
        if not self.applicable:
            return "n/a"
        return "ok" if self.converged else "NOT CONVERGED"


class DiagnosticReport(Mapping[str, ParamDiagnostic]):
    """Read-only mapping component name -> ParamDiagnostic."""

    def __init__(self, items: Sequence[ParamDiagnostic], *, threshold: float = RHAT_THRESHOLD):
        self._items: Dict[str, ParamDiagnostic] = {d.name: d for d in items}
        self.threshold = float(threshold)

    def __getitem__(self, key: str) -> ParamDiagnostic:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, DiagnosticReport):
            return NotImplemented
        if self._items.keys() != other._items.keys() or self.threshold != other.threshold:
            return False
        for k, a in self._items.items():
            b = other._items[k]
            if a.applicable != b.applicable:
                return False
            if not _same_float(a.rhat, b.rhat) or not _same_float(a.ess, b.ess):
                return False
        return True

    __hash__ = None  # type: ignore[assignment]

    def non_converged(self) -> List[str]:
        """Components whose R-hat exceeds the threshold."""
        return [k for k, d in self._items.items() if d.converged is False]

    def not_applicable(self) -> List[str]:
        """Components whose R-hat is undefined (zero variance)."""
        return [k for k, d in self._items.items() if not d.applicable]

    @property
    def converged(self) -> bool:
        return not self.non_converged()

    @property
    def max_rhat(self) -> float:
        vals = [d.rhat for d in self._items.values() if d.applicable]
        return max(vals) if vals else float("nan")

    @property
    def min_ess(self) -> float:
        vals = [d.ess for d in self._items.values() if d.applicable]
        return min(vals) if vals else float("nan")

    def table(self, names: Optional[Sequence[str]] = None) -> str:
        names = list(self._items) if names is None else list(names)
        width = max([len(n) for n in names] + [9])
        lines = [f"{'component':>{width}s} {'R_hat':>8s} {'ESS':>9s}  status"]
        lines.append("-" * len(lines[0]))
        for n in names:
            d = self._items[n]
            rhat = f"{d.rhat:8.3f}" if d.applicable else f"{'n/a':>8s}"
            ess = f"{d.ess:9.1f}" if math.isfinite(d.ess) else f"{'n/a':>9s}"
            lines.append(f"{n:>{width}s} {rhat} {ess}  {d.status}")
        return "\n".join(lines)


def _same_float(a: float, b: float) -> bool:
    return (math.isnan(a) and math.isnan(b)) or a == b


def split_chains(chains: np.ndarray) -> np.ndarray:
    """(m, n) -> (2m, n // 2); drops the middle draw when n is odd."""
    chains = np.asarray(chains, dtype=float)
    n = chains.shape[1]
    half = n // 2
    return np.concatenate([chains[:, :half], chains[:, n - half :]], axis=0)


def _is_constant(x: np.ndarray) -> bool:
    flat = x.ravel()
    return bool(flat.size == 0 or np.all(flat == flat[0]))


def split_rhat(chains: np.ndarray) -> float:
    """Potential scale reduction on split chains.

    With n the half-sequence length, W the mean within-sequence variance and
    B/n the variance of sequence means:
        R_hat = sqrt((n - 1)/n + (B/W)/n)

    NaN when the pooled draws are constant or the halves are too short; inf
    when every sequence is constant but the sequences disagree (stuck chains).
    """
    chains = np.asarray(chains, dtype=float)
    if _is_constant(chains):
        return float("nan")
    seqs = split_chains(chains)
    n = seqs.shape[1]
    if n < 2:
        return float("nan")
    means = seqs.mean(axis=1)
    W = float(np.mean(seqs.var(axis=1, ddof=1)))
    B = float(n * np.var(means, ddof=1))
    scale = max(1.0, float(np.max(np.abs(seqs))))
    if not W > (np.finfo(float).eps * scale) ** 2:
        return math.inf
    return math.sqrt((n - 1.0) / n + (B / W) / n)


def _autocovariance(x: np.ndarray) -> np.ndarray:
    """Biased autocovariance of each row of x (m, n) via FFT."""
    n = x.shape[1]
    xc = x - x.mean(axis=1, keepdims=True)
    nfft = next_fast_len(2 * n)
    f = np.fft.rfft(xc, n=nfft, axis=1)
    acov = np.fft.irfft(f * np.conjugate(f), n=nfft, axis=1)[:, :n]
    return acov / n


def effective_sample_size(chains: np.ndarray) -> float:
    """Multi-chain ESS from the autocorrelation of the combined draws.

    Autocorrelations are combined across chains and truncated with Geyer's
    initial positive and initial monotone sequence rules. NaN when the draws
    have zero variance.
    """
    chains = np.atleast_2d(np.asarray(chains, dtype=float))
    m, n = chains.shape
    if n < 2 or _is_constant(chains):
        return float("nan")

    acov = _autocovariance(chains)
    mean_var = float(np.mean(acov[:, 0])) * n / (n - 1.0)
    var_plus = mean_var * (n - 1.0) / n
    if m > 1:
        var_plus += float(np.var(chains.mean(axis=1), ddof=1))
    if not var_plus > 0.0:
        return float("nan")

    rho = np.zeros(n, dtype=float)
    rho_even = 1.0
    rho[0] = rho_even
    rho_odd = 1.0 - (mean_var - float(np.mean(acov[:, 1]))) / var_plus
    rho[1] = rho_odd

    t = 1
    while t < n - 3 and (rho_even + rho_odd) > 0.0:
        rho_even = 1.0 - (mean_var - float(np.mean(acov[:, t + 1]))) / var_plus
        rho_odd = 1.0 - (mean_var - float(np.mean(acov[:, t + 2]))) / var_plus
        if rho_even + rho_odd >= 0.0:
            rho[t + 1] = rho_even
            rho[t + 2] = rho_odd
        t += 2

    max_t = t - 2
    if rho_even > 0.0:
        rho[max_t + 1] = rho_even

    t = 1
    while t <= max_t - 2:
        if rho[t + 1] + rho[t + 2] > rho[t - 1] + rho[t]:
            rho[t + 1] = (rho[t - 1] + rho[t]) / 2.0
            rho[t + 2] = rho[t + 1]
        t += 2

    total = m * n
    tau = -1.0 + 2.0 * float(np.sum(rho[: max_t + 1])) + float(np.sum(rho[max_t + 1 : max_t + 2]))
    tau = max(tau, 1.0 / math.log10(total))
    return total / tau


def diagnose(
    run_result: Any,
    discard_warmup: bool = True,
    *,
    include_derived: bool = False,
    threshold: float = RHAT_THRESHOLD,
    warn_on_failure: bool = True,
) -> DiagnosticReport:
    """Split R-hat and ESS for every scalar component of every parameter.

    Raises InsufficientDataError with fewer than 2 chains or fewer than 2
    retained draws per chain. Components with zero variance are reported as
    not applicable. Components with R-hat above ``threshold`` are flagged and,
    unless ``warn_on_failure`` is False, announced with a ConvergenceWarning.
    """
    m = run_result.num_chains
    n = run_result.num_iterations - (run_result.num_warmup if discard_warmup else 0)
    if m < 2:
        raise InsufficientDataError(
            f"Convergence diagnostics need at least 2 chains; run has {m}."
        )
    if n < 2:
        raise InsufficientDataError(
            f"Convergence diagnostics need at least 2 retained draws per chain; got {n}."
        )

    names = list(run_result.param_names)
    if include_derived:
        names += list(run_result.derived_names)

    items: List[ParamDiagnostic] = []
    for name in names:
        for label, arr in run_result.component_draws(name, discard_warmup=discard_warmup).items():
            rhat = split_rhat(arr)
            items.append(
                ParamDiagnostic(
                    name=label,
                    rhat=rhat,
                    ess=effective_sample_size(arr),
                    applicable=not math.isnan(rhat),
                    threshold=threshold,
                )
            )

    report = DiagnosticReport(items, threshold=threshold)
    bad = report.non_converged()
    if bad and warn_on_failure:
        shown = ", ".join(bad[:10]) + (f", ... ({len(bad) - 10} more)" if len(bad) > 10 else "")
        warn(
            f"R_hat > {threshold} for {len(bad)} component(s): {shown}.",
            ConvergenceWarning,
            stacklevel=2,
        )
    return report
