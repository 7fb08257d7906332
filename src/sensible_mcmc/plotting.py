from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from .diagnostics import RHAT_THRESHOLD


def _axes(ax: Optional[Any], **subplots_kwargs: Any) -> Tuple[Any, Any]:
    import matplotlib.pyplot as plt

    if ax is None:
        fig, ax = plt.subplots(**subplots_kwargs)
    else:
        fig = ax.figure
    return fig, ax


def plot_trace(
    run_result: Any,
    name: str,
    *,
    ax: Optional[Any] = None,
    warmup: bool = True,
    line_kwargs: Optional[Mapping[str, Any]] = None,
) -> Tuple[Any, Any]:
    """Per-chain trace of one scalar component (e.g. 'phi' or 'theta[2]').

    Warm-up iterations are shaded when ``warmup`` is True and omitted otherwise.
    """
    base = name.split("[", 1)[0]
    if not run_result.has(base):
        raise KeyError(f"{base!r} is not a parameter or derived quantity of this run.")
    comps = run_result.component_draws(base, discard_warmup=not warmup)
    if name not in comps:
        raise KeyError(f"{name!r} is not a component of {base!r}; have {list(comps)[:5]}...")
    arr = comps[name]

    fig, ax = _axes(ax)
    line_kwargs = dict(line_kwargs or {})
    line_kwargs.setdefault("lw", 0.6)
    start = 0 if warmup else run_result.num_warmup
    it = np.arange(start, start + arr.shape[1])
    for c in range(arr.shape[0]):
        ax.plot(it, arr[c], label=f"chain {c}", **line_kwargs)
    if warmup and run_result.num_warmup > 0:
        ax.axvspan(0, run_result.num_warmup, color="0.85", zorder=0, label="warm-up")
    ax.set_xlabel("iteration")
    ax.set_ylabel(name)
    ax.legend(loc="best", fontsize="small")
    return fig, ax


def plot_rhat(
    report: Any,
    *,
    ax: Optional[Any] = None,
    names: Optional[Sequence[str]] = None,
) -> Tuple[Any, Any]:
    """R_hat per component with the convergence threshold marked.

    Not-applicable components are drawn as hollow markers at 1.0.
    """
    names = list(report) if names is None else list(names)
    fig, ax = _axes(ax, figsize=(max(4.0, 0.25 * len(names)), 3.0))
    x = np.arange(len(names))
    rhat = np.array([report[n].rhat for n in names], dtype=float)
    threshold = getattr(report, "threshold", RHAT_THRESHOLD)
    ok = np.array([report[n].applicable for n in names], dtype=bool)
    bad = ok & (rhat > threshold)
    finite = rhat[ok & np.isfinite(rhat)]
    # stuck chains (inf) are drawn at the top of the axis
    top = max(2.0 * threshold, float(finite.max()) if finite.size else 0.0)
    rhat = np.where(np.isinf(rhat), top, rhat)

    ax.plot(x[ok & ~bad], rhat[ok & ~bad], "o", color="C0", label="converged")
    if np.any(bad):
        ax.plot(x[bad], rhat[bad], "o", color="C3", label="not converged")
    if np.any(~ok):
        ax.plot(x[~ok], np.ones(np.sum(~ok)), "o", mfc="none", color="0.5", label="n/a")
    ax.axhline(threshold, color="C3", ls="--", lw=1)
    ax.axhline(1.0, color="0.5", lw=0.5)
    ax.set_xticks(x)
    ax.set_xticklabels(names, rotation=90, fontsize="small")
    ax.set_ylabel(r"$\hat{R}$")
    ax.legend(loc="best", fontsize="small")
    return fig, ax


def plot_recovery(
    report: Any,
    *,
    ax: Optional[Any] = None,
    names: Optional[Sequence[str]] = None,
) -> Tuple[Any, Any]:
    """Discrepancy intervals (interval minus generating value) against zero.

    Only components with a generating value are drawn; intervals that miss
    zero are highlighted.
    """
    names = list(report) if names is None else list(names)
    names = [n for n in names if report[n].generating is not None]
    if not names:
        raise ValueError("plot_recovery needs a report made with generating values.")

    fig, ax = _axes(ax, figsize=(4.0, max(3.0, 0.22 * len(names))))
    y = np.arange(len(names))
    for i, n in enumerate(names):
        s = report[n]
        lo, hi = s.discrepancy_interval
        color = "C0" if s.covers else "C3"
        ax.plot([lo, hi], [y[i], y[i]], color=color, lw=1.5)
        ax.plot([s.discrepancy], [y[i]], "o", color=color, ms=3)
    ax.axvline(0.0, color="0.3", lw=1)
    ax.set_yticks(y)
    ax.set_yticklabels(names, fontsize="small")
    ax.invert_yaxis()
    ax.set_xlabel("posterior - generating value")
    ax.set_title(f"{100 * report.prob:g}% intervals, coverage {report.coverage():.0%}")
    return fig, ax
