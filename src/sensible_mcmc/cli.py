"""Command-line entry point: sample a case-study model and print diagnostics."""

from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from .backends import AVAILABLE_BACKENDS
from .diagnostics import diagnose
from .errors import ConvergenceWarning, SensibleMCMCError
from .models import batting, irt
from .runner import RunConfig
from .summary import summarize


def _batting_problem(args: argparse.Namespace, rng: np.random.Generator) -> Tuple[Any, Dict, Optional[Dict]]:
    spec = batting.batting_model()
    if args.simulate:
        data, truth = batting.simulate(rng=rng)
        return spec, data, truth
    return spec, dict(batting.EFRON_MORRIS), None


def _irt_problem(args: argparse.Namespace, rng: np.random.Generator) -> Tuple[Any, Dict, Optional[Dict]]:
    # There is no bundled response data; the IRT study is always simulated.
    spec = irt.irt_model()
    data, truth = irt.simulate(I=args.items, J=args.persons, rng=rng)
    return spec, data, truth


PROBLEMS = {"batting": _batting_problem, "irt": _irt_problem}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensible-mcmc",
        description="Sample a hierarchical model with multiple chains and check convergence",
    )
    parser.add_argument("model", choices=sorted(PROBLEMS), help="Case-study model to run")
    parser.add_argument("--chains", type=int, default=4, help="Number of chains")
    parser.add_argument("--iterations", type=int, default=1000, help="Iterations per chain (warm-up included)")
    parser.add_argument("--warmup", type=int, default=500, help="Warm-up iterations per chain")
    parser.add_argument("--seed", type=int, default=0, help="Run seed")
    parser.add_argument(
        "--backend", default="auto", choices=("auto",) + AVAILABLE_BACKENDS, help="Sampler backend"
    )
    parser.add_argument("--jobs", type=int, default=1, help="Chains sampled concurrently")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Fit simulated data and compare with the generating values",
    )
    parser.add_argument("--items", type=int, default=20, help="IRT: number of items")
    parser.add_argument("--persons", type=int, default=1000, help="IRT: number of persons")
    parser.add_argument("--draws", type=str, default=None, help="Write draws to this .csv/.parquet file")
    parser.add_argument("--plot", type=str, default=None, help="Directory for trace/R_hat/recovery figures")
    return parser


def _save_plots(outdir: Path, run_result: Any, diag: Any, comparison: Any) -> None:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    from .plotting import plot_recovery, plot_rhat, plot_trace

    outdir.mkdir(parents=True, exist_ok=True)
    for name in run_result.param_names:
        if run_result.shape_of(name) == ():
            fig, _ = plot_trace(run_result, name)
            fig.savefig(outdir / f"trace_{name}.png", dpi=120)
            plt.close(fig)
    fig, _ = plot_rhat(diag)
    fig.savefig(outdir / "rhat.png", dpi=120, bbox_inches="tight")
    plt.close(fig)
    if comparison is not None:
        fig, _ = plot_recovery(comparison)
        fig.savefig(outdir / "recovery.png", dpi=120, bbox_inches="tight")
        plt.close(fig)
    print(f"Saved figures to {outdir}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = RunConfig(
        num_chains=args.chains,
        num_iterations=args.iterations,
        num_warmup=args.warmup,
        seed=args.seed,
        backend=args.backend,
        n_jobs=args.jobs,
    )
    try:
        rng = np.random.default_rng(np.random.SeedSequence([args.seed, 2**31 - 1]))
        spec, data, truth = PROBLEMS[args.model](args, rng)
        result = config.run(spec, data)
        print(result.summary())
        print()

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            diag = diagnose(result)
        print(diag.table())
        for w in caught:
            print(f"warning: {w.message}", file=sys.stderr)

        comparison = None
        if truth is not None:
            comparison = summarize(result, truth, include_derived=False)
            print()
            print(comparison.table())
            print(f"\ninterval coverage of generating values: {comparison.coverage():.1%}")

        if args.draws:
            from .io import write_draws

            path = write_draws(result, args.draws)
            print(f"Wrote draws to {path}")
        if args.plot:
            _save_plots(Path(args.plot), result, diag, comparison)
    except SensibleMCMCError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    return 0 if diag.converged else 1


if __name__ == "__main__":
    sys.exit(main())
