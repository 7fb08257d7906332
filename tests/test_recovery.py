"""Simulation-based recovery checks on the case-study models."""

import numpy as np
import pytest

from sensible_mcmc import coverage_study, diagnose, run, summarize
from sensible_mcmc.models import batting, irt


def test_coverage_study_bookkeeping():
    spec = batting.batting_model()
    study = coverage_study(
        spec,
        lambda rng: batting.simulate(N=6, rng=rng),
        3,
        "phi",
        seed=4,
        run_options={"num_chains": 2, "num_iterations": 200, "num_warmup": 100},
    )
    assert study.n_replications == 3
    assert len(study.reports) == 3
    assert study.coverage in (0.0, 1 / 3, 2 / 3, 1.0)
    assert study.reports[0]["phi"].generating == pytest.approx(0.270)


def test_coverage_study_rejects_unknown_component():
    with pytest.raises(KeyError, match="omega"):
        coverage_study(
            batting.batting_model(),
            lambda rng: batting.simulate(N=4, rng=rng),
            1,
            "omega",
            run_options={"num_chains": 1, "num_iterations": 50, "num_warmup": 25},
        )


@pytest.mark.slow
def test_batting_end_to_end_on_efron_morris_data():
    result = run(batting.batting_model(), batting.EFRON_MORRIS, 4, 1000, 500, seed=2024)
    report = diagnose(result)
    assert report.converged
    summary = summarize(result, include_derived=True)
    assert 0.22 < summary["phi"].mean < 0.30
    assert 0.0 < summary["some_ability_gt_350"].mean < 1.0


@pytest.mark.slow
def test_batting_phi_interval_coverage():
    study = coverage_study(
        batting.batting_model(),
        lambda rng: batting.simulate(N=18, K=45, phi=0.270, kappa=50.0, rng=rng),
        60,
        "phi",
        seed=11,
        run_options={"num_chains": 4, "num_iterations": 1000, "num_warmup": 500, "backend": "hmc"},
    )
    assert study.n_replications == 60
    assert study.coverage >= 0.90


@pytest.mark.slow
def test_item_response_recovery():
    spec = irt.irt_model()
    data, truth = irt.simulate(
        I=20, J=1000, mu=(0.0, 0.0), tau=(0.25, 1.0), rho=0.3, rng=np.random.default_rng(7)
    )
    result = run(spec, data, 4, 1000, 500, seed=7)
    report = summarize(result, truth, required=["log_alpha", "beta"], include_derived=True)
    assert len(report.recovered("alpha")) >= 18
    assert len(report.recovered("beta")) >= 18
