import numpy as np
import pytest

from sensible_mcmc import RunConfig, SamplingError, ValidationError, run
from sensible_mcmc.errors import RunDataError
from sensible_mcmc.models import batting
from sensible_mcmc.runner import chain_rng

from conftest import make_normal_model


def _quick(spec, data, **kwargs):
    opts = dict(num_chains=3, num_iterations=300, num_warmup=100, seed=7, backend="metropolis")
    opts.update(kwargs)
    return run(spec, data, **opts)


def test_identical_inputs_give_identical_draws(normal_model, normal_data):
    a = _quick(normal_model, normal_data)
    b = _quick(normal_model, normal_data)
    for ca, cb in zip(a.chains, b.chains):
        for name in normal_model.param_names:
            np.testing.assert_array_equal(ca.draws[name], cb.draws[name])


def test_different_seed_changes_draws(normal_model, normal_data):
    a = _quick(normal_model, normal_data, seed=1)
    b = _quick(normal_model, normal_data, seed=2)
    assert not np.array_equal(a.chains[0].draws["mu"], b.chains[0].draws["mu"])


def test_chains_are_independent(normal_model, normal_data):
    result = _quick(normal_model, normal_data, num_chains=4, num_iterations=2000, num_warmup=500)
    mu = result.draws("mu")
    for i in range(4):
        for j in range(i + 1, 4):
            assert not np.array_equal(mu[i], mu[j])
            r = np.corrcoef(mu[i], mu[j])[0, 1]
            assert abs(r) < 0.25


def test_chain_streams_differ_by_index():
    a = chain_rng(3, 0).random(5)
    b = chain_rng(3, 1).random(5)
    assert not np.array_equal(a, b)
    np.testing.assert_array_equal(a, chain_rng(3, 0).random(5))


def test_thread_pool_matches_sequential(normal_data):
    spec = make_normal_model(gradient=True)
    seq = _quick(spec, normal_data, backend="hmc", num_chains=4, n_jobs=1)
    par = _quick(spec, normal_data, backend="hmc", num_chains=4, n_jobs=4)
    assert [c.index for c in par.chains] == [0, 1, 2, 3]
    for a, b in zip(seq.chains, par.chains):
        np.testing.assert_array_equal(a.draws["mu"], b.draws["mu"])
        np.testing.assert_array_equal(a.draws["sigma"], b.draws["sigma"])


def test_warmup_draws_are_kept_and_flagged(normal_model, normal_data):
    result = _quick(normal_model, normal_data)
    chain = result.chains[0]
    assert len(chain) == 300
    assert chain.num_warmup == 100
    assert chain.is_warmup(99) and not chain.is_warmup(100)
    assert chain.values("mu").shape == (200,)
    assert chain.values("mu", discard_warmup=False).shape == (300,)
    assert result.draws("mu").shape == (3, 200)
    assert result.pooled("mu").shape == (600,)
    assert set(chain.draw(0)) == {"mu", "sigma"}


def test_bounded_parameters_never_leave_their_domain():
    spec = batting.batting_model()
    result = run(spec, batting.EFRON_MORRIS, 2, 300, 100, seed=3)
    for chain in result.chains:
        assert np.all((chain.draws["phi"] >= 0.0) & (chain.draws["phi"] <= 1.0))
        assert np.all(chain.draws["kappa"] >= 1.0)
        assert np.all((chain.draws["theta"] >= 0.0) & (chain.draws["theta"] <= 1.0))
    assert result.shape_of("theta") == (18,)


def test_draws_are_read_only(normal_model, normal_data):
    result = _quick(normal_model, normal_data)
    with pytest.raises(ValueError):
        result.chains[0].draws["mu"][0] = 0.0


def test_run_does_not_mutate_inputs(normal_model, normal_data):
    before = normal_data["y"].copy()
    _quick(normal_model, normal_data)
    np.testing.assert_array_equal(normal_data["y"], before)


@pytest.mark.parametrize(
    "kwargs, pattern",
    [
        ({"num_chains": 0}, "num_chains must be >= 1"),
        ({"num_warmup": 300}, "must be < num_iterations"),
        ({"num_warmup": -1}, "num_warmup must be >= 0"),
        ({"backend": "gibbs"}, "Unknown backend"),
        ({"backend": "hmc"}, "needs a gradient"),
        ({"n_jobs": 0}, "n_jobs must be >= 1"),
    ],
)
def test_bad_configuration_raises_sampling_error(normal_model, normal_data, kwargs, pattern):
    with pytest.raises(SamplingError, match=pattern):
        _quick(normal_model, normal_data, **kwargs)


def test_invalid_data_fails_before_sampling():
    spec = batting.batting_model()
    y = np.array(batting.EFRON_MORRIS["y"])
    y[4] = 50
    with pytest.raises(RunDataError, match="index 4") as err:
        run(spec, dict(batting.EFRON_MORRIS, y=y), 2, 10, 5, seed=0)
    assert isinstance(err.value, ValidationError)
    assert isinstance(err.value, SamplingError)


def test_explicit_inits(normal_model, normal_data):
    result = _quick(normal_model, normal_data, inits={"mu": 1.0, "sigma": 0.5})
    assert result.chains[0].draws["mu"].shape == (300,)
    with pytest.raises(SamplingError, match="non-finite"):
        _quick(normal_model, normal_data, inits={"mu": 1.0, "sigma": 0.0})


def test_run_config_bundles_arguments(normal_model, normal_data):
    cfg = RunConfig(num_chains=2, num_iterations=200, num_warmup=50, seed=5, backend="metropolis")
    a = cfg.run(normal_model, normal_data)
    b = run(normal_model, normal_data, 2, 200, 50, 5, backend="metropolis")
    np.testing.assert_array_equal(a.draws("mu"), b.draws("mu"))
    assert a.backend == "metropolis"
    assert a.summary().startswith("RunResult(model='normal'")


def test_numerical_failure_in_the_log_density_is_a_sampling_error(normal_data):
    import math

    from sensible_mcmc import DataField, ModelSpec

    def lp(mu, *, N, y):
        # math.log raises once mu leaves (0, inf); mu itself is unbounded
        return math.log(mu) - 0.5 * float(np.sum((y - mu) ** 2))

    spec = ModelSpec.from_function(lp).data(N=DataField.integer(lower=1), y=DataField.real(shape="N"))
    with pytest.raises(SamplingError, match="metropolis failed") as exc:
        run(spec, normal_data, 2, 50, 10, seed=0, backend="metropolis")
    assert isinstance(exc.value.__cause__, ValueError)
