import numpy as np
import pytest

from sensible_mcmc import SamplingError
from sensible_mcmc.backends import AVAILABLE_BACKENDS, Target, get_backend, resolve_backend
from sensible_mcmc.backends.common import accept, regularized_variance
from sensible_mcmc.backends.hmc import _mass_windows

from conftest import make_normal_model


def test_registry():
    assert set(AVAILABLE_BACKENDS) == {"metropolis", "hmc", "nuts"}
    assert get_backend("hmc").requires_gradient
    assert get_backend("nuts").requires_gradient
    assert not get_backend("metropolis").requires_gradient
    with pytest.raises(SamplingError, match="Unknown backend 'gibbs'"):
        get_backend("gibbs")


def test_auto_resolution_follows_gradient():
    assert resolve_backend("auto", has_gradient=True).name == "nuts"
    assert resolve_backend("auto", has_gradient=False).name == "metropolis"
    with pytest.raises(SamplingError, match="needs a gradient"):
        resolve_backend("hmc", has_gradient=False)


def test_accept_always_consumes_one_uniform():
    a = np.random.default_rng(5)
    b = np.random.default_rng(5)
    accept(a, float("nan"))
    accept(a, -np.inf)
    accept(a, 3.0)
    b.random(3)
    assert a.random() == b.random()


def test_regularized_variance_shrinks_toward_small_value():
    x = np.zeros((10, 2))
    np.testing.assert_allclose(regularized_variance(x), 1e-3 * 5.0 / 15.0)


def test_mass_windows_lie_inside_warmup():
    assert _mass_windows(10) == []
    windows = _mass_windows(500)
    assert windows[0][0] == 75
    assert windows[-1][1] == 450
    assert all(a < b for a, b in windows)


def test_target_gradient_matches_finite_differences(normal_data):
    spec = make_normal_model(gradient=True)
    ds = spec.dataset(**normal_data)
    target = Target(spec, ds, spec.layout(ds))
    z = np.array([0.8, -0.4])
    lp, grad = target.logp_and_grad(z)
    assert lp == pytest.approx(target.logp(z))
    h = 1e-6
    numeric = [(target.logp(z + h * e) - target.logp(z - h * e)) / (2 * h) for e in np.eye(2)]
    np.testing.assert_allclose(grad, numeric, rtol=1e-5)


@pytest.mark.parametrize("backend", ["metropolis", "hmc", "nuts"])
def test_backend_recovers_normal_posterior(backend, normal_data):
    spec = make_normal_model(gradient=True)
    ds = spec.dataset(**normal_data)
    layout = spec.layout(ds)
    target = Target(spec, ds, layout)
    impl = get_backend(backend)
    result = impl.sample(
        target=target,
        z0=np.zeros(2),
        num_iterations=3000,
        num_warmup=1000,
        rng=np.random.default_rng(11),
        options={},
    )
    assert result.draws.shape == (3000, 2)
    assert result.stats["backend"] == backend
    accept_stat = "mean_accept_prob" if backend == "nuts" else "accept_rate"
    assert 0.0 < result.stats[accept_stat] <= 1.0

    draws = layout.constrain_many(result.draws[1000:])
    y = normal_data["y"]
    assert np.mean(draws["mu"]) == pytest.approx(np.mean(y), abs=0.1)
    assert np.mean(draws["sigma"]) == pytest.approx(np.std(y), abs=0.1)
    assert np.all(draws["sigma"] > 0.0)


def test_nuts_is_reproducible_from_the_chain_generator(normal_data):
    spec = make_normal_model(gradient=True)
    ds = spec.dataset(**normal_data)
    target = Target(spec, ds, spec.layout(ds))
    impl = get_backend("nuts")

    def draws(seed):
        return impl.sample(
            target=target,
            z0=np.array([1.0, 0.0]),
            num_iterations=200,
            num_warmup=100,
            rng=np.random.default_rng(seed),
            options={},
        )

    a, b = draws(3), draws(3)
    assert a.draws.shape == (200, 2)
    np.testing.assert_array_equal(a.draws, b.draws)
    assert a.stats["seed"] == b.stats["seed"]
    assert not np.array_equal(a.draws, draws(4).draws)
