import numpy as np
import pytest

from sensible_mcmc import DataField, ModelSpec
from sensible_mcmc.data import Dataset
from sensible_mcmc.inference import logpdf_exponential, logpdf_normal
from sensible_mcmc.run import Chain, RunResult


def normal_log_density(mu, sigma, *, N, y):
    return (
        logpdf_normal(y, mu, sigma)
        + logpdf_normal(mu, 0.0, 10.0)
        + logpdf_exponential(sigma, 1.0)
    )


def normal_gradient(mu, sigma, *, N, y):
    r = np.asarray(y, dtype=float) - mu
    return {
        "mu": float(np.sum(r)) / sigma**2 - mu / 100.0,
        "sigma": -N / sigma + float(np.sum(r * r)) / sigma**3 - 1.0,
    }


def make_normal_model(*, gradient: bool = False) -> ModelSpec:
    spec = (
        ModelSpec.from_function(normal_log_density, name="normal")
        .data(N=DataField.integer(lower=1), y=DataField.real(shape="N"))
        .bound(sigma=(0.0, None))
    )
    if gradient:
        spec = spec.with_gradient(normal_gradient)
    return spec


@pytest.fixture
def normal_model():
    return make_normal_model()


@pytest.fixture
def normal_data():
    rng = np.random.default_rng(42)
    y = rng.normal(1.5, 0.7, size=40)
    return {"N": y.size, "y": y}


def synthetic_result(spec, arrays, *, num_warmup=0, dataset=None):
    """RunResult built from name -> (chains, iterations) + shape arrays."""
    names = list(arrays)
    m = np.asarray(arrays[names[0]]).shape[0]
    chains = tuple(
        Chain(
            index=c,
            draws={k: np.array(np.asarray(v, dtype=float)[c]) for k, v in arrays.items()},
            num_warmup=num_warmup,
        )
        for c in range(m)
    )
    T = np.asarray(arrays[names[0]]).shape[1]
    return RunResult(
        spec=spec,
        dataset=dataset if dataset is not None else Dataset({}),
        chains=chains,
        num_iterations=T,
        num_warmup=num_warmup,
        seed=0,
        backend="synthetic",
        param_shapes={k: tuple(np.asarray(v).shape[2:]) for k, v in arrays.items()},
    )
