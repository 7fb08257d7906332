import numpy as np
import pytest

matplotlib = pytest.importorskip("matplotlib")
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from sensible_mcmc import diagnose, summarize  # noqa: E402
from sensible_mcmc.plotting import plot_recovery, plot_rhat, plot_trace  # noqa: E402

from conftest import synthetic_result  # noqa: E402


@pytest.fixture
def result(normal_model):
    rng = np.random.default_rng(0)
    return synthetic_result(
        normal_model,
        {"mu": rng.normal(size=(3, 80)), "sigma": np.full((3, 80), 1.0)},
        num_warmup=30,
    )


def test_plot_trace_shades_warmup(result):
    fig, ax = plot_trace(result, "mu")
    assert len(ax.lines) == 3
    assert len(ax.patches) == 1
    assert ax.get_ylabel() == "mu"
    plt.close(fig)

    fig, ax = plot_trace(result, "mu", warmup=False)
    assert len(ax.patches) == 0
    assert ax.lines[0].get_xdata()[0] == 30
    plt.close(fig)


def test_plot_trace_rejects_unknown_component(result):
    with pytest.raises(KeyError):
        plot_trace(result, "tau")
    with pytest.raises(KeyError):
        plot_trace(result, "mu[2]")


def test_plot_rhat_marks_not_applicable(result):
    report = diagnose(result, warn_on_failure=False)
    fig, ax = plot_rhat(report)
    labels = [t.get_text() for t in ax.get_xticklabels()]
    assert labels == ["mu", "sigma"]
    legend = [t.get_text() for t in ax.get_legend().get_texts()]
    assert "n/a" in legend
    plt.close(fig)


def test_plot_recovery_needs_generating_values(result):
    with pytest.raises(ValueError, match="generating values"):
        plot_recovery(summarize(result))
    fig, ax = plot_recovery(summarize(result, {"mu": 0.0, "sigma": 1.0}))
    assert "coverage" in ax.get_title()
    plt.close(fig)


def test_plot_rhat_draws_stuck_chains_as_not_converged(normal_model):
    stuck = synthetic_result(
        normal_model,
        {"mu": np.repeat(np.arange(3.0)[:, None], 40, axis=1), "sigma": np.full((3, 40), 1.0)},
    )
    report = diagnose(stuck, warn_on_failure=False)
    fig, ax = plot_rhat(report)
    legend = [t.get_text() for t in ax.get_legend().get_texts()]
    assert "not converged" in legend
    assert np.all(np.isfinite(ax.lines[1].get_ydata()))
    plt.close(fig)
