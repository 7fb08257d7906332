import numpy as np
import polars as pl
import pytest

from sensible_mcmc import run
from sensible_mcmc.io import draws_frame, read_draws, write_draws
from sensible_mcmc.models import batting


@pytest.fixture(scope="module")
def batting_run():
    return run(batting.batting_model(), batting.EFRON_MORRIS, 2, 60, 20, seed=1)


def test_draws_frame_layout(batting_run):
    df = draws_frame(batting_run)
    assert isinstance(df, pl.DataFrame)
    assert df.height == 2 * 60
    assert df.columns[:5] == ["chain", "iteration", "warmup", "phi", "kappa"]
    assert "theta[17]" in df.columns
    assert df.filter(pl.col("warmup")).height == 2 * 20
    first = df.filter((pl.col("chain") == 1) & (pl.col("iteration") == 25))
    assert first["theta[4]"][0] == batting_run.chains[1].draws["theta"][25, 4]


def test_derived_columns_on_request(batting_run):
    df = draws_frame(batting_run, include_derived=True)
    assert "some_ability_gt_350" in df.columns
    assert set(df["some_ability_gt_350"].unique().to_list()) <= {0.0, 1.0}


@pytest.mark.parametrize("suffix", [".csv", ".parquet"])
def test_write_then_read(batting_run, tmp_path, suffix):
    path = write_draws(batting_run, tmp_path / f"draws{suffix}")
    assert path.exists()
    back = read_draws(path)
    assert back["warmup"].shape == (2, 60)
    assert back["warmup"][:, :20].all() and not back["warmup"][:, 20:].any()
    np.testing.assert_allclose(back["phi"], batting_run.draws("phi", discard_warmup=False))
    np.testing.assert_allclose(back["theta"], batting_run.draws("theta", discard_warmup=False))


def test_unknown_suffix(batting_run, tmp_path):
    with pytest.raises(ValueError, match="Unsupported draws format"):
        write_draws(batting_run, tmp_path / "draws.json")
