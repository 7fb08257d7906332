import pytest

from sensible_mcmc import cli


def test_parser_defaults():
    args = cli.build_parser().parse_args(["batting"])
    assert (args.chains, args.iterations, args.warmup, args.seed) == (4, 1000, 500, 0)
    assert args.backend == "auto"


def test_unknown_model_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        cli.main(["baseball"])
    assert exc.value.code == 2


def test_batting_run_prints_tables(capsys, tmp_path):
    draws = tmp_path / "draws.csv"
    code = cli.main(
        ["batting", "--chains", "2", "--iterations", "200", "--warmup", "100", "--draws", str(draws)]
    )
    out = capsys.readouterr().out
    assert code in (0, 1)
    assert "R_hat" in out
    assert "theta[17]" in out
    assert draws.exists()


def test_library_errors_exit_with_code_2(capsys):
    code = cli.main(["batting", "--iterations", "100", "--warmup", "100"])
    err = capsys.readouterr().err
    assert code == 2
    assert "num_warmup (100) must be < num_iterations (100)" in err


def test_simulated_irt_prints_comparison(capsys, tmp_path):
    code = cli.main(
        [
            "irt",
            "--items", "3",
            "--persons", "30",
            "--chains", "2",
            "--iterations", "120",
            "--warmup", "60",
            "--plot", str(tmp_path / "figs"),
        ]
    )
    out = capsys.readouterr().out
    assert code in (0, 1)
    assert "discrepancy" in out
    assert "interval coverage" in out
    assert (tmp_path / "figs" / "rhat.png").exists()
    assert (tmp_path / "figs" / "recovery.png").exists()
    assert (tmp_path / "figs" / "trace_rho.png").exists()
