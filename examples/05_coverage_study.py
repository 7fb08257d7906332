from sensible_mcmc import coverage_study
from sensible_mcmc.models import batting

# Fresh data from a known population each time: N=18 players, 45 at-bats,
# phi=0.270, kappa=50. A calibrated 95% interval should cover phi ~95% of the time.
study = coverage_study(
    batting.batting_model(),
    lambda rng: batting.simulate(N=18, K=45, phi=0.270, kappa=50.0, rng=rng),
    n_replications=5,
    name="phi",
    seed=0,
    run_options={"num_chains": 4, "num_iterations": 400, "num_warmup": 200},
)

for r, (report, ok) in enumerate(zip(study.reports, study.covered)):
    s = report["phi"]
    print(f"replication {r}: phi = {s.u:.2uS}  [{s.lower:.3f}, {s.upper:.3f}]  covers={ok}")
print(f"coverage: {study.coverage:.0%} of {study.n_replications}")
