import numpy as np
import matplotlib.pyplot as plt

from sensible_mcmc import diagnose, run, summarize
from sensible_mcmc.models import irt
from sensible_mcmc.plotting import plot_recovery, plot_rhat

# --- Simulate a test: I items answered by J persons ---------------------------

rng = np.random.default_rng(0)
data, truth = irt.simulate(I=10, J=200, mu=(0.0, 0.0), tau=(0.25, 1.0), rho=0.3, rng=rng)

spec = irt.irt_model()
result = run(spec, data, num_chains=4, num_iterations=400, num_warmup=200, seed=0, n_jobs=4)

diag = diagnose(result)
print(f"max R_hat = {diag.max_rhat:.3f}, min ESS = {diag.min_ess:.0f}")
print("not converged:", diag.non_converged() or "none")

# --- Did we recover the item parameters? --------------------------------------

report = summarize(result, truth, required=["log_alpha", "beta"])
print(report.table(["mu[0]", "mu[1]", "tau[0]", "tau[1]", "rho"]))
for name in ("alpha", "beta"):
    print(f"{name}: {len(report.recovered(name))} of {data['I']} items recovered")

fig, axs = plt.subplots(1, 2, figsize=(11, 4), constrained_layout=True)
items = [s.name for n in ("alpha", "beta") for s in report.components(n)]
plot_recovery(report, ax=axs[0], names=items)
plot_rhat(diag, ax=axs[1], names=["mu[0]", "mu[1]", "tau[0]", "tau[1]", "rho"])
plt.show()
