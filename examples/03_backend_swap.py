import numpy as np
import matplotlib.pyplot as plt

from sensible_mcmc import diagnose, run
from sensible_mcmc.models import batting

spec = batting.batting_model()
data = batting.EFRON_MORRIS

# Same model, same seed: random-walk Metropolis, the reference HMC kernel and
# PyMC's NUTS.
runs = {
    name: run(spec, data, num_chains=4, num_iterations=800, num_warmup=400, seed=3, backend=name)
    for name in ("metropolis", "hmc", "nuts")
}

fig, ax = plt.subplots()
for name, result in runs.items():
    diag = diagnose(result, warn_on_failure=False)
    stats = result.stats[0]
    accept = stats.get("accept_rate", stats.get("mean_accept_prob"))
    print(
        f"{name:>10s}: accept rate {accept:.2f}, "
        f"max R_hat {diag.max_rhat:.3f}, ESS(kappa) {diag['kappa'].ess:.0f}"
    )
    ax.hist(result.pooled("kappa"), bins=60, histtype="step", density=True, label=name)

ax.set_xlabel("kappa")
ax.set_xscale("log")
ax.legend()
plt.show()
