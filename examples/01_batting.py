import numpy as np
import matplotlib.pyplot as plt

from sensible_mcmc import diagnose, run, summarize
from sensible_mcmc.models import batting
from sensible_mcmc.plotting import plot_trace

# --- Efron & Morris (1975): hits in the first 45 at-bats of 1970 --------------

spec = batting.batting_model()
result = run(spec, batting.EFRON_MORRIS, num_chains=4, num_iterations=600, num_warmup=300, seed=1)

print(result.summary())
print()
print(diagnose(result).table(["phi", "kappa", "theta[0]", "theta[17]"]))

# --- Posterior ability per player ---------------------------------------------

report = summarize(result, include_derived=True)
for name, s in zip(batting.PLAYERS, report.components("theta")):
    print(f"{name:>18s}  {s.mean:.3f}  [{s.lower:.3f}, {s.upper:.3f}]")

p = report["some_ability_gt_350"].mean
print(f"\nP(some player's ability > .350) = {p:.2f}")

# --- Shrinkage toward the population mean --------------------------------------

fig, axs = plt.subplots(1, 2, figsize=(10, 4), constrained_layout=True)
raw = batting.EFRON_MORRIS["y"] / batting.EFRON_MORRIS["K"]
axs[0].plot(raw, np.zeros_like(raw), "o", label="hits / at-bats")
axs[0].plot(report.array("theta"), np.ones_like(raw), "o", label="posterior mean")
for a, b in zip(raw, report.array("theta")):
    axs[0].plot([a, b], [0, 1], color="0.7", lw=0.8)
axs[0].set_yticks([0, 1])
axs[0].set_yticklabels(["observed", "partial pooling"])
axs[0].legend(loc="upper left")

plot_trace(result, "phi", ax=axs[1])
plt.show()
