"""
Basic Replicability Estimation Example
======================================

This example estimates the expected replication rate (ERR), expected
discovery rate (EDR) and their average (ARP) for a corpus of articles.
Each study may report several dependent p-values; one is drawn per study
in every replicate.
"""

import numpy as np
import pandas as pd
from scipy.stats import norm

from mcreplicability import ReplicabilityAnalysis, p_from_r

# Example: p-values extracted from 80 studies in 40 articles
# Most studies report 2-4 tests of the same hypothesis

rng = np.random.default_rng(7)
rows = []
for study in range(80):
    z_true = rng.choice([0.5, 2.0, 3.5])  # mixture of weak and strong evidence
    for _ in range(rng.integers(2, 5)):
        z = rng.normal(z_true, 1.0)
        rows.append({"doi": f"10.1000/art{study // 2}", "study": f"S{study:03d}", "p": 2 * norm.sf(abs(z))})

# A study that reported only a correlation: convert it to a p-value first
rows.append({"doi": "10.1000/art40", "study": "S080", "p": p_from_r(0.32, 60)})

data = pd.DataFrame(rows)

print("=" * 60)
print("BASIC REPLICABILITY ESTIMATION EXAMPLE")
print("=" * 60)

# 1. Load the table (column names are mapped onto study / article / p-value)
analysis = ReplicabilityAnalysis(data, study_col="study", p_col="p", article_col="doi")

# 2. Configure the Monte Carlo passes
# resampling: point estimates (one p-value per study, no bootstrap)
# bootstrap: percentile intervals (studies resampled with replacement)
analysis.set_seed(2024).set_repetitions(resampling=200, bootstrap=200)

# 3. Run the estimate
result = analysis.estimate(return_results=True)

# 4. Work with the returned numbers
arp = result["results"]["arp"]
print(f"\nARP = {arp['estimate']:.3f} [{arp['ci_lower']:.3f}, {arp['ci_upper']:.3f}]")

odr = result["results"]["odr"]["mean"]
edr = result["results"]["edr"]["estimate"]
print(f"Observed discovery rate {odr:.2f} vs. expected discovery rate {edr:.2f}")
if odr > edr:
    print("More significant results were published than the estimated power predicts (selection for significance).")
