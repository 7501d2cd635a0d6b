"""
Basic sediment load estimation example.

Builds a synthetic storm hydrograph for two sites, fits a power rating
curve from spot SSC samples and estimates the cumulative load.
"""

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend

from sedload import analyze_samples, fit_catalog
from sedload.concentration import build_concentration_series
from sedload.flow import ExclusionRuleTable, build_flow_series
from sedload.plots import save_site_figures
from sedload.report import generate_text_report

np.random.seed(42)

# Two days of 15-minute flow (L/s) with a storm peak on day one
times = pd.date_range("2020-02-01", periods=192, freq="15min")
hours = np.arange(len(times)) / 4.0
base = 2000.0 + 18000.0 * np.exp(-((hours - 12.0) / 4.0) ** 2)

rows = []
for site, scale in [("Esk River at Waipunga Bridge", 1.0), ("Tutaekuri River at Puketapu", 2.5)]:
    flow = base * scale * (1 + 0.02 * np.random.randn(len(times)))
    for t, q in zip(times, flow):
        rows.append({"timestamp": t, "site": site, "measurement": "Flow", "value": f"{q:.1f}"})
    # Spot samples, C = 0.002 Q^1.3 with 10% scatter
    for i in range(20, 120, 8):
        conc = 0.002 * flow[i] ** 1.3 * (1 + 0.1 * np.random.randn())
        rows.append({
            "timestamp": times[i] + pd.Timedelta(minutes=4),
            "site": site,
            "measurement": "Suspended Sediment Concentration",
            "value": f"{conc:.1f}",
        })
samples = pd.DataFrame(rows)

print("=" * 60)
print("SEDLOAD SEDIMENT LOAD EXAMPLE")
print("=" * 60)

# 1. Fit rating curves from the matched SSC samples
print("\n1. RATING CURVES")
print("-" * 40)
rules = ExclusionRuleTable()
flow = build_flow_series(samples, rules=rules)
merged = build_concentration_series(samples, flow)
catalog = fit_catalog(merged, kinds=["Power", "Linear"])
for spec in catalog:
    print(f"{spec.site}: {spec.curve.equation()}  (r2={spec.r_squared:.3f}, n={spec.n_samples})")

# 2. Estimate loads
print("\n2. LOADS")
print("-" * 40)
batch = analyze_samples(samples, catalog, rules=rules)
print(generate_text_report(batch))

paths = save_site_figures(batch, "example_output", flow_divisor=1000.0)
print(f"Saved {len(paths)} charts to example_output/")
