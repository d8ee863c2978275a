#!/usr/bin/env python
"""Run the worker scaling benchmark and generate a plot.

Usage:
    python benchmarks/run_benchmarks.py

Generates benchmarks/results/worker_scaling.png (requires matplotlib).
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add benchmarks to path
sys.path.insert(0, str(Path(__file__).parent))

import numpy as np
from scipy.optimize import rosen_der

from utils import RESULTS_DIR, ScalingData, plot_worker_scaling, rosenbrock_chain, time_function


SIZES = [100, 300, 1_000, 3_000, 10_000, 30_000]
WORKERS = [1, 2, 4, 8]


def run_worker_scaling() -> ScalingData:
    """Time gradient evaluation for every size and worker count."""
    print("\n" + "=" * 70)
    print("GRADIENT EVALUATION: worker count vs problem size")
    print("=" * 70)

    data = ScalingData(label="rosenbrock_chain")
    for n in SIZES:
        times = {}
        for workers in WORKERS:
            f = rosenbrock_chain(n, workers)
            x = f.copy_user_to_global()
            g = np.zeros(n)
            timing = time_function(lambda: f.evaluate(x, g), n_warmup=2, n_runs=10)
            times[workers] = timing.mean_ms
            print(f"  n={n:>6}  workers={workers}: {timing}")
            f.close()

        x = np.linspace(-1.0, 1.0, n)
        baseline = time_function(lambda: rosen_der(x), n_warmup=2, n_runs=10)
        print(f"  n={n:>6}  scipy: {baseline}")
        data.add_point(n, times, baseline.mean_ms)

    return data


def main() -> None:
    RESULTS_DIR.mkdir(exist_ok=True)
    data = run_worker_scaling()
    plot_worker_scaling(data, save_path=RESULTS_DIR / "worker_scaling.png")


if __name__ == "__main__":
    main()
