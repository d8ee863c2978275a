"""Utility functions for benchmarks."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from statistics import mean, stdev
from typing import Callable

import numpy as np

from termopt import Function, Term


# Results directory
RESULTS_DIR = Path(__file__).parent / "results"


@dataclass
class TimingResult:
    """Result of a timing benchmark."""

    mean_ms: float
    std_ms: float
    min_ms: float
    max_ms: float
    n_runs: int

    def __str__(self) -> str:
        return f"{self.mean_ms:.3f} ± {self.std_ms:.3f} ms (n={self.n_runs})"


@dataclass
class ScalingData:
    """Evaluation times across problem sizes, one series per worker count."""

    sizes: list[int] = field(default_factory=list)
    times: dict[int, list[float]] = field(default_factory=dict)
    baseline_times: list[float] = field(default_factory=list)
    label: str = ""

    def add_point(self, n: int, times_by_workers: dict[int, float], baseline_ms: float) -> None:
        """Add a data point."""
        self.sizes.append(n)
        for workers, ms in times_by_workers.items():
            self.times.setdefault(workers, []).append(ms)
        self.baseline_times.append(baseline_ms)

    def speedups(self, workers: int) -> list[float]:
        """Speedup of ``workers`` threads over one thread at each size."""
        single = self.times[1]
        return [s / t if t > 0 else float("inf") for s, t in zip(single, self.times[workers])]


def time_function(
    func: Callable[[], object],
    n_warmup: int = 2,
    n_runs: int = 10,
) -> TimingResult:
    """Time a function with warmup and multiple runs.

    Args:
        func: Function to time (should take no arguments).
        n_warmup: Number of warmup calls (not timed).
        n_runs: Number of timed runs.

    Returns:
        TimingResult with statistics.
    """
    for _ in range(n_warmup):
        func()

    times_ms: list[float] = []
    for _ in range(n_runs):
        start = time.perf_counter()
        func()
        times_ms.append((time.perf_counter() - start) * 1000)

    return TimingResult(
        mean_ms=mean(times_ms),
        std_ms=stdev(times_ms) if len(times_ms) > 1 else 0.0,
        min_ms=min(times_ms),
        max_ms=max(times_ms),
        n_runs=n_runs,
    )


# =============================================================================
# Benchmark problems
# =============================================================================


class RosenbrockTerm(Term):
    """(1 - x)^2 + 100 (y - x^2)^2 over two scalar variables."""

    def arity(self):
        return 2

    def argument_dimension(self, k):
        return 1

    def evaluate(self, args):
        x, y = args[0][0], args[1][0]
        return (1 - x) ** 2 + 100 * (y - x**2) ** 2

    def evaluate_gradient(self, args, gradient):
        x, y = args[0][0], args[1][0]
        gradient[0][0] = -2 * (1 - x) - 400 * x * (y - x**2)
        gradient[1][0] = 200 * (y - x**2)
        return self.evaluate(args)

    def evaluate_hessian(self, args, gradient, hessian):
        x, y = args[0][0], args[1][0]
        hessian[0][0][0, 0] = 2 - 400 * y + 1200 * x**2
        hessian[0][1][0, 0] = -400 * x
        hessian[1][0][0, 0] = -400 * x
        hessian[1][1][0, 0] = 200.0
        return self.evaluate_gradient(args, gradient)


def rosenbrock_chain(n: int, worker_count: int) -> Function:
    """Extended Rosenbrock over ``n`` scalars, one term per consecutive pair."""
    rng = np.random.default_rng(42)
    blocks = [np.array([v]) for v in rng.uniform(-1.0, 1.0, size=n)]
    f = Function(worker_count=worker_count)
    for b in blocks:
        f.register_variable(b)
    for b0, b1 in zip(blocks[:-1], blocks[1:]):
        f.add_term(RosenbrockTerm(), b0, b1)
    return f


# =============================================================================
# Plotting utilities
# =============================================================================


def plot_worker_scaling(
    data: ScalingData,
    title: str = "Gradient evaluation",
    save_path: Path | str | None = None,
    show: bool = False,
) -> None:
    """Plot evaluation time and speedup against problem size.

    Args:
        data: ScalingData with timing results.
        title: Plot title.
        save_path: Path to save the plot (optional).
        show: Whether to display the plot.
    """
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    ax1 = axes[0]
    for workers, times in sorted(data.times.items()):
        ax1.plot(data.sizes, times, marker="o", linewidth=2, label=f"{workers} worker(s)")
    if any(t > 0 for t in data.baseline_times):
        ax1.plot(
            data.sizes,
            data.baseline_times,
            marker="s",
            linestyle="--",
            linewidth=2,
            label="scipy.optimize.rosen_der",
        )
    ax1.set_xlabel("Problem Size (n)", fontsize=11)
    ax1.set_ylabel("Time (ms)", fontsize=11)
    ax1.set_title(f"{title} - Absolute Time", fontsize=12)
    ax1.legend()
    ax1.grid(True, alpha=0.3)
    ax1.set_xscale("log")
    ax1.set_yscale("log")

    ax2 = axes[1]
    for workers in sorted(data.times):
        if workers == 1:
            continue
        ax2.plot(data.sizes, data.speedups(workers), marker="o", linewidth=2, label=f"{workers}")
    ax2.axhline(y=1.0, color="red", linestyle="--", label="Parity (1x)")
    ax2.set_xlabel("Problem Size (n)", fontsize=11)
    ax2.set_ylabel("Speedup over 1 worker", fontsize=11)
    ax2.set_title(f"{title} - Speedup", fontsize=12)
    ax2.legend()
    ax2.grid(True, alpha=0.3)
    ax2.set_xscale("log")

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"Saved plot to {save_path}")

    if show:
        plt.show()
    else:
        plt.close()
