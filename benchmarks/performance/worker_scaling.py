"""Performance benchmark: evaluation time against problem size and worker count.

Compares gradient and Hessian evaluation of an extended Rosenbrock Function
with SciPy's vectorized reference implementation.
"""

from __future__ import annotations

import sys

import numpy as np
import pytest
from scipy.optimize import rosen, rosen_der

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])
from utils import rosenbrock_chain, time_function

from termopt import SparseHessian


SIZES = [100, 1_000, 10_000]
WORKERS = [1, 2, 4]


class TestGradientScaling:
    """Value and gradient evaluation."""

    @pytest.mark.parametrize("workers", WORKERS)
    @pytest.mark.parametrize("n", SIZES)
    def test_gradient(self, n: int, workers: int):
        f = rosenbrock_chain(n, workers)
        x = f.copy_user_to_global()
        g = np.zeros(n)

        timing = time_function(lambda: f.evaluate(x, g), n_warmup=2, n_runs=10)
        baseline = time_function(lambda: rosen_der(x), n_warmup=2, n_runs=10)

        print(f"\nn={n}, workers={workers}: {timing} (scipy: {baseline})")
        assert f.evaluate(x) == pytest.approx(rosen(x))
        np.testing.assert_allclose(g, rosen_der(x), rtol=1e-10)
        f.close()


class TestHessianScaling:
    """Sparse Hessian assembly."""

    @pytest.mark.parametrize("n", SIZES)
    def test_sparse_hessian(self, n: int):
        f = rosenbrock_chain(n, 2)
        x = f.copy_user_to_global()
        g = np.zeros(n)
        H = SparseHessian()

        timing = time_function(lambda: f.evaluate_sparse(x, g, H), n_warmup=1, n_runs=5)

        print(f"\nn={n}: {timing}, nnz={H.matrix.nnz}")
        # Tridiagonal: n diagonal entries plus 2 (n - 1) off-diagonal ones.
        assert H.matrix.nnz == 3 * n - 2
        f.close()
