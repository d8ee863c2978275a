"""Shared fixtures for the test suite."""

from __future__ import annotations

import numpy as np
import pytest

from termopt import Function

from sample_terms import BilinearTerm, CoupledTerm, RosenbrockTerm, SquareTerm


# =============================================================================
# Standard test functions
# =============================================================================


@pytest.fixture
def coupled_function():
    """f(a, b) = (a - b[0])^2 + b[1]^2 with a at offset 0 and b at offset 1.

    Returns:
        (function, a, b)
    """
    a = np.array([3.0])
    b = np.array([1.0, 2.0])
    f = Function(worker_count=1)
    f.register_variable(a)
    f.register_variable(b)
    f.add_term(CoupledTerm(), a, b)
    yield f, a, b
    f.close()


@pytest.fixture
def chain_function():
    """Rosenbrock chain over 6 scalars plus a few squares and bilinear couplings.

    Variables are shared between several terms, so Hessian blocks overlap.
    """
    rng = np.random.default_rng(42)
    scalars = [np.array([v]) for v in rng.uniform(-1.0, 1.0, size=6)]
    u = rng.uniform(-1.0, 1.0, size=3)
    v = rng.uniform(-1.0, 1.0, size=2)

    f = Function(worker_count=1)
    for s in scalars:
        f.register_variable(s)
    f.register_variable(u)
    f.register_variable(v)

    for s0, s1 in zip(scalars[:-1], scalars[1:]):
        f.add_term(RosenbrockTerm(), s0, s1)
    f.add_term(SquareTerm(3), u)
    f.add_term(SquareTerm(2), v)
    f.add_term(BilinearTerm(rng.normal(size=(3, 2))), u, v)
    f.add_term(BilinearTerm(rng.normal(size=(1, 3))), scalars[0], u)

    yield f
    f.close()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
