"""Gradients assembled by Function agree with finite differences."""

import numpy as np
import pytest

from termopt import Box, Function, GreaterThan
from termopt.core.verification import (
    GradientCheckResult,
    gradient_check,
    numerical_gradient,
    verify_gradient,
)

from sample_terms import CircleTransform, SquareTerm


class TestNumericalGradient:
    def test_quadratic(self, coupled_function):
        f, _, _ = coupled_function
        grad = numerical_gradient(f, [3.0, 1.0, 2.0])
        np.testing.assert_allclose(grad, [4.0, -4.0, 4.0], rtol=1e-6)


class TestGradientCheck:
    """Analytic vs. central-difference gradients."""

    def test_coupled(self, coupled_function, rng):
        f, _, _ = coupled_function
        for _ in range(5):
            assert verify_gradient(f, rng.normal(size=3))

    def test_chain(self, chain_function):
        f = chain_function
        result = gradient_check(f, f.copy_user_to_global(), tol=1e-4)
        assert isinstance(result, GradientCheckResult)
        assert result.passed, result.max_rel_error

    def test_transformed_variables(self, rng):
        p = np.array([1.5, 0.2])
        q = np.array([0.3, -0.4])
        r = np.array([0.0, 1.0])
        f = Function(worker_count=2)
        f.register_variable(p, transform=GreaterThan(2, 0.0))
        f.register_variable(q, transform=Box(2, -1.0, 1.0))
        f.register_variable(r, transform=CircleTransform())
        f.add_term(SquareTerm(2), p)
        f.add_term(SquareTerm(2), q)
        f.add_term(SquareTerm(2), r)

        result = gradient_check(f, rng.normal(size=f.total_scalar_count()) * 0.5)
        assert result.passed, result.max_rel_error
        f.close()

    def test_detects_wrong_gradient(self):
        class WrongGradient(SquareTerm):
            def evaluate_gradient(self, args, gradient):
                gradient[0][:] = 3.0 * args[0]
                return self.evaluate(args)

        a = np.array([1.0])
        f = Function(worker_count=1)
        f.register_variable(a)
        f.add_term(WrongGradient(), a)

        result = gradient_check(f, [2.0])
        assert not result
        assert result.max_abs_error == pytest.approx(2.0, rel=1e-5)
