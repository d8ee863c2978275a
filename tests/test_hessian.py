"""Tests for dense and sparse Hessian assembly."""

import numpy as np
import pytest

from termopt import (
    Function,
    HessianDisabledError,
    NullHessianTargetError,
    OutputShapeError,
    Scaled,
    SparseHessian,
    UnsupportedTransformError,
)

from sample_terms import CircleTransform, CoupledTerm, SquareTerm


COUPLED_HESSIAN = np.array(
    [
        [2.0, -2.0, 0.0],
        [-2.0, 2.0, 0.0],
        [0.0, 0.0, 2.0],
    ]
)


def _numerical_hessian(f, x, eps=1e-6):
    n = x.size
    H = np.zeros((n, n))
    for i in range(n):
        xp, xm = x.copy(), x.copy()
        xp[i] += eps
        xm[i] -= eps
        _, gp = f.value_and_gradient(xp)
        _, gm = f.value_and_gradient(xm)
        H[:, i] = (gp - gm) / (2 * eps)
    return H


class TestDenseHessian:
    """Hessian written into a caller-provided n x n array."""

    def test_coupled_hessian(self, coupled_function):
        f, _, _ = coupled_function
        g = np.zeros(3)
        H = np.full((3, 3), 5.0)

        value = f.evaluate([3.0, 1.0, 2.0], g, H)

        assert value == pytest.approx(8.0)
        np.testing.assert_allclose(g, [4.0, -4.0, 4.0])
        np.testing.assert_allclose(H, COUPLED_HESSIAN)

    def test_gradient_optional(self, coupled_function):
        f, _, _ = coupled_function
        H = np.zeros((3, 3))
        f.evaluate([3.0, 1.0, 2.0], hessian=H)
        np.testing.assert_allclose(H, COUPLED_HESSIAN)

    def test_chain_hessian_matches_finite_differences(self, chain_function):
        f = chain_function
        x = f.copy_user_to_global()
        n = x.size

        H = np.zeros((n, n))
        f.evaluate(x, np.zeros(n), H)

        np.testing.assert_allclose(H, _numerical_hessian(f, x), rtol=1e-5, atol=1e-5)

    def test_chain_hessian_is_symmetric(self, chain_function):
        f = chain_function
        n = f.total_scalar_count()
        H = np.zeros((n, n))
        f.evaluate(f.copy_user_to_global(), np.zeros(n), H)
        np.testing.assert_allclose(H, H.T)

    def test_overlapping_blocks_accumulate(self):
        a = np.array([1.0, 2.0])
        f = Function(worker_count=1)
        f.register_variable(a)
        f.add_term(SquareTerm(2), a)
        f.add_term(SquareTerm(2), a)

        H = np.zeros((2, 2))
        f.evaluate(a.copy(), np.zeros(2), H)
        np.testing.assert_allclose(H, 4.0 * np.eye(2))

    def test_repeated_evaluation_does_not_accumulate(self, coupled_function):
        f, _, _ = coupled_function
        H = np.zeros((3, 3))
        for _ in range(3):
            f.evaluate([3.0, 1.0, 2.0], np.zeros(3), H)
        np.testing.assert_allclose(H, COUPLED_HESSIAN)

    def test_wrong_hessian_shape(self, coupled_function):
        f, _, _ = coupled_function
        g = np.full(3, 7.0)
        with pytest.raises(OutputShapeError):
            f.evaluate([3.0, 1.0, 2.0], g, np.zeros((3, 2)))
        np.testing.assert_array_equal(g, [7.0, 7.0, 7.0])

    def test_value_gradient_hessian(self, coupled_function):
        f, _, _ = coupled_function
        value, g, H = f.value_gradient_hessian([3.0, 1.0, 2.0])
        assert value == pytest.approx(8.0)
        np.testing.assert_allclose(g, [4.0, -4.0, 4.0])
        np.testing.assert_allclose(H, COUPLED_HESSIAN)


class TestSparseHessian:
    """CSC assembly with duplicate coordinates summed."""

    def test_coupled_sparse(self, coupled_function):
        f, _, _ = coupled_function
        g = np.zeros(3)
        H = SparseHessian()

        value = f.evaluate_sparse([3.0, 1.0, 2.0], g, H)

        assert value == pytest.approx(8.0)
        assert H.matrix.format == "csc"
        assert H.shape == (3, 3)
        np.testing.assert_allclose(H.toarray(), COUPLED_HESSIAN)
        np.testing.assert_allclose(g, [4.0, -4.0, 4.0])

    def test_sparse_equals_dense(self, chain_function):
        f = chain_function
        x = f.copy_user_to_global()
        n = x.size

        H_dense = np.zeros((n, n))
        g_dense = np.zeros(n)
        v_dense = f.evaluate(x, g_dense, H_dense)

        H_sparse = SparseHessian()
        g_sparse = np.zeros(n)
        v_sparse = f.evaluate_sparse(x, g_sparse, H_sparse)

        assert v_sparse == pytest.approx(v_dense)
        np.testing.assert_allclose(g_sparse, g_dense)
        np.testing.assert_allclose(H_sparse.toarray(), H_dense)

    def test_explicit_zeros_kept(self, coupled_function):
        """Structural entries stay stored even when their value is zero."""
        f, _, _ = coupled_function
        H = SparseHessian()
        f.evaluate_sparse([3.0, 1.0, 2.0], np.zeros(3), H)
        assert H.matrix.nnz == 9
        assert H.nnz_hint == 9

    def test_sparse_helper(self, coupled_function):
        f, _, _ = coupled_function
        _, _, H = f.value_gradient_hessian([3.0, 1.0, 2.0], sparse=True)
        np.testing.assert_allclose(H.toarray(), COUPLED_HESSIAN)

    def test_unevaluated_destination(self):
        H = SparseHessian()
        assert H.shape is None
        assert "empty" in repr(H)
        with pytest.raises(ValueError):
            H.toarray()


class TestSparsityPattern:
    """Structure of the sparse Hessian without evaluating terms."""

    def test_pattern_matches_evaluated_structure(self, chain_function):
        f = chain_function
        n = f.total_scalar_count()

        pattern = f.hessian_sparsity_pattern().copy()
        H = SparseHessian()
        f.evaluate_sparse(f.copy_user_to_global(), np.zeros(n), H)
        valued = H.matrix.copy()

        pattern.sort_indices()
        valued.sort_indices()
        assert pattern.shape == valued.shape == (n, n)
        np.testing.assert_array_equal(pattern.indptr, valued.indptr)
        np.testing.assert_array_equal(pattern.indices, valued.indices)

    def test_pattern_values_count_contributions(self):
        a = np.zeros(2)
        b = np.zeros(1)
        f = Function(worker_count=1)
        f.register_variable(a)
        f.register_variable(b)
        f.add_term(SquareTerm(2), a)
        f.add_term(SquareTerm(2), a)
        f.add_term(SquareTerm(1), b)

        pattern = f.hessian_sparsity_pattern().toarray()

        np.testing.assert_array_equal(
            pattern,
            [
                [2.0, 2.0, 0.0],
                [2.0, 2.0, 0.0],
                [0.0, 0.0, 1.0],
            ],
        )

    def test_pattern_does_not_evaluate_terms(self, coupled_function):
        f, _, _ = coupled_function
        f.hessian_sparsity_pattern()
        assert f.stats.evaluations_with_gradient == 0
        assert f.stats.evaluations_without_gradient == 0

    def test_pattern_into_destination(self, coupled_function):
        f, _, _ = coupled_function
        H = SparseHessian()
        matrix = f.hessian_sparsity_pattern(H)
        assert matrix is H.matrix
        np.testing.assert_array_equal(H.toarray(), np.ones((3, 3)))

    def test_pattern_available_without_hessian_support(self):
        a = np.zeros(2)
        f = Function(worker_count=1, hessian_enabled=False)
        f.register_variable(a)
        f.add_term(SquareTerm(2), a)
        np.testing.assert_array_equal(f.hessian_sparsity_pattern().toarray(), np.ones((2, 2)))

    def test_pattern_rejects_dimension_changing_transform(self):
        a = np.array([1.0, 0.0])
        b = np.zeros(1)
        f = Function(worker_count=1)
        f.register_variable(a, 2, CircleTransform())
        f.register_variable(b)
        f.add_term(SquareTerm(2), a)

        H = SparseHessian()
        with pytest.raises(UnsupportedTransformError, match="sparsity pattern"):
            f.hessian_sparsity_pattern(H)
        assert H.matrix is None

    def test_pattern_rejects_transform_on_last_variable(self):
        a = np.array([1.0, 0.0])
        f = Function(worker_count=1)
        f.register_variable(a, 2, CircleTransform())
        f.add_term(SquareTerm(2), a)

        with pytest.raises(UnsupportedTransformError) as exc_info:
            f.hessian_sparsity_pattern()
        assert exc_info.value.variable_index == 0

    def test_pattern_ignores_unbound_transformed_variable(self):
        a = np.zeros(1)
        unused = np.array([6.0])
        f = Function(worker_count=1)
        f.register_variable(a)
        f.register_variable(unused, transform=Scaled(1, 2.0))
        f.add_term(SquareTerm(), a)

        np.testing.assert_array_equal(
            f.hessian_sparsity_pattern().toarray(), [[1.0, 0.0], [0.0, 0.0]]
        )

    def test_empty_pattern(self):
        f = Function(worker_count=1)
        f.register_variable(np.zeros(2))
        pattern = f.hessian_sparsity_pattern()
        assert pattern.shape == (2, 2)
        assert pattern.nnz == 0


class TestPreconditions:
    """Failed Hessian requests leave every output untouched."""

    @pytest.fixture
    def disabled(self):
        a = np.array([3.0])
        b = np.array([1.0, 2.0])
        f = Function(worker_count=1, hessian_enabled=False)
        f.register_variable(a)
        f.register_variable(b)
        f.add_term(CoupledTerm(), a, b)
        yield f
        f.close()

    def test_disabled_dense(self, disabled):
        g = np.full(3, 7.0)
        H = np.full((3, 3), 7.0)
        with pytest.raises(HessianDisabledError):
            disabled.evaluate([3.0, 1.0, 2.0], g, H)
        np.testing.assert_array_equal(g, np.full(3, 7.0))
        np.testing.assert_array_equal(H, np.full((3, 3), 7.0))

    def test_disabled_sparse(self, disabled):
        g = np.full(3, 7.0)
        H = SparseHessian()
        with pytest.raises(HessianDisabledError):
            disabled.evaluate_sparse([3.0, 1.0, 2.0], g, H)
        np.testing.assert_array_equal(g, np.full(3, 7.0))
        assert H.matrix is None

    def test_disabled_still_evaluates_gradient(self, disabled):
        g = np.zeros(3)
        assert disabled.evaluate([3.0, 1.0, 2.0], g) == pytest.approx(8.0)
        np.testing.assert_allclose(g, [4.0, -4.0, 4.0])

    def test_null_destination_checked_first(self, disabled):
        g = np.full(3, 7.0)
        with pytest.raises(NullHessianTargetError):
            disabled.evaluate_sparse([3.0, 1.0, 2.0], g, None)
        np.testing.assert_array_equal(g, np.full(3, 7.0))

    def test_null_destination_when_enabled(self, coupled_function):
        f, _, _ = coupled_function
        with pytest.raises(NullHessianTargetError):
            f.evaluate_sparse([3.0, 1.0, 2.0], np.zeros(3), None)

    def test_transform_sparse(self):
        a = np.array([6.0])
        f = Function(worker_count=1)
        f.register_variable(a, 1, Scaled(1, 2.0))
        f.add_term(SquareTerm(), a)

        g = np.full(1, 7.0)
        H = SparseHessian()
        with pytest.raises(UnsupportedTransformError):
            f.evaluate_sparse([3.0], g, H)
        np.testing.assert_array_equal(g, [7.0])
        assert H.matrix is None

    def test_unbound_transformed_variable_is_allowed(self):
        """Only variables used by some term are checked for transforms."""
        a = np.array([1.0])
        unused = np.array([6.0])
        f = Function(worker_count=1)
        f.register_variable(a)
        f.register_variable(unused, transform=Scaled(1, 2.0))
        f.add_term(SquareTerm(), a)

        H = np.zeros((2, 2))
        f.evaluate([1.0, 3.0], np.zeros(2), H)
        np.testing.assert_allclose(H, [[2.0, 0.0], [0.0, 0.0]])
