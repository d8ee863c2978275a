"""Tests for the errors module."""

from __future__ import annotations

import pytest

from termopt.core.errors import (
    ArityMismatchError,
    ConfigError,
    DimensionMismatchError,
    EvaluationError,
    FunctionClosedError,
    GraphError,
    HessianDisabledError,
    InvalidBlockError,
    NullHessianTargetError,
    OutputShapeError,
    OutputTypeError,
    RegistrationError,
    StorageAllocationError,
    TermEvaluationError,
    TermoptError,
    TransformDimensionMismatchError,
    UnknownVariableError,
    UnsupportedTransformError,
    VariableDimensionMismatchError,
)

from sample_terms import SquareTerm


class TestTermoptError:
    """Test base exception class."""

    def test_is_exception(self):
        """TermoptError is an Exception."""
        assert issubclass(TermoptError, Exception)

    def test_message(self):
        """Error message is preserved."""
        assert str(TermoptError("test message")) == "test message"

    def test_suggestion(self):
        """Suggestions are appended to the message."""
        err = TermoptError("Something failed", suggestion="do it differently")
        assert str(err) == "Something failed. Try: do it differently"
        assert err.suggestion == "do it differently"


class TestHierarchy:
    """Every error is a TermoptError and a matching builtin."""

    @pytest.mark.parametrize(
        "error, bases",
        [
            (DimensionMismatchError(3, 2), (RegistrationError, ValueError)),
            (TransformDimensionMismatchError((2, 1), (2, 2)), (RegistrationError, ValueError)),
            (InvalidBlockError("bad"), (RegistrationError, TypeError)),
            (ArityMismatchError(2, 1), (GraphError, ValueError)),
            (UnknownVariableError(0), (GraphError, ValueError)),
            (VariableDimensionMismatchError(1, 2, 3), (GraphError, ValueError)),
            (HessianDisabledError(), (EvaluationError, RuntimeError)),
            (NullHessianTargetError(), (EvaluationError, ValueError)),
            (UnsupportedTransformError("Hessian", 0), (EvaluationError, NotImplementedError)),
            (OutputShapeError("x", (3,), (2,)), (EvaluationError, ValueError)),
            (OutputTypeError("gradient", "array is read-only"), (EvaluationError, TypeError)),
            (FunctionClosedError("evaluate"), (RuntimeError,)),
            (ConfigError("worker_count", 0, "must be at least 1"), (ValueError,)),
            (StorageAllocationError("scratch", (10,)), (MemoryError,)),
        ],
    )
    def test_bases(self, error, bases):
        assert isinstance(error, TermoptError)
        for base in bases:
            assert isinstance(error, base)


class TestMessages:
    """Messages carry the offending values."""

    def test_dimension_mismatch(self):
        err = DimensionMismatchError(3, 2)
        assert err.recorded == 3
        assert err.requested == 2
        assert "3" in str(err) and "2" in str(err)

    def test_transform_dimension_mismatch_new_variable(self):
        err = TransformDimensionMismatchError((3, None), (2, 1))
        assert "user dimension 3" in str(err)
        assert "1 -> 2" in str(err)

    def test_transform_dimension_mismatch_known_variable(self):
        err = TransformDimensionMismatchError((2, 1), (2, 2))
        assert "solver dimension 1" in str(err)

    def test_invalid_block_has_suggestion(self):
        err = InvalidBlockError("expected a 1-D array")
        assert "Try:" in str(err)

    def test_arity(self):
        err = ArityMismatchError(2, 3)
        assert "expects 2, got 3" in str(err)

    def test_variable_dimension(self):
        err = VariableDimensionMismatchError(1, 2, 3)
        assert err.position == 1
        assert "argument 1" in str(err)

    def test_hessian_disabled(self):
        assert "not enabled" in str(HessianDisabledError())

    def test_unsupported_transform(self):
        err = UnsupportedTransformError("Hessian", 4)
        assert err.operation == "Hessian"
        assert err.variable_index == 4
        assert str(err).startswith("Change of variables not supported for Hessian")

    def test_term_evaluation(self):
        term = SquareTerm()
        cause = ValueError("boom")
        err = TermEvaluationError(2, term, cause)
        assert err.binding_index == 2
        assert err.term is term
        assert err.original_error is cause
        assert str(err) == "Term 2 (SquareTerm) failed: ValueError: boom"

    def test_output_shape(self):
        err = OutputShapeError("hessian", (3, 3), (3, 2))
        assert str(err) == "Shape mismatch for hessian: expected (3, 3), got (3, 2)"

    def test_output_type(self):
        err = OutputTypeError("gradient", "dtype int64 is not floating point")
        assert err.name == "gradient"
        assert str(err).startswith(
            "Invalid output array gradient: dtype int64 is not floating point. Try: "
        )

    def test_function_closed(self):
        err = FunctionClosedError("evaluate")
        assert err.operation == "evaluate"
        assert str(err) == (
            "Can not evaluate: the Function has been closed. Try: build a new Function"
        )

    def test_config(self):
        err = ConfigError("worker_count", -1, "must be at least 1")
        assert err.setting == "worker_count"
        assert err.value == -1
        assert str(err) == "Invalid worker_count=-1: must be at least 1"

    def test_storage_allocation(self):
        err = StorageAllocationError("worker storage", (4, 100))
        assert "(4, 100)" in str(err)
