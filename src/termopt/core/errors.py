"""Exception hierarchy for termopt.

Every error raised by the library derives from :class:`TermoptError`. Most
classes also inherit from a built-in exception so callers can catch them the
usual way (``except ValueError``) without importing termopt.
"""

from __future__ import annotations

from typing import Any


class TermoptError(Exception):
    """Base class for all termopt errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.suggestion = suggestion
        if suggestion:
            message = f"{message}. Try: {suggestion}"
        super().__init__(message)


# =============================================================================
# Registration
# =============================================================================


class RegistrationError(TermoptError, ValueError):
    """A variable could not be registered."""


class DimensionMismatchError(RegistrationError):
    """A known block was re-registered with a different dimension.

    Args:
        recorded: The dimension recorded at first registration.
        requested: The dimension passed to the failing call.
    """

    def __init__(self, recorded: int, requested: int, suggestion: str | None = None) -> None:
        self.recorded = recorded
        self.requested = requested
        super().__init__(
            f"Dimension mismatch: variable was registered with dimension "
            f"{recorded}, got {requested}",
            suggestion,
        )


class TransformDimensionMismatchError(RegistrationError):
    """A transform's declared dimensions disagree with its variable.

    Args:
        expected: ``(user_dimension, solver_dimension)`` of the variable.
        got: ``(output_dimension, input_dimension)`` of the transform.
    """

    def __init__(
        self,
        expected: tuple[int, int | None],
        got: tuple[int, int],
    ) -> None:
        self.expected = expected
        self.got = got
        user_dim, solver_dim = expected
        if solver_dim is None:
            detail = f"user dimension {user_dim}"
        else:
            detail = f"user dimension {user_dim} and solver dimension {solver_dim}"
        super().__init__(
            f"Transform dimension mismatch: variable has {detail}, transform "
            f"maps {got[1]} -> {got[0]}"
        )


class InvalidBlockError(RegistrationError, TypeError):
    """The object passed as a parameter block cannot hold variable data."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Invalid parameter block: {reason}",
            suggestion="pass a 1-D numpy array of floats, e.g. np.zeros(n)",
        )


# =============================================================================
# Term graph
# =============================================================================


class GraphError(TermoptError, ValueError):
    """A term could not be added to the graph."""


class ArityMismatchError(GraphError):
    """The number of argument blocks differs from the term's arity."""

    def __init__(self, arity: int, received: int) -> None:
        self.arity = arity
        self.received = received
        super().__init__(
            f"Incorrect number of arguments: term expects {arity}, got {received}"
        )


class UnknownVariableError(GraphError):
    """A term argument refers to a block that was never registered."""

    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__(
            f"Unknown variable at argument {position}",
            suggestion="register the block with register_variable() before adding terms",
        )


class VariableDimensionMismatchError(GraphError):
    """A term argument's declared dimension differs from the variable's."""

    def __init__(self, position: int, term_dimension: int, variable_dimension: int) -> None:
        self.position = position
        self.term_dimension = term_dimension
        self.variable_dimension = variable_dimension
        super().__init__(
            f"Variable dimension does not match term at argument {position}: "
            f"term expects {term_dimension}, variable has {variable_dimension}"
        )


# =============================================================================
# Evaluation
# =============================================================================


class EvaluationError(TermoptError):
    """Base class for failures during evaluation."""


class HessianDisabledError(EvaluationError, RuntimeError):
    """A Hessian was requested from a function built without Hessian support."""

    def __init__(self) -> None:
        super().__init__(
            "Hessian computation is not enabled",
            suggestion="construct the Function with hessian_enabled=True",
        )


class NullHessianTargetError(EvaluationError, ValueError):
    """Sparse Hessian evaluation was called without a destination."""

    def __init__(self) -> None:
        super().__init__(
            "Sparse Hessian destination can not be None",
            suggestion="pass a SparseHessian() instance",
        )


class UnsupportedTransformError(EvaluationError, NotImplementedError):
    """A variable bound to a term carries a transform the operation can't handle.

    Args:
        operation: Name of the rejected operation (e.g. "Hessian").
        variable_index: Registration index of the offending variable.
    """

    def __init__(self, operation: str, variable_index: int) -> None:
        self.operation = operation
        self.variable_index = variable_index
        super().__init__(
            f"Change of variables not supported for {operation} "
            f"(variable {variable_index} has a transform)"
        )


class TermEvaluationError(EvaluationError, RuntimeError):
    """A term raised while being evaluated.

    Only the first failure observed after all workers joined is reported.

    Attributes:
        binding_index: Position of the failing binding in the term graph.
        term: The term that raised.
        original_error: The exception raised by the term.
    """

    def __init__(self, binding_index: int, term: Any, original_error: BaseException) -> None:
        self.binding_index = binding_index
        self.term = term
        self.original_error = original_error
        super().__init__(
            f"Term {binding_index} ({type(term).__name__}) failed: "
            f"{type(original_error).__name__}: {original_error}"
        )


class OutputShapeError(EvaluationError, ValueError):
    """An input or output array has the wrong shape."""

    def __init__(self, name: str, expected: tuple[int, ...], got: tuple[int, ...]) -> None:
        self.name = name
        self.expected = expected
        self.got = got
        super().__init__(f"Shape mismatch for {name}: expected {expected}, got {got}")


class OutputTypeError(EvaluationError, TypeError):
    """An output array can't receive float results in place."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(
            f"Invalid output array {name}: {reason}",
            suggestion="pass a writeable float64 array such as np.zeros(n)",
        )


class FunctionClosedError(TermoptError, RuntimeError):
    """A closed Function was used."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Can not {operation}: the Function has been closed",
            suggestion="build a new Function",
        )


# =============================================================================
# Configuration and resources
# =============================================================================


class ConfigError(TermoptError, ValueError):
    """Invalid engine configuration."""

    def __init__(self, setting: str, value: Any, reason: str) -> None:
        self.setting = setting
        self.value = value
        super().__init__(f"Invalid {setting}={value!r}: {reason}")


class StorageAllocationError(TermoptError, MemoryError):
    """Scratch storage for evaluation could not be allocated."""

    def __init__(self, what: str, shape: tuple[int, ...]) -> None:
        self.what = what
        self.shape = shape
        super().__init__(f"Could not allocate {what} of shape {shape}")
