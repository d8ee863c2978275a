"""termopt: objectives as sums of terms, evaluated in parallel."""

from termopt.config import FunctionConfig, TermOwnership
from termopt.core.term import Term
from termopt.core.transforms import (
    Transform,
    Scaled,
    GreaterThan,
    LessThan,
    Box,
)
from termopt.core.interval import Interval
from termopt.core.engine import EvaluationStats, SparseHessian
from termopt.core.errors import (
    TermoptError,
    RegistrationError,
    DimensionMismatchError,
    TransformDimensionMismatchError,
    InvalidBlockError,
    GraphError,
    ArityMismatchError,
    UnknownVariableError,
    VariableDimensionMismatchError,
    EvaluationError,
    HessianDisabledError,
    NullHessianTargetError,
    UnsupportedTransformError,
    TermEvaluationError,
    OutputShapeError,
    OutputTypeError,
    FunctionClosedError,
    ConfigError,
    StorageAllocationError,
)
from termopt.function import Function
from termopt.solution import Solution, SolverStatus
from termopt.solvers.scipy_solver import solve_scipy

__version__ = "1.0.0"

__all__ = [
    # Core
    "Function",
    "FunctionConfig",
    "TermOwnership",
    "Term",
    "Transform",
    "Scaled",
    "GreaterThan",
    "LessThan",
    "Box",
    "Interval",
    "EvaluationStats",
    "SparseHessian",
    # Errors
    "TermoptError",
    "RegistrationError",
    "DimensionMismatchError",
    "TransformDimensionMismatchError",
    "InvalidBlockError",
    "GraphError",
    "ArityMismatchError",
    "UnknownVariableError",
    "VariableDimensionMismatchError",
    "EvaluationError",
    "HessianDisabledError",
    "NullHessianTargetError",
    "UnsupportedTransformError",
    "TermEvaluationError",
    "OutputShapeError",
    "OutputTypeError",
    "FunctionClosedError",
    "ConfigError",
    "StorageAllocationError",
    # Solving
    "Solution",
    "SolverStatus",
    "solve_scipy",
]
