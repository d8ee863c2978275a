"""Gradient verification against finite differences.

Useful when writing new terms or transforms: compares the gradient a
Function assembles with central differences of its value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from termopt.function import Function


@dataclass
class GradientCheckResult:
    """Outcome of :func:`gradient_check`.

    Attributes:
        analytic: Gradient assembled by the function.
        numerical: Central difference estimate.
        max_abs_error: Largest absolute difference.
        max_rel_error: Largest difference relative to ``max(1, |numerical|)``.
        passed: Whether ``max_rel_error <= tol``.
    """

    analytic: NDArray[np.floating]
    numerical: NDArray[np.floating]
    max_abs_error: float
    max_rel_error: float
    passed: bool

    def __bool__(self) -> bool:
        return self.passed


def numerical_gradient(
    function: Function,
    x: ArrayLike,
    eps: float = 1e-6,
) -> NDArray[np.floating]:
    """Estimate the gradient of ``function`` at ``x`` by central differences."""
    x = np.asarray(x, dtype=float)
    grad = np.zeros_like(x)
    for i in range(x.size):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += eps
        x_minus[i] -= eps
        grad[i] = (function.evaluate(x_plus) - function.evaluate(x_minus)) / (2 * eps)
    return grad


def gradient_check(
    function: Function,
    x: ArrayLike,
    tol: float = 1e-5,
    eps: float = 1e-6,
) -> GradientCheckResult:
    """Compare the analytic gradient of ``function`` with finite differences.

    Example:
        >>> result = gradient_check(f, x)
        >>> assert result.passed, result.max_rel_error
    """
    x = np.asarray(x, dtype=float)
    _, analytic = function.value_and_gradient(x)
    numerical = numerical_gradient(function, x, eps)

    abs_error = np.abs(analytic - numerical)
    rel_error = abs_error / np.maximum(1.0, np.abs(numerical))
    max_abs = float(abs_error.max()) if abs_error.size else 0.0
    max_rel = float(rel_error.max()) if rel_error.size else 0.0

    return GradientCheckResult(
        analytic=analytic,
        numerical=numerical,
        max_abs_error=max_abs,
        max_rel_error=max_rel,
        passed=max_rel <= tol,
    )


def verify_gradient(function: Function, x: ArrayLike, tol: float = 1e-5) -> bool:
    """Shorthand for ``gradient_check(function, x, tol).passed``."""
    return gradient_check(function, x, tol).passed
