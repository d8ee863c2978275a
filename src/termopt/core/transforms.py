"""Changes of variables.

A transform lets a term see a convenient representation of a variable (the
*user space*, ``x``) while the solver works in a different one (the
*optimization space*, ``t``). The function maps ``t -> x`` before terms are
evaluated and pulls the term's gradient back to ``t`` with the chain rule.

The concrete transforms here act element-wise and are typically used to
impose simple bounds on otherwise unconstrained solvers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class Transform(ABC):
    """Abstract change of variables ``x = f(t)``.

    ``input_dimension`` is the size of ``t`` (what the solver sees) and
    ``output_dimension`` the size of ``x`` (what the terms see).
    """

    @abstractmethod
    def input_dimension(self) -> int:
        """Dimension of the optimization-space representation."""

    @abstractmethod
    def output_dimension(self) -> int:
        """Dimension of the user-space representation."""

    @abstractmethod
    def to_user(self, out: NDArray[np.floating], t: NDArray[np.floating]) -> None:
        """Write ``f(t)`` into ``out``."""

    @abstractmethod
    def to_optimization(self, out: NDArray[np.floating], x: NDArray[np.floating]) -> None:
        """Write ``f^-1(x)`` into ``out``."""

    @abstractmethod
    def project_gradient(
        self,
        accumulator: NDArray[np.floating],
        t: NDArray[np.floating],
        user_gradient: NDArray[np.floating],
    ) -> None:
        """Add ``J_f(t)^T @ user_gradient`` to ``accumulator``."""

    def close(self) -> None:
        """Release resources. Called when the transform is replaced or its Function closes."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.input_dimension()} -> "
            f"{self.output_dimension()})"
        )


class ElementwiseTransform(Transform):
    """Base for transforms applying the same scalar map to every element.

    Subclasses implement ``_forward``, ``_inverse`` and ``_derivative`` on
    whole arrays.
    """

    __slots__ = ("dimension",)

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError(f"Dimension must be positive, got {dimension}")
        self.dimension = dimension

    def input_dimension(self) -> int:
        return self.dimension

    def output_dimension(self) -> int:
        return self.dimension

    def to_user(self, out, t):
        out[:] = self._forward(np.asarray(t, dtype=float))

    def to_optimization(self, out, x):
        out[:] = self._inverse(np.asarray(x, dtype=float))

    def project_gradient(self, accumulator, t, user_gradient):
        accumulator += user_gradient * self._derivative(np.asarray(t, dtype=float))

    @abstractmethod
    def _forward(self, t: NDArray[np.floating]) -> NDArray[np.floating]: ...

    @abstractmethod
    def _inverse(self, x: NDArray[np.floating]) -> NDArray[np.floating]: ...

    @abstractmethod
    def _derivative(self, t: NDArray[np.floating]) -> NDArray[np.floating]: ...


class Scaled(ElementwiseTransform):
    """``x = factor * t``.

    Useful for rescaling badly conditioned variables.
    """

    __slots__ = ("factor",)

    def __init__(self, dimension: int, factor: float) -> None:
        super().__init__(dimension)
        if factor == 0:
            raise ValueError("Scale factor must be non-zero")
        self.factor = float(factor)

    def _forward(self, t):
        return self.factor * t

    def _inverse(self, x):
        return x / self.factor

    def _derivative(self, t):
        return np.full_like(t, self.factor)


class GreaterThan(ElementwiseTransform):
    """``x = bound + exp(t)``, so that ``x > bound``."""

    __slots__ = ("bound",)

    def __init__(self, dimension: int, bound: float = 0.0) -> None:
        super().__init__(dimension)
        self.bound = float(bound)

    def _forward(self, t):
        return self.bound + np.exp(t)

    def _inverse(self, x):
        return np.log(x - self.bound)

    def _derivative(self, t):
        return np.exp(t)


class LessThan(ElementwiseTransform):
    """``x = bound - exp(t)``, so that ``x < bound``."""

    __slots__ = ("bound",)

    def __init__(self, dimension: int, bound: float = 0.0) -> None:
        super().__init__(dimension)
        self.bound = float(bound)

    def _forward(self, t):
        return self.bound - np.exp(t)

    def _inverse(self, x):
        return np.log(self.bound - x)

    def _derivative(self, t):
        return -np.exp(t)


class Box(ElementwiseTransform):
    """``x = lower + (upper - lower) * (sin(t) + 1) / 2``, so ``lower <= x <= upper``."""

    __slots__ = ("lower", "upper")

    def __init__(self, dimension: int, lower: float, upper: float) -> None:
        super().__init__(dimension)
        if not lower < upper:
            raise ValueError(f"Box requires lower < upper, got [{lower}, {upper}]")
        self.lower = float(lower)
        self.upper = float(upper)

    def _forward(self, t):
        return self.lower + (self.upper - self.lower) * (np.sin(t) + 1.0) / 2.0

    def _inverse(self, x):
        s = 2.0 * (x - self.lower) / (self.upper - self.lower) - 1.0
        return np.arcsin(np.clip(s, -1.0, 1.0))

    def _derivative(self, t):
        return (self.upper - self.lower) * np.cos(t) / 2.0
