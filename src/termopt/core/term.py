"""The Term capability.

A term is one independently evaluable summand of an objective. It declares
how many arguments it takes and the dimension of each, and computes its
value, gradient and Hessian blocks from the current argument values.

Terms write derivatives into caller-provided buffers. The engine zeroes the
buffers before every call, so a term may either assign or accumulate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from termopt.core.interval import Interval


class Term(ABC):
    """Abstract base class for objective terms.

    Subclasses must implement :meth:`arity`, :meth:`argument_dimension`,
    :meth:`evaluate` and :meth:`evaluate_gradient`. :meth:`evaluate_hessian`
    is required only when the term is used with Hessian evaluation, and
    :meth:`evaluate_interval` only for interval evaluation.

    Example:
        >>> class Square(Term):
        ...     def arity(self):
        ...         return 1
        ...     def argument_dimension(self, k):
        ...         return 1
        ...     def evaluate(self, args):
        ...         return float(args[0][0] ** 2)
        ...     def evaluate_gradient(self, args, gradient):
        ...         gradient[0][0] = 2 * args[0][0]
        ...         return self.evaluate(args)
    """

    @abstractmethod
    def arity(self) -> int:
        """Number of variables the term depends on."""

    @abstractmethod
    def argument_dimension(self, k: int) -> int:
        """Dimension of argument ``k``."""

    @abstractmethod
    def evaluate(self, args: Sequence[NDArray[np.floating]]) -> float:
        """Compute the term's value."""

    @abstractmethod
    def evaluate_gradient(
        self,
        args: Sequence[NDArray[np.floating]],
        gradient: Sequence[NDArray[np.floating]],
    ) -> float:
        """Compute the value and write ``d term / d args[k]`` into ``gradient[k]``."""

    def evaluate_hessian(
        self,
        args: Sequence[NDArray[np.floating]],
        gradient: Sequence[NDArray[np.floating]],
        hessian: Sequence[Sequence[NDArray[np.floating]]],
    ) -> float:
        """Compute value, gradient and Hessian blocks.

        ``hessian[i][j]`` has shape ``(argument_dimension(i),
        argument_dimension(j))`` and receives ``d2 term / d args[i] d args[j]``.
        """
        raise NotImplementedError(f"{type(self).__name__} does not provide a Hessian")

    def evaluate_interval(self, args: Sequence[Sequence[Interval]]) -> Interval:
        """Compute an enclosure of the value given one interval per argument scalar."""
        raise NotImplementedError(
            f"{type(self).__name__} does not support interval evaluation"
        )

    def close(self) -> None:
        """Release resources held by the term. Called once by an owning Function."""

    def __repr__(self) -> str:
        dims = ", ".join(str(self.argument_dimension(k)) for k in range(self.arity()))
        return f"{type(self).__name__}(dimensions=[{dims}])"
