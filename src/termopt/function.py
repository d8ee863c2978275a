"""Function: a sum of terms over caller-owned parameter blocks.

This is the object an optimizer talks to. Variables are registered first,
then terms referring to them are added, then the function can be evaluated
at points of the flat optimization space.

Example:
    >>> import numpy as np
    >>> from termopt import Function
    >>> a = np.array([3.0])
    >>> b = np.array([1.0, 2.0])
    >>> f = Function(worker_count=1)
    >>> f.register_variable(a)
    >>> f.register_variable(b)
    >>> f.add_term(MyTerm(), a, b)
    >>> x = f.copy_user_to_global()
    >>> g = np.zeros(f.total_scalar_count())
    >>> value = f.evaluate(x, g)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from termopt.config import FunctionConfig, TermOwnership
from termopt.core.engine import EvaluationEngine, EvaluationStats, SparseHessian
from termopt.core.errors import FunctionClosedError
from termopt.core.graph import TermGraph
from termopt.core.registry import VariableRegistry
from termopt.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from scipy.sparse import csc_matrix

    from termopt.core.interval import Interval
    from termopt.core.term import Term
    from termopt.core.transforms import Transform

logger = get_logger(__name__)


class Function:
    """An objective built as a sum of terms.

    Args:
        config: Base configuration. Defaults to ``FunctionConfig()``.
        hessian_enabled: Override ``config.hessian_enabled``.
        worker_count: Override ``config.worker_count``.
        term_ownership: Override ``config.term_ownership``.

    Evaluation calls on one instance must not run concurrently from
    several threads; the instance parallelizes internally.
    """

    def __init__(
        self,
        config: FunctionConfig | None = None,
        *,
        hessian_enabled: bool | None = None,
        worker_count: int | None = None,
        term_ownership: TermOwnership | None = None,
    ) -> None:
        config = (config or FunctionConfig()).with_overrides(
            hessian_enabled=hessian_enabled,
            worker_count=worker_count,
            term_ownership=term_ownership,
        )
        self.config = config
        self._registry = VariableRegistry()
        self._graph = TermGraph()
        self._engine = EvaluationEngine(
            self._registry,
            self._graph,
            worker_count=config.resolved_worker_count(),
            hessian_enabled=config.hessian_enabled,
        )
        self._closed = False

    # =========================================================================
    # Building
    # =========================================================================

    def register_variable(
        self,
        block: NDArray[np.floating],
        dimension: int | None = None,
        transform: Transform | None = None,
    ) -> None:
        """Register a parameter block, or change the transform of a known one.

        Args:
            block: 1-D float array owned by the caller. Its identity, not
                its contents, identifies the variable.
            dimension: User-space dimension. Defaults to ``block.size``.
            transform: Optional change of variables. The Function takes
                ownership and closes it when replaced or on ``close()``.

        Raises:
            DimensionMismatchError: ``block`` is known with another dimension.
            TransformDimensionMismatchError: The transform doesn't fit.
            InvalidBlockError: ``block`` is not a usable array.
        """
        self._check_open("register a variable")
        self._engine.invalidate()
        self._registry.register(block, dimension, transform)

    add_variable = register_variable

    def add_term(self, term: Term, *blocks: NDArray[np.floating] | Sequence) -> None:
        """Add ``term`` evaluated on the given blocks.

        Blocks may be given as separate arguments or as a single list.

        Raises:
            ArityMismatchError: Wrong number of blocks.
            UnknownVariableError: A block has not been registered.
            VariableDimensionMismatchError: A block's dimension does not match
                the term's argument dimension.
        """
        self._check_open("add a term")
        if len(blocks) == 1 and isinstance(blocks[0], (list, tuple)):
            blocks = tuple(blocks[0])
        self._engine.invalidate()
        self._graph.add(term, blocks, self._registry, allocate_hessian=self.hessian_enabled)

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(
        self,
        x: ArrayLike,
        gradient: NDArray[np.floating] | None = None,
        hessian: NDArray[np.floating] | None = None,
    ) -> float:
        """Evaluate at ``x`` in optimization space.

        Args:
            x: Point of length ``total_scalar_count()``.
            gradient: If given, overwritten with the gradient.
            hessian: If given, overwritten with the dense Hessian.

        Returns:
            The function value.

        Raises:
            HessianDisabledError: ``hessian`` given but Hessian support is off.
            UnsupportedTransformError: ``hessian`` given while a variable used
                by a term has a transform.
            TermEvaluationError: A term raised.
        """
        self._check_open("evaluate")
        if gradient is None and hessian is None:
            return self._engine.evaluate_value(x)
        if gradient is None:
            gradient = np.zeros(self.total_scalar_count())
        return self._engine.evaluate(x, gradient, hessian)

    def evaluate_sparse(
        self,
        x: ArrayLike,
        gradient: NDArray[np.floating],
        hessian: SparseHessian | None,
    ) -> float:
        """Evaluate value, gradient and sparse Hessian at ``x``.

        Raises:
            NullHessianTargetError: ``hessian`` is None. Checked first.
            HessianDisabledError: Hessian support is off.
            UnsupportedTransformError: A variable used by a term has a transform.
            TermEvaluationError: A term raised.
        """
        self._check_open("evaluate")
        return self._engine.evaluate_sparse(x, gradient, hessian)

    def evaluate_user(self) -> float:
        """Evaluate at the values currently stored in the caller's blocks.

        Transforms are ignored: the blocks already hold user-space values.
        """
        self._check_open("evaluate")
        return self._engine.evaluate_value(None)

    def evaluate_interval(self, x: Sequence[Interval | tuple[float, float]]) -> Interval:
        """Certified enclosure of the value over the box ``x``."""
        self._check_open("evaluate")
        return self._engine.evaluate_interval(x)

    def value_and_gradient(self, x: ArrayLike) -> tuple[float, NDArray[np.floating]]:
        """Value and a freshly allocated gradient at ``x``."""
        self._check_open("evaluate")
        gradient = np.zeros(self.total_scalar_count())
        value = self._engine.evaluate(x, gradient)
        return value, gradient

    def value_gradient_hessian(
        self, x: ArrayLike, sparse: bool = False
    ) -> tuple[float, NDArray[np.floating], NDArray[np.floating] | csc_matrix]:
        """Value, gradient and Hessian (dense array or CSC matrix) at ``x``."""
        self._check_open("evaluate")
        n = self.total_scalar_count()
        gradient = np.zeros(n)
        if sparse:
            target = SparseHessian()
            value = self._engine.evaluate_sparse(x, gradient, target)
            return value, gradient, target.matrix
        hessian = np.zeros((n, n))
        value = self._engine.evaluate(x, gradient, hessian)
        return value, gradient, hessian

    def hessian_sparsity_pattern(self, hessian: SparseHessian | None = None) -> csc_matrix:
        """Structure of the sparse Hessian, without evaluating any term."""
        self._check_open("build the Hessian sparsity pattern")
        return self._engine.sparsity_pattern(hessian)

    # =========================================================================
    # Caller storage
    # =========================================================================

    def copy_user_to_global(self) -> NDArray[np.floating]:
        """Optimization-space vector for the values in the caller's blocks."""
        self._check_open("copy variables")
        return self._engine.copy_user_to_global()

    def copy_global_to_user(self, x: ArrayLike) -> None:
        """Write the point ``x`` back into the caller's blocks."""
        self._check_open("copy variables")
        self._engine.copy_global_to_user(x)

    # =========================================================================
    # Introspection and configuration
    # =========================================================================

    def total_scalar_count(self) -> int:
        """Length of the optimization-space vector."""
        return self._registry.total_scalars()

    def variable_count(self) -> int:
        return self._registry.count()

    def term_count(self) -> int:
        return self._graph.size()

    @property
    def hessian_enabled(self) -> bool:
        return self.config.hessian_enabled

    @property
    def worker_count(self) -> int:
        return self._engine.worker_count

    def set_worker_count(self, n: int) -> None:
        """Change the number of evaluation threads.

        Raises:
            ConfigError: ``n`` is not a positive integer.
        """
        self._check_open("change the worker count")
        self._engine.set_worker_count(n)

    @property
    def stats(self) -> EvaluationStats:
        return self._engine.stats

    def timing_report(self) -> str:
        report = self._engine.stats.report()
        logger.debug("Timing:\n%s", report)
        return report

    # =========================================================================
    # Lifetime
    # =========================================================================

    def close(self) -> None:
        """Release owned terms and transforms and stop the worker pool.

        Each distinct term is closed once even if used by several bindings.
        Safe to call more than once. Afterwards building, evaluating and
        copying raise FunctionClosedError.
        """
        if self._closed:
            return
        self._closed = True
        self._engine.close()
        if self.config.term_ownership is TermOwnership.OWNED:
            self._graph.close()
        self._registry.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise FunctionClosedError(operation)

    def __enter__(self) -> Function:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Function(variables={self.variable_count()}, "
            f"scalars={self.total_scalar_count()}, terms={self.term_count()}, "
            f"workers={self.worker_count})"
        )
