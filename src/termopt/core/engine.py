"""Evaluation engine.

Evaluates a term graph at a point of the optimization space and assembles
value, gradient and dense or sparse Hessian.

Evaluation proceeds in three phases:

1. Copy-in: the optimization-space vector is split into per-variable
   user-space scratch values, applying each variable's transform.
2. Parallel term evaluation: bindings are split into contiguous chunks, one
   per worker. Each worker owns a gradient accumulator and a gradient
   scratch, so no buffer is written by two threads. Workers catch term
   failures and report them in their outcome instead of raising.
3. Join and assembly: after all workers finish, the first reported failure
   is raised. Otherwise the worker gradients are summed and the Hessian is
   assembled serially on the calling thread.

Results do not depend on how bindings are partitioned, up to floating point
summation order.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence

import numpy as np
from scipy import sparse

from termopt.config import validate_worker_count
from termopt.core.errors import (
    HessianDisabledError,
    NullHessianTargetError,
    OutputShapeError,
    OutputTypeError,
    StorageAllocationError,
    TermEvaluationError,
    UnsupportedTransformError,
)
from termopt.core.interval import Interval
from termopt.core.registry import first_transformed
from termopt.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from termopt.core.graph import TermBinding, TermGraph
    from termopt.core.registry import VariableRecord, VariableRegistry

logger = get_logger(__name__)


class _Mode(Enum):
    VALUE = "value"
    GRADIENT = "gradient"
    HESSIAN = "hessian"


@dataclass
class EvaluationStats:
    """Counters and wall-clock timings accumulated over evaluations.

    Times are in seconds.
    """

    evaluations_without_gradient: int = 0
    evaluations_with_gradient: int = 0
    evaluate_time: float = 0.0
    evaluate_with_hessian_time: float = 0.0
    write_gradient_hessian_time: float = 0.0
    copy_time: float = 0.0

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, f.default)

    def report(self) -> str:
        """Human-readable summary, one counter per line."""
        return "\n".join(
            [
                f"Function evaluations without gradient : {self.evaluations_without_gradient}",
                f"Function evaluations with gradient    : {self.evaluations_with_gradient}",
                f"Function evaluate time            : {self.evaluate_time:.6g}",
                f"Function evaluate time (with g/H) : {self.evaluate_with_hessian_time:.6g}",
                f"Function write g/H time           : {self.write_gradient_hessian_time:.6g}",
                f"Function copy data time           : {self.copy_time:.6g}",
            ]
        )


class SparseHessian:
    """Destination for sparse Hessian evaluation.

    After a successful evaluation ``matrix`` holds an ``n x n``
    ``scipy.sparse.csc_matrix``. ``nnz_hint`` is the number of coordinates
    gathered by the last assembly (before duplicates were summed).

    Example:
        >>> H = SparseHessian()
        >>> f.evaluate_sparse(x, g, H)
        >>> H.matrix.toarray()
    """

    __slots__ = ("matrix", "nnz_hint")

    def __init__(self) -> None:
        self.matrix: sparse.csc_matrix | None = None
        self.nnz_hint = 0

    @property
    def shape(self) -> tuple[int, int] | None:
        return None if self.matrix is None else self.matrix.shape

    def toarray(self) -> NDArray[np.floating]:
        if self.matrix is None:
            raise ValueError("SparseHessian has not been evaluated yet")
        return self.matrix.toarray()

    def __repr__(self) -> str:
        if self.matrix is None:
            return "SparseHessian(empty)"
        return f"SparseHessian(shape={self.matrix.shape}, nnz={self.matrix.nnz})"


@dataclass
class _WorkerStorage:
    gradient: NDArray[np.floating]
    scratch: NDArray[np.floating]


@dataclass
class _WorkerOutcome:
    value: float = 0.0
    error: Exception | None = None
    binding_index: int = -1


@dataclass
class _Coordinates:
    rows: NDArray[np.intp] = field(default_factory=lambda: np.zeros(0, dtype=np.intp))
    cols: NDArray[np.intp] = field(default_factory=lambda: np.zeros(0, dtype=np.intp))


class EvaluationEngine:
    """Evaluates the terms of a graph over the variables of a registry.

    Args:
        registry: Registered variables.
        graph: Term bindings to evaluate.
        worker_count: Number of evaluation threads (>= 1).
        hessian_enabled: Whether Hessian evaluation is allowed.
    """

    def __init__(
        self,
        registry: VariableRegistry,
        graph: TermGraph,
        worker_count: int = 1,
        hessian_enabled: bool = True,
    ) -> None:
        self._registry = registry
        self._graph = graph
        self._worker_count = validate_worker_count(worker_count)
        self.hessian_enabled = hessian_enabled
        self.stats = EvaluationStats()

        self._storage: list[_WorkerStorage] | None = None
        self._coordinates: _Coordinates | None = None
        self._executor: ThreadPoolExecutor | None = None

    # =========================================================================
    # Storage and worker pool
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def set_worker_count(self, n: int) -> None:
        """Change the number of worker threads.

        Storage is reallocated lazily before the next evaluation.
        """
        n = validate_worker_count(n)
        if n == self._worker_count:
            return
        logger.debug("Worker count %d -> %d", self._worker_count, n)
        self._shutdown_executor()
        self._worker_count = n
        self.invalidate()

    def invalidate(self) -> None:
        """Drop cached storage after the variable or term set changed."""
        self._storage = None
        self._coordinates = None

    def close(self) -> None:
        self._shutdown_executor()
        self.invalidate()

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _ensure_storage(self) -> list[_WorkerStorage]:
        if self._storage is not None:
            return self._storage

        n = self._registry.total_scalars()
        max_arity = self._graph.max_arity()
        max_dimension = self._registry.max_user_dimension()
        try:
            storage = [
                _WorkerStorage(
                    gradient=np.zeros(n),
                    scratch=np.zeros((max_arity, max_dimension)),
                )
                for _ in range(self._worker_count)
            ]
        except MemoryError:
            raise StorageAllocationError(
                "worker storage", (self._worker_count, n + max_arity * max_dimension)
            ) from None

        if self._worker_count > 1 and self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._worker_count, thread_name_prefix="termopt-worker"
            )

        logger.debug(
            "Allocated storage for %d worker(s): %d scalars, arity %d, dimension %d",
            self._worker_count,
            n,
            max_arity,
            max_dimension,
        )
        self._storage = storage
        return storage

    # =========================================================================
    # Copying between optimization space, scratch and caller storage
    # =========================================================================

    def copy_global_to_local(self, x: NDArray[np.floating]) -> None:
        """Fill each variable's scratch from the optimization-space vector."""
        start = time.perf_counter()
        for var in self._registry:
            t = x[var.solver_slice]
            if var.transform is None:
                var.scratch[:] = t
            else:
                var.transform.to_user(var.scratch, t)
        self.stats.copy_time += time.perf_counter() - start

    def copy_user_to_local(self) -> None:
        """Fill each variable's scratch from caller storage. Transforms are ignored."""
        start = time.perf_counter()
        for var in self._registry:
            var.scratch[:] = var.user_values
        self.stats.copy_time += time.perf_counter() - start

    def copy_global_to_user(self, x: ArrayLike) -> None:
        """Write the user-space value of ``x`` into the caller's blocks."""
        x = self._check_point(x)
        start = time.perf_counter()
        for var in self._registry:
            t = x[var.solver_slice]
            if var.transform is None:
                var.user_values[:] = t
            else:
                var.transform.to_user(var.user_values, t)
        self.stats.copy_time += time.perf_counter() - start

    def copy_user_to_global(self) -> NDArray[np.floating]:
        """Build the optimization-space vector from the caller's blocks."""
        start = time.perf_counter()
        x = np.zeros(self._registry.total_scalars())
        for var in self._registry:
            if var.transform is None:
                x[var.solver_slice] = var.user_values
            else:
                var.transform.to_optimization(x[var.solver_slice], var.user_values)
        self.stats.copy_time += time.perf_counter() - start
        return x

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_value(self, x: ArrayLike | None = None) -> float:
        """Function value at ``x``, or at the caller's current storage if None."""
        self._ensure_storage()
        if x is None:
            self.copy_user_to_local()
        else:
            self.copy_global_to_local(self._check_point(x))

        self.stats.evaluations_without_gradient += 1
        start = time.perf_counter()
        value = self._run_workers(_Mode.VALUE, None)
        self.stats.evaluate_time += time.perf_counter() - start
        return value

    def evaluate(
        self,
        x: ArrayLike,
        gradient: NDArray[np.floating],
        hessian: NDArray[np.floating] | None = None,
    ) -> float:
        """Value, gradient and optionally dense Hessian at ``x``.

        ``gradient`` (shape ``(n,)``) and ``hessian`` (shape ``(n, n)``) are
        overwritten in place.

        Raises:
            HessianDisabledError: Hessian requested but support is disabled.
            UnsupportedTransformError: Hessian requested while a bound
                variable has a transform.
            OutputShapeError: An array has the wrong shape.
            OutputTypeError: An output array is not a writeable float array.
            TermEvaluationError: A term raised during evaluation.
        """
        if hessian is not None:
            self._check_hessian_allowed()
        n = self._registry.total_scalars()
        x = self._check_point(x)
        _check_output("gradient", gradient, (n,))
        if hessian is not None:
            _check_output("hessian", hessian, (n, n))

        mode = _Mode.GRADIENT if hessian is None else _Mode.HESSIAN
        value = self._evaluate_with_gradient(x, gradient, mode)

        if hessian is not None:
            start = time.perf_counter()
            hessian.fill(0.0)
            for binding in self._graph:
                for var_i, row in zip(binding.variables, binding.hessian_blocks):
                    for var_j, block in zip(binding.variables, row):
                        hessian[var_i.solver_slice, var_j.solver_slice] += block
            self.stats.write_gradient_hessian_time += time.perf_counter() - start

        return value

    def evaluate_sparse(
        self,
        x: ArrayLike,
        gradient: NDArray[np.floating],
        hessian: SparseHessian | None,
    ) -> float:
        """Value, gradient and sparse Hessian at ``x``.

        The Hessian is stored in ``hessian.matrix`` as a CSC matrix with
        duplicate coordinates summed.

        Raises:
            NullHessianTargetError: ``hessian`` is None.
            HessianDisabledError: Hessian support is disabled.
            UnsupportedTransformError: A bound variable has a transform.
            OutputShapeError: An array has the wrong shape.
            OutputTypeError: An output array is not a writeable float array.
            TermEvaluationError: A term raised during evaluation.
        """
        if hessian is None:
            raise NullHessianTargetError()
        self._check_hessian_allowed()
        n = self._registry.total_scalars()
        x = self._check_point(x)
        _check_output("gradient", gradient, (n,))

        value = self._evaluate_with_gradient(x, gradient, _Mode.HESSIAN)

        start = time.perf_counter()
        values = [
            block.ravel()
            for binding in self._graph
            for row in binding.hessian_blocks
            for block in row
        ]
        data = np.concatenate(values) if values else np.zeros(0)
        self._assemble_sparse(hessian, data)
        self.stats.write_gradient_hessian_time += time.perf_counter() - start
        return value

    def sparsity_pattern(self, hessian: SparseHessian | None = None) -> sparse.csc_matrix:
        """Hessian structure with every stored entry equal to 1.0.

        No term is evaluated. Duplicate coordinates are merged, so entries
        where several blocks overlap hold their multiplicity.

        Raises:
            UnsupportedTransformError: A bound variable has a transform.
        """
        record = first_transformed(_bound_variables(self._graph))
        if record is not None:
            raise UnsupportedTransformError("Hessian sparsity pattern", record.index)
        if hessian is None:
            hessian = SparseHessian()
        coordinates = self._hessian_coordinates()
        self._assemble_sparse(hessian, np.ones(coordinates.rows.size))
        return hessian.matrix

    def evaluate_interval(self, x: Sequence[Interval | tuple[float, float]]) -> Interval:
        """Enclosure of the function value over the box ``x``.

        Args:
            x: One interval (or ``(lower, upper)`` pair) per optimization
                space scalar.

        Raises:
            OutputShapeError: ``len(x)`` differs from the number of scalars.
            UnsupportedTransformError: A bound variable has a transform.
            TermEvaluationError: A term raised during evaluation.
        """
        n = self._registry.total_scalars()
        if len(x) != n:
            raise OutputShapeError("x", (n,), (len(x),))
        record = first_transformed(_bound_variables(self._graph))
        if record is not None:
            raise UnsupportedTransformError("interval evaluation", record.index)

        box = [iv if isinstance(iv, Interval) else Interval(*iv) for iv in x]

        self.stats.evaluations_without_gradient += 1
        start = time.perf_counter()
        value = Interval(0.0)
        for i, binding in enumerate(self._graph):
            args = [box[var.solver_slice] for var in binding.variables]
            try:
                value = value + binding.term.evaluate_interval(args)
            except Exception as exc:
                logger.warning("Interval evaluation of term %d failed: %s", i, exc)
                raise TermEvaluationError(i, binding.term, exc) from exc
        self.stats.evaluate_time += time.perf_counter() - start
        return value

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_point(self, x: ArrayLike) -> NDArray[np.floating]:
        x = np.asarray(x, dtype=float)
        n = self._registry.total_scalars()
        if x.shape != (n,):
            raise OutputShapeError("x", (n,), x.shape)
        return x

    def _check_hessian_allowed(self) -> None:
        if not self.hessian_enabled:
            raise HessianDisabledError()
        record = first_transformed(_bound_variables(self._graph))
        if record is not None:
            raise UnsupportedTransformError("Hessian", record.index)

    def _evaluate_with_gradient(
        self,
        x: NDArray[np.floating],
        gradient: NDArray[np.floating],
        mode: _Mode,
    ) -> float:
        storage = self._ensure_storage()
        self.copy_global_to_local(x)

        self.stats.evaluations_with_gradient += 1
        start = time.perf_counter()
        for worker in storage:
            worker.gradient.fill(0.0)
        value = self._run_workers(mode, x)
        self.stats.evaluate_with_hessian_time += time.perf_counter() - start

        start = time.perf_counter()
        gradient.fill(0.0)
        for worker in storage:
            gradient += worker.gradient
        self.stats.write_gradient_hessian_time += time.perf_counter() - start
        return value

    def _run_workers(self, mode: _Mode, x: NDArray[np.floating] | None) -> float:
        storage = self._ensure_storage()
        chunks = _partition(self._graph.size(), self._worker_count)

        if len(chunks) == 1 or self._executor is None:
            outcomes = [
                self._evaluate_chunk(start, stop, storage[w], mode, x)
                for w, (start, stop) in enumerate(chunks)
            ]
        else:
            futures = [
                self._executor.submit(self._evaluate_chunk, start, stop, storage[w], mode, x)
                for w, (start, stop) in enumerate(chunks)
            ]
            outcomes = [future.result() for future in futures]

        for outcome in outcomes:
            if outcome.error is not None:
                binding = self._graph.bindings[outcome.binding_index]
                logger.warning(
                    "Term %d (%s) failed during evaluation: %s",
                    outcome.binding_index,
                    type(binding.term).__name__,
                    outcome.error,
                )
                raise TermEvaluationError(
                    outcome.binding_index, binding.term, outcome.error
                ) from outcome.error

        return sum(outcome.value for outcome in outcomes)

    def _evaluate_chunk(
        self,
        start: int,
        stop: int,
        storage: _WorkerStorage,
        mode: _Mode,
        x: NDArray[np.floating] | None,
    ) -> _WorkerOutcome:
        bindings = self._graph.bindings
        outcome = _WorkerOutcome()
        value = 0.0
        for i in range(start, stop):
            binding = bindings[i]
            args = binding.arguments()
            try:
                if mode is _Mode.VALUE:
                    value += float(binding.term.evaluate(args))
                    continue

                storage.scratch[: binding.arity].fill(0.0)
                local_gradient = [
                    storage.scratch[k, : var.user_dimension]
                    for k, var in enumerate(binding.variables)
                ]
                if mode is _Mode.HESSIAN:
                    for row in binding.hessian_blocks:
                        for block in row:
                            block.fill(0.0)
                    value += float(
                        binding.term.evaluate_hessian(args, local_gradient, binding.hessian_blocks)
                    )
                else:
                    value += float(binding.term.evaluate_gradient(args, local_gradient))

                _scatter_gradient(binding, local_gradient, storage.gradient, x)
            except Exception as exc:
                outcome.error = exc
                outcome.binding_index = i
                break
        outcome.value = value
        return outcome

    def _hessian_coordinates(self) -> _Coordinates:
        if self._coordinates is not None:
            return self._coordinates

        rows: list[NDArray[np.intp]] = []
        cols: list[NDArray[np.intp]] = []
        for binding in self._graph:
            for var_i in binding.variables:
                local_i = np.arange(var_i.user_dimension, dtype=np.intp)
                for var_j in binding.variables:
                    local_j = np.arange(var_j.user_dimension, dtype=np.intp)
                    rows.append(var_i.global_offset + np.repeat(local_i, local_j.size))
                    cols.append(var_j.global_offset + np.tile(local_j, local_i.size))

        coordinates = _Coordinates()
        if rows:
            coordinates.rows = np.concatenate(rows)
            coordinates.cols = np.concatenate(cols)
        self._coordinates = coordinates
        return coordinates

    def _assemble_sparse(self, hessian: SparseHessian, data: NDArray[np.floating]) -> None:
        coordinates = self._hessian_coordinates()
        n = self._registry.total_scalars()
        # COO -> CSC sums duplicate coordinates and keeps explicit zeros.
        hessian.matrix = sparse.coo_matrix(
            (data, (coordinates.rows, coordinates.cols)), shape=(n, n)
        ).tocsc()
        hessian.nnz_hint = int(coordinates.rows.size)


def _scatter_gradient(
    binding: TermBinding,
    local_gradient: list[NDArray[np.floating]],
    accumulator: NDArray[np.floating],
    x: NDArray[np.floating],
) -> None:
    for var, g in zip(binding.variables, local_gradient):
        if var.transform is None:
            accumulator[var.solver_slice] += g
        else:
            var.transform.project_gradient(accumulator[var.solver_slice], x[var.solver_slice], g)


def _bound_variables(graph: TermGraph) -> Iterable[VariableRecord]:
    for binding in graph:
        yield from binding.variables


def _partition(n: int, parts: int) -> list[tuple[int, int]]:
    """Split ``range(n)`` into at most ``parts`` contiguous, non-empty chunks."""
    parts = max(1, min(parts, n))
    base, extra = divmod(n, parts)
    bounds = []
    start = 0
    for p in range(parts):
        stop = start + base + (1 if p < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def _check_output(name: str, array: object, shape: tuple[int, ...]) -> None:
    if not isinstance(array, np.ndarray):
        raise OutputShapeError(name, shape, ())
    if array.shape != shape:
        raise OutputShapeError(name, shape, array.shape)
    if not np.issubdtype(array.dtype, np.floating):
        raise OutputTypeError(name, f"dtype {array.dtype} is not floating point")
    if not array.flags.writeable:
        raise OutputTypeError(name, "array is read-only")
