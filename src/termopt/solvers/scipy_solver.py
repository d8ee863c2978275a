"""SciPy-based optimization solver.

Hands a Function to ``scipy.optimize.minimize``. The choice of algorithm,
line search and stopping rules is left entirely to SciPy; this module only
adapts the evaluation interface.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.optimize import minimize

from termopt.core.errors import TermoptError
from termopt.core.engine import SparseHessian
from termopt.logging import get_logger

if TYPE_CHECKING:
    from termopt.function import Function
    from termopt.solution import Solution

logger = get_logger(__name__)

# Methods of scipy.optimize.minimize that accept a Hessian callable.
HESSIAN_METHODS = frozenset(
    {"newton-cg", "dogleg", "trust-ncg", "trust-krylov", "trust-exact", "trust-constr"}
)
# Of those, the ones that work with a sparse Hessian.
SPARSE_HESSIAN_METHODS = frozenset({"newton-cg", "trust-constr"})


def solve_scipy(
    function: Function,
    method: str = "L-BFGS-B",
    x0: np.ndarray | None = None,
    tol: float | None = None,
    maxiter: int | None = None,
    sparse: bool = False,
    write_back: bool = True,
    **kwargs: Any,
) -> Solution:
    """Minimize a Function using SciPy.

    Args:
        function: The function to minimize.
        method: SciPy optimization method. Hessian-based methods
            ("trust-exact", "newton-cg", ...) receive the Function's Hessian.
        x0: Initial point in optimization space. If None, taken from the
            caller's parameter blocks.
        tol: Solver tolerance.
        maxiter: Maximum number of iterations.
        sparse: Pass the Hessian as a sparse matrix (only for methods
            that accept one).
        write_back: Copy the final point into the caller's blocks.
        **kwargs: Additional arguments passed to scipy.optimize.minimize.

    Returns:
        Solution object with optimization results.
    """
    from termopt.solution import Solution, SolverStatus

    n = function.total_scalar_count()
    if n == 0:
        return Solution(
            status=SolverStatus.FAILED,
            message="Function has no variables",
        )

    if x0 is None:
        x0 = function.copy_user_to_global()

    def objective(x: np.ndarray) -> tuple[float, np.ndarray]:
        return function.value_and_gradient(x)

    hess = None
    if method.lower() in HESSIAN_METHODS and function.hessian_enabled:
        use_sparse = sparse and method.lower() in SPARSE_HESSIAN_METHODS
        hess = _hessian_callable(function, use_sparse)

    options: dict[str, Any] = {}
    if maxiter is not None:
        options["maxiter"] = maxiter

    start_time = time.perf_counter()

    try:
        result = minimize(
            fun=objective,
            x0=x0,
            method=method,
            jac=True,
            hess=hess,
            tol=tol,
            options=options if options else None,
            **kwargs,
        )
    except TermoptError as e:
        logger.warning("Solve failed: %s", e)
        return Solution(
            status=SolverStatus.FAILED,
            message=str(e),
            solve_time=time.perf_counter() - start_time,
        )

    solve_time = time.perf_counter() - start_time

    message = str(getattr(result, "message", ""))
    lowered = message.lower()
    if result.success:
        status = SolverStatus.OPTIMAL
    elif "iteration" in lowered and ("maximum" in lowered or "limit" in lowered):
        status = SolverStatus.MAX_ITERATIONS
    else:
        status = SolverStatus.FAILED

    if write_back:
        function.copy_global_to_user(result.x)

    logger.debug("Solve finished: %s after %.3gs", status.value, solve_time)

    return Solution(
        status=status,
        objective_value=float(result.fun),
        x=np.asarray(result.x, dtype=float),
        iterations=getattr(result, "nit", None),
        message=message,
        solve_time=solve_time,
    )


def _hessian_callable(function: Function, use_sparse: bool):
    n = function.total_scalar_count()
    gradient = np.zeros(n)

    if use_sparse:
        target = SparseHessian()

        def hess(x: np.ndarray):
            function.evaluate_sparse(x, gradient, target)
            return target.matrix

        return hess

    def hess(x: np.ndarray) -> np.ndarray:
        hessian = np.zeros((n, n))
        function.evaluate(x, gradient, hessian)
        return hessian

    return hess
