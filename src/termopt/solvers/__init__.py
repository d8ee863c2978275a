"""Solver bridges consuming the Function evaluation interface."""

from termopt.solvers.scipy_solver import solve_scipy

__all__ = ["solve_scipy"]
