"""Solution classes for optimization results.

Provides a structured representation of solver output: status, objective
value, the final optimization-space point and solver statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
import json
import os

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class SolverStatus(Enum):
    """Status of an optimization solve."""

    OPTIMAL = "optimal"
    MAX_ITERATIONS = "max_iterations"
    FAILED = "failed"
    NOT_SOLVED = "not_solved"


@dataclass
class Solution:
    """Result of minimizing a Function.

    Attributes:
        status: Solver termination status.
        objective_value: Final function value (None if not solved).
        x: Final point in optimization space.
        iterations: Number of solver iterations.
        message: Solver message or error description.
        solve_time: Time taken to solve (seconds).

    Example:
        >>> solution = solve_scipy(f)
        >>> if solution.is_optimal:
        ...     print(f"Optimal value: {solution.objective_value}")
    """

    status: SolverStatus
    objective_value: float | None = None
    x: NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))
    iterations: int | None = None
    message: str = ""
    solve_time: float | None = None

    @property
    def is_optimal(self) -> bool:
        """Check if the solver reported convergence."""
        return self.status == SolverStatus.OPTIMAL

    def to_dict(self) -> dict:
        """Convert solution to a JSON-compatible dictionary."""
        return {
            "status": self.status.value,
            "objective_value": self.objective_value,
            "x": [float(v) for v in self.x],
            "iterations": self.iterations,
            "message": self.message,
            "solve_time": self.solve_time,
        }

    def to_json(self, path: str | None = None) -> str:
        """Convert solution to JSON string or save to file.

        Args:
            path: Optional file path to save JSON to.

        Returns:
            JSON string if path is None, otherwise empty string.
        """
        data = self.to_dict()
        if path:
            with open(path, "w") as f:
                json.dump(data, f, indent=2)
            return ""
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, json_str_or_path: str) -> Solution:
        """Create solution from JSON string or file path."""
        if os.path.isfile(json_str_or_path):
            with open(json_str_or_path, "r") as f:
                data = json.load(f)
        else:
            data = json.loads(json_str_or_path)

        return cls(
            status=SolverStatus(data["status"]),
            objective_value=data.get("objective_value"),
            x=np.asarray(data.get("x", []), dtype=float),
            iterations=data.get("iterations"),
            message=data.get("message", ""),
            solve_time=data.get("solve_time"),
        )

    def __repr__(self) -> str:
        if self.is_optimal:
            return (
                f"Solution(status={self.status.value}, "
                f"objective={self.objective_value:.6g}, "
                f"x={self.x})"
            )
        return f"Solution(status={self.status.value}, message='{self.message}')"
