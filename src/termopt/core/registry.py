"""Variable registry.

Maps caller-owned parameter blocks to their place in the flat
optimization-space vector. Blocks are keyed by object identity and stored in
an insertion-ordered table, so offsets depend only on the order in which
blocks were first registered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator

import numpy as np

from termopt.core.errors import (
    DimensionMismatchError,
    InvalidBlockError,
    StorageAllocationError,
    TransformDimensionMismatchError,
)
from termopt.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from termopt.core.transforms import Transform

logger = get_logger(__name__)


@dataclass(eq=False)
class VariableRecord:
    """Registration metadata for one parameter block.

    Attributes:
        block: The caller-owned array holding the variable's user-space value.
        index: Position of the variable in registration order.
        user_dimension: Size of the representation passed to terms.
        solver_dimension: Size of the slice in the optimization-space vector.
        global_offset: Start of that slice.
        transform: Change of variables, or None when both spaces coincide.
        scratch: User-space value used during evaluation.
    """

    block: NDArray[np.floating]
    index: int
    user_dimension: int
    solver_dimension: int
    global_offset: int
    transform: Transform | None = None
    scratch: NDArray[np.floating] = field(default_factory=lambda: np.zeros(0), repr=False)

    @property
    def solver_slice(self) -> slice:
        return slice(self.global_offset, self.global_offset + self.solver_dimension)

    @property
    def user_values(self) -> NDArray[np.floating]:
        """View of the caller's block restricted to ``user_dimension`` elements."""
        return self.block[: self.user_dimension]


class VariableRegistry:
    """Insertion-ordered table of registered variables."""

    __slots__ = ("_index", "_records", "_total_scalars")

    def __init__(self) -> None:
        self._index: dict[int, int] = {}
        self._records: list[VariableRecord] = []
        self._total_scalars = 0

    def register(
        self,
        block: NDArray[np.floating],
        dimension: int | None = None,
        transform: Transform | None = None,
    ) -> VariableRecord:
        """Register ``block`` or update the transform of an already known block.

        Args:
            block: 1-D floating point array owned by the caller.
            dimension: User-space dimension. Defaults to ``block.size``.
            transform: Optional change of variables.

        Returns:
            The variable's record.

        Raises:
            InvalidBlockError: If ``block`` can't hold ``dimension`` floats.
            DimensionMismatchError: If a known block is given a new dimension.
            TransformDimensionMismatchError: If the transform's dimensions
                disagree with the variable.
        """
        _check_block(block)
        if dimension is None:
            dimension = block.size

        position = self._index.get(id(block))
        if position is not None:
            record = self._records[position]
            if record.user_dimension != dimension:
                raise DimensionMismatchError(record.user_dimension, dimension)
            self._replace_transform(record, transform)
            return record

        if dimension <= 0 or dimension > block.size:
            raise InvalidBlockError(
                f"dimension {dimension} does not fit a block of size {block.size}"
            )

        if transform is None:
            solver_dimension = dimension
        else:
            if transform.output_dimension() != dimension:
                raise TransformDimensionMismatchError(
                    (dimension, None),
                    (transform.output_dimension(), transform.input_dimension()),
                )
            solver_dimension = transform.input_dimension()

        record = VariableRecord(
            block=block,
            index=len(self._records),
            user_dimension=dimension,
            solver_dimension=solver_dimension,
            global_offset=self._total_scalars,
            transform=transform,
            scratch=_allocate("variable scratch", dimension),
        )
        self._index[id(block)] = record.index
        self._records.append(record)
        self._total_scalars += solver_dimension

        logger.debug(
            "Registered variable %d (dimension %d, offset %d, transform=%s)",
            record.index,
            dimension,
            record.global_offset,
            transform,
        )
        return record

    def _replace_transform(self, record: VariableRecord, transform: Transform | None) -> None:
        if transform is None:
            # Dropping the transform is only valid if both spaces have the same size.
            got = (record.user_dimension, record.user_dimension)
        else:
            got = (transform.output_dimension(), transform.input_dimension())
        if got != (record.user_dimension, record.solver_dimension):
            raise TransformDimensionMismatchError(
                (record.user_dimension, record.solver_dimension), got
            )
        previous = record.transform
        if previous is not None and previous is not transform:
            previous.close()
        record.transform = transform

    def lookup(self, block: object) -> VariableRecord | None:
        """Record for ``block``, or None if it was never registered."""
        position = self._index.get(id(block))
        if position is None:
            return None
        return self._records[position]

    def total_scalars(self) -> int:
        """Size of the flat optimization-space vector."""
        return self._total_scalars

    def count(self) -> int:
        """Number of distinct registered variables."""
        return len(self._records)

    def records(self) -> Iterator[VariableRecord]:
        """Iterate over records in registration order."""
        return iter(self._records)

    def max_user_dimension(self) -> int:
        return max((r.user_dimension for r in self._records), default=1)

    def close(self) -> None:
        """Release every installed transform."""
        for record in self._records:
            if record.transform is not None:
                record.transform.close()
                record.transform = None

    def __contains__(self, block: object) -> bool:
        return id(block) in self._index

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VariableRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"VariableRegistry(variables={self.count()}, scalars={self._total_scalars})"


def first_transformed(records: Iterable[VariableRecord]) -> VariableRecord | None:
    """Return the first record carrying a transform, if any."""
    for record in records:
        if record.transform is not None:
            return record
    return None


def _check_block(block: object) -> None:
    if not isinstance(block, np.ndarray):
        raise InvalidBlockError(f"expected numpy.ndarray, got {type(block).__name__}")
    if block.ndim != 1:
        raise InvalidBlockError(f"expected a 1-D array, got shape {block.shape}")
    if not np.issubdtype(block.dtype, np.floating):
        raise InvalidBlockError(f"expected a floating point dtype, got {block.dtype}")


def _allocate(what: str, *shape: int) -> NDArray[np.floating]:
    try:
        return np.zeros(shape)
    except MemoryError:
        raise StorageAllocationError(what, shape) from None
