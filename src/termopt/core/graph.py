"""Term graph: the ordered list of term bindings the engine walks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Sequence

import numpy as np

from termopt.core.errors import (
    ArityMismatchError,
    StorageAllocationError,
    UnknownVariableError,
    VariableDimensionMismatchError,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from termopt.core.registry import VariableRecord, VariableRegistry
    from termopt.core.term import Term


@dataclass(eq=False)
class TermBinding:
    """A term together with the variables it is evaluated on.

    Attributes:
        term: The term.
        variables: One record per term argument, in argument order.
        hessian_blocks: ``hessian_blocks[i][j]`` holds the
            ``dim_i x dim_j`` second-derivative block of the last Hessian
            evaluation, or None when Hessian support is disabled.
    """

    term: Term
    variables: tuple[VariableRecord, ...]
    hessian_blocks: list[list[NDArray[np.floating]]] | None = None

    @property
    def arity(self) -> int:
        return len(self.variables)

    def arguments(self) -> list[NDArray[np.floating]]:
        """Current user-space values of the arguments."""
        return [var.scratch for var in self.variables]


class TermGraph:
    """Ordered collection of term bindings.

    Keeps an identity-deduplicated record of every term added, so a term
    shared by several bindings is released only once.
    """

    __slots__ = ("_bindings", "_terms")

    def __init__(self) -> None:
        self._bindings: list[TermBinding] = []
        self._terms: dict[int, Term] = {}

    def add(
        self,
        term: Term,
        blocks: Sequence[object],
        registry: VariableRegistry,
        allocate_hessian: bool = True,
    ) -> TermBinding:
        """Bind ``term`` to the variables registered for ``blocks``.

        Raises:
            ArityMismatchError: ``len(blocks) != term.arity()``.
            UnknownVariableError: A block was never registered.
            VariableDimensionMismatchError: A term argument dimension
                differs from the variable's user dimension.
        """
        arity = term.arity()
        if len(blocks) != arity:
            raise ArityMismatchError(arity, len(blocks))

        variables: list[VariableRecord] = []
        for k, block in enumerate(blocks):
            record = registry.lookup(block)
            if record is None:
                raise UnknownVariableError(k)
            expected = term.argument_dimension(k)
            if record.user_dimension != expected:
                raise VariableDimensionMismatchError(k, expected, record.user_dimension)
            variables.append(record)

        hessian_blocks = None
        if allocate_hessian:
            dims = [term.argument_dimension(k) for k in range(arity)]
            try:
                hessian_blocks = [[np.zeros((di, dj)) for dj in dims] for di in dims]
            except MemoryError:
                raise StorageAllocationError(
                    "Hessian blocks", (sum(dims), sum(dims))
                ) from None

        binding = TermBinding(term=term, variables=tuple(variables), hessian_blocks=hessian_blocks)
        self._bindings.append(binding)
        self._terms.setdefault(id(term), term)
        return binding

    @property
    def bindings(self) -> Sequence[TermBinding]:
        return self._bindings

    def size(self) -> int:
        """Number of bindings."""
        return len(self._bindings)

    def terms(self) -> list[Term]:
        """Distinct terms in first-added order."""
        return list(self._terms.values())

    def max_arity(self) -> int:
        return max((b.arity for b in self._bindings), default=1)

    def close(self) -> None:
        """Close every distinct term once and forget them."""
        for term in self._terms.values():
            term.close()
        self._terms.clear()

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[TermBinding]:
        return iter(self._bindings)

    def __repr__(self) -> str:
        return f"TermGraph(bindings={len(self._bindings)}, terms={len(self._terms)})"
