"""Function configuration.

Settings can be given explicitly or read from the environment:

- ``TERMOPT_NUM_WORKERS``: number of evaluation threads (positive integer).
- ``TERMOPT_HESSIAN``: ``1``/``true``/``yes`` or ``0``/``false``/``no``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping

from termopt.core.errors import ConfigError

ENV_NUM_WORKERS = "TERMOPT_NUM_WORKERS"
ENV_HESSIAN = "TERMOPT_HESSIAN"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class TermOwnership(Enum):
    """Whether a Function releases its terms when closed."""

    OWNED = "owned"
    BORROWED = "borrowed"


@dataclass(frozen=True)
class FunctionConfig:
    """Construction-time settings of a :class:`~termopt.function.Function`.

    Attributes:
        hessian_enabled: Allocate Hessian scratch for every term. Hessian
            evaluation fails on a Function built with this off.
        worker_count: Number of evaluation threads. None means one per CPU.
        term_ownership: Whether ``Function.close()`` closes the added terms.
    """

    hessian_enabled: bool = True
    worker_count: int | None = None
    term_ownership: TermOwnership = TermOwnership.OWNED

    def resolved_worker_count(self) -> int:
        """Return the effective worker count, validating explicit values."""
        if self.worker_count is None:
            return os.cpu_count() or 1
        return validate_worker_count(self.worker_count)

    def with_overrides(self, **changes) -> FunctionConfig:
        """Copy of this config with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FunctionConfig:
        """Build a config from ``TERMOPT_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ConfigError: If a variable is set to an unparseable value.
        """
        environ = os.environ if environ is None else environ
        config = cls()

        raw_workers = environ.get(ENV_NUM_WORKERS)
        if raw_workers:
            try:
                workers = int(raw_workers)
            except ValueError:
                raise ConfigError(ENV_NUM_WORKERS, raw_workers, "not an integer") from None
            config = replace(config, worker_count=validate_worker_count(workers))

        raw_hessian = environ.get(ENV_HESSIAN)
        if raw_hessian:
            flag = raw_hessian.strip().lower()
            if flag in _TRUE:
                config = replace(config, hessian_enabled=True)
            elif flag in _FALSE:
                config = replace(config, hessian_enabled=False)
            else:
                raise ConfigError(ENV_HESSIAN, raw_hessian, "expected a boolean")

        return config


def validate_worker_count(n: int) -> int:
    """Check that ``n`` is a usable number of worker threads."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise ConfigError("worker_count", n, "must be an integer")
    if n < 1:
        raise ConfigError("worker_count", n, "must be at least 1")
    return n
