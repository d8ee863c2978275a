"""Outward-rounded interval arithmetic.

Used by interval evaluation to produce a certified enclosure of a function's
value over a box. Every operation rounds the lower bound toward -inf and the
upper bound toward +inf by one ulp, so the computed interval always contains
the exact real result.
"""

from __future__ import annotations

import math
from typing import Iterable, Union

Number = Union[int, float]


def _down(value: float) -> float:
    if math.isinf(value) or math.isnan(value):
        return value
    return math.nextafter(value, -math.inf)


def _up(value: float) -> float:
    if math.isinf(value) or math.isnan(value):
        return value
    return math.nextafter(value, math.inf)


class Interval:
    """A closed interval ``[lower, upper]`` of real numbers.

    Args:
        lower: Lower bound.
        upper: Upper bound. Defaults to ``lower`` (a degenerate interval).

    Example:
        >>> a = Interval(1.0, 2.0)
        >>> b = Interval(-1.0, 3.0)
        >>> (a * b).contains(-2.0)
        True
    """

    __slots__ = ("lower", "upper")

    lower: float
    upper: float

    def __init__(self, lower: Number, upper: Number | None = None) -> None:
        lower = float(lower)
        upper = lower if upper is None else float(upper)
        if lower > upper:
            raise ValueError(f"Invalid interval: lower={lower} exceeds upper={upper}")
        self.lower = lower
        self.upper = upper

    @classmethod
    def hull(cls, values: Iterable[Number]) -> Interval:
        """Smallest interval containing all of ``values``."""
        values = [float(v) for v in values]
        if not values:
            raise ValueError("Cannot build the hull of no values")
        return cls(min(values), max(values))

    # Properties

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower + self.upper)

    def contains(self, value: Number | Interval) -> bool:
        """Check whether a point or another interval lies inside this one."""
        if isinstance(value, Interval):
            return self.lower <= value.lower and value.upper <= self.upper
        return self.lower <= value <= self.upper

    # Arithmetic

    def __add__(self, other: Interval | Number) -> Interval:
        other = _as_interval(other)
        return Interval(_down(self.lower + other.lower), _up(self.upper + other.upper))

    __radd__ = __add__

    def __sub__(self, other: Interval | Number) -> Interval:
        other = _as_interval(other)
        return Interval(_down(self.lower - other.upper), _up(self.upper - other.lower))

    def __rsub__(self, other: Number) -> Interval:
        return _as_interval(other) - self

    def __neg__(self) -> Interval:
        return Interval(-self.upper, -self.lower)

    def __mul__(self, other: Interval | Number) -> Interval:
        other = _as_interval(other)
        products = (
            self.lower * other.lower,
            self.lower * other.upper,
            self.upper * other.lower,
            self.upper * other.upper,
        )
        return Interval(_down(min(products)), _up(max(products)))

    __rmul__ = __mul__

    def __truediv__(self, other: Interval | Number) -> Interval:
        other = _as_interval(other)
        if other.lower <= 0.0 <= other.upper:
            raise ZeroDivisionError(f"Interval division by {other}, which contains zero")
        quotients = (
            self.lower / other.lower,
            self.lower / other.upper,
            self.upper / other.lower,
            self.upper / other.upper,
        )
        return Interval(_down(min(quotients)), _up(max(quotients)))

    def __rtruediv__(self, other: Number) -> Interval:
        return _as_interval(other) / self

    def __pow__(self, exponent: int) -> Interval:
        if not isinstance(exponent, int) or exponent < 0:
            raise ValueError(f"Interval power requires a non-negative integer, got {exponent!r}")
        if exponent == 0:
            return Interval(1.0)
        if exponent % 2 == 1 or self.lower >= 0.0:
            return Interval(_down(self.lower**exponent), _up(self.upper**exponent))
        if self.upper <= 0.0:
            return Interval(_down(self.upper**exponent), _up(self.lower**exponent))
        # Even power of an interval straddling zero.
        return Interval(0.0, _up(max(self.lower**exponent, self.upper**exponent)))

    def __abs__(self) -> Interval:
        if self.lower >= 0.0:
            return Interval(self.lower, self.upper)
        if self.upper <= 0.0:
            return -self
        return Interval(0.0, max(-self.lower, self.upper))

    # Elementary functions

    def exp(self) -> Interval:
        return Interval(max(0.0, _down(math.exp(self.lower))), _up(math.exp(self.upper)))

    def log(self) -> Interval:
        if self.lower <= 0.0:
            raise ValueError(f"Interval log requires a positive interval, got {self}")
        return Interval(_down(math.log(self.lower)), _up(math.log(self.upper)))

    def sqrt(self) -> Interval:
        if self.lower < 0.0:
            raise ValueError(f"Interval sqrt requires a non-negative interval, got {self}")
        return Interval(max(0.0, _down(math.sqrt(self.lower))), _up(math.sqrt(self.upper)))

    # Comparison / display

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Interval):
            return self.lower == other.lower and self.upper == other.upper
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Interval", self.lower, self.upper))

    def __iter__(self):
        yield self.lower
        yield self.upper

    def __repr__(self) -> str:
        return f"Interval({self.lower!r}, {self.upper!r})"


def _as_interval(value: Interval | Number) -> Interval:
    if isinstance(value, Interval):
        return value
    return Interval(value)
