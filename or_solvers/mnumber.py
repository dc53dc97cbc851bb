"""Symbolic Big-M numbers.

An MNumber is ``constant + m_coeff * M`` where M is an unspecified,
arbitrarily large positive constant. The two parts are never folded into a
single float: ordering looks at the M coefficient first and only falls back
to the constant when the coefficients are equal.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from typing import Iterable, Union

Real = Union[int, float]


def _sign(x: float) -> int:
    if x > 0:
        return 1
    if x < 0:
        return -1
    return 0


def _fmt_real(x: float) -> str:
    x = float(x)
    if x.is_integer():
        return str(int(x))
    return f"{x:g}"


@total_ordering
@dataclass(frozen=True)
class MNumber:
    constant: float = 0.0
    m_coeff: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "constant", float(self.constant))
        object.__setattr__(self, "m_coeff", float(self.m_coeff))

    @classmethod
    def coerce(cls, value: Union["MNumber", Real]) -> "MNumber":
        if isinstance(value, MNumber):
            return value
        return cls(value)

    # ----------------------------- arithmetic -----------------------------

    def add(self, other: Union["MNumber", Real]) -> "MNumber":
        other = MNumber.coerce(other)
        return MNumber(self.constant + other.constant, self.m_coeff + other.m_coeff)

    def subtract(self, other: Union["MNumber", Real]) -> "MNumber":
        other = MNumber.coerce(other)
        return MNumber(self.constant - other.constant, self.m_coeff - other.m_coeff)

    def scalar_multiply(self, scalar: Real) -> "MNumber":
        if isinstance(scalar, MNumber):
            raise TypeError("MNumber only supports multiplication by a real scalar")
        return MNumber(self.constant * scalar, self.m_coeff * scalar)

    __add__ = add
    __sub__ = subtract

    def __radd__(self, other: Real) -> "MNumber":
        return self.add(other)

    def __rsub__(self, other: Real) -> "MNumber":
        return MNumber.coerce(other).subtract(self)

    def __mul__(self, scalar: Real) -> "MNumber":
        if isinstance(scalar, MNumber):
            return NotImplemented
        return self.scalar_multiply(scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "MNumber":
        return MNumber(-self.constant, -self.m_coeff)

    # ----------------------------- ordering -----------------------------

    @staticmethod
    def compare(a: Union["MNumber", Real], b: Union["MNumber", Real]) -> int:
        """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
        a = MNumber.coerce(a)
        b = MNumber.coerce(b)
        if a.m_coeff != b.m_coeff:
            return _sign(a.m_coeff - b.m_coeff)
        return _sign(a.constant - b.constant)

    def __eq__(self, other) -> bool:
        if not isinstance(other, (MNumber, int, float)):
            return NotImplemented
        return MNumber.compare(self, other) == 0

    def __lt__(self, other) -> bool:
        if not isinstance(other, (MNumber, int, float)):
            return NotImplemented
        return MNumber.compare(self, other) < 0

    def __hash__(self) -> int:
        # equal to a plain real when there is no M part
        if self.m_coeff == 0:
            return hash(self.constant)
        return hash((self.constant, self.m_coeff))

    def is_positive(self) -> bool:
        if self.m_coeff != 0:
            return self.m_coeff > 0
        return self.constant > 0

    def is_zero(self) -> bool:
        return self.constant == 0 and self.m_coeff == 0

    # ----------------------------- rendering -----------------------------

    def __str__(self) -> str:
        if self.m_coeff == 0:
            return _fmt_real(self.constant)
        if abs(self.m_coeff) == 1:
            m_part = "M" if self.m_coeff > 0 else "-M"
        else:
            m_part = f"{_fmt_real(self.m_coeff)}M"
        if self.constant == 0:
            return m_part
        if self.m_coeff < 0:
            return f"{_fmt_real(self.constant)}{m_part}"
        return f"{_fmt_real(self.constant)}+{m_part}"


def msum(values: Iterable[MNumber]) -> MNumber:
    total = MNumber()
    for value in values:
        total = total + value
    return total
