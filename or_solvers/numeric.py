"""Number rendering shared by the solver explanations and the reports."""

from __future__ import annotations

import math
from fractions import Fraction

EPS = 1e-9


def format_number(x) -> str:
    """Render a real as an integer or a reduced fraction (``7/2``)."""
    x = float(x)
    if math.isnan(x) or math.isinf(x):
        return str(x)
    if abs(x) < EPS:
        return "0"
    fr = Fraction(x).limit_denominator(10**6)
    if fr.denominator == 1:
        return str(fr.numerator)
    if fr.denominator > 1000:
        return f"{x:.4f}"
    return f"{fr.numerator}/{fr.denominator}"
