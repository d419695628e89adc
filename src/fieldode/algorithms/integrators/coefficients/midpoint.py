"""Explicit midpoint method (order 2)."""

from fractions import Fraction

A = (
    (Fraction(0), Fraction(0)),
    (Fraction(1, 2), Fraction(0)),
)
B = (Fraction(0), Fraction(1))
C = (Fraction(0), Fraction(1, 2))
