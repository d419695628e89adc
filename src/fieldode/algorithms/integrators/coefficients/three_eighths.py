"""Kutta's 3/8 rule (order 4)."""

from fractions import Fraction

_0 = Fraction(0)

A = (
    (_0, _0, _0, _0),
    (Fraction(1, 3), _0, _0, _0),
    (Fraction(-1, 3), Fraction(1), _0, _0),
    (Fraction(1), Fraction(-1), Fraction(1), _0),
)
B = (Fraction(1, 8), Fraction(3, 8), Fraction(3, 8), Fraction(1, 8))
C = (_0, Fraction(1, 3), Fraction(2, 3), Fraction(1))
