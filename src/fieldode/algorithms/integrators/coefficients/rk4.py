"""Classical 4-stage Runge-Kutta method (order 4)."""

from fractions import Fraction

_0 = Fraction(0)

A = (
    (_0, _0, _0, _0),
    (Fraction(1, 2), _0, _0, _0),
    (_0, Fraction(1, 2), _0, _0),
    (_0, _0, Fraction(1), _0),
)
B = (Fraction(1, 6), Fraction(1, 3), Fraction(1, 3), Fraction(1, 6))
C = (_0, Fraction(1, 2), Fraction(1, 2), Fraction(1))
