"""Explicit Euler method (order 1)."""

from fractions import Fraction

A = ((Fraction(0),),)
B = (Fraction(1),)
C = (Fraction(0),)
