"""Provide fields over the standard library's decimal and rational types."""

import decimal
import numbers
from decimal import Decimal
from fractions import Fraction

import numpy as np

from fieldode.algorithms.fields.base import _Field


class _DecimalField(_Field):
    """Field of :class:`decimal.Decimal` values.

    Parameters
    ----------
    prec : int, default 28
        Number of significant digits of the field's decimal context.

    Notes
    -----
    Decimals do not mix with floats, so every constant must go through
    :meth:`convert`. Integrators run their arithmetic inside
    :meth:`arithmetic_context`; code that works on elements afterwards (dense
    output queries, for instance) should enter it too to keep *prec* digits.
    """

    def __init__(self, prec: int = 28):
        if prec <= 0:
            raise ValueError(f"prec must be positive, got {prec}")
        super().__init__(f"decimal-{prec}")
        self.prec = prec
        self.context = decimal.Context(prec=prec)

    def convert(self, value):
        if isinstance(value, Fraction):
            return self.context.divide(Decimal(value.numerator), Decimal(value.denominator))
        if isinstance(value, (float, np.floating)):
            return self.context.create_decimal_from_float(float(value))
        if isinstance(value, numbers.Integral):
            return self.context.create_decimal(int(value))
        return self.context.create_decimal(value)

    def arithmetic_context(self):
        return decimal.localcontext(self.context)

    def to_real(self, value) -> float:
        return float(value)

    def is_element(self, value) -> bool:
        return isinstance(value, Decimal)

    def __eq__(self, other):
        return isinstance(other, _DecimalField) and other.prec == self.prec

    def __hash__(self):
        return hash((type(self), self.prec))


class _FractionField(_Field):
    """Field of exact rationals.

    Exact arithmetic makes numerators grow with every step, so this field is
    meant for short integrations and for checking tableau identities.
    """

    def __init__(self):
        super().__init__("fraction")

    def convert(self, value):
        return Fraction(value)

    def to_real(self, value) -> float:
        return float(value)

    def is_element(self, value) -> bool:
        return isinstance(value, Fraction)
