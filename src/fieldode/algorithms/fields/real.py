"""Provide the hardware double precision field."""

from fractions import Fraction

import numpy as np

from fieldode.algorithms.fields.base import _Field


class _RealField(_Field):
    """Field of Python floats with ``float64`` state vectors.

    Examples
    --------
    >>> field = RealField()
    >>> field.convert(Fraction(1, 4))
    0.25
    """

    dtype = np.float64

    def __init__(self):
        super().__init__("real")

    def convert(self, value):
        if isinstance(value, Fraction):
            return value.numerator / value.denominator
        return float(value)

    def to_real(self, value) -> float:
        return float(value)

    def array(self, values) -> np.ndarray:
        return np.array([self.convert(v) for v in values], dtype=np.float64)

    def is_element(self, value) -> bool:
        return isinstance(value, float)
