"""
Arbitrary precision field backed by mpmath.

Elements are :class:`mpmath.mpf` values computed at a fixed number of decimal
places. The working precision is set on the field's own mpmath context, so
several fields with different precisions can coexist.
"""

from fractions import Fraction

import mpmath as mp

from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.utils.config import MPMATH_DPS


class _MPMathField(_Field):
    """Field of mpmath multiprecision reals.

    Parameters
    ----------
    dps : int, optional
        Number of decimal places. If None, uses
        :data:`~fieldode.algorithms.utils.config.MPMATH_DPS`.

    Notes
    -----
    The field owns an :class:`mpmath.MPContext`; elements created by
    :meth:`convert` carry that context, so arithmetic between them is
    performed at the field's precision regardless of the global
    ``mpmath.mp.dps`` setting.
    """

    def __init__(self, dps: int = None):
        if dps is None:
            dps = MPMATH_DPS
        if dps <= 0:
            raise ValueError(f"dps must be positive, got {dps}")
        super().__init__(f"mpmath-{dps}")
        self.dps = dps
        self.ctx = mp.MPContext()
        self.ctx.dps = dps

    def convert(self, value):
        if isinstance(value, Fraction):
            return self.ctx.mpf(value.numerator) / self.ctx.mpf(value.denominator)
        return self.ctx.mpf(value)

    def to_real(self, value) -> float:
        return float(value)

    def is_element(self, value) -> bool:
        return isinstance(value, self.ctx.mpf)

    def __eq__(self, other):
        return isinstance(other, _MPMathField) and other.dps == self.dps

    def __hash__(self):
        return hash((type(self), self.dps))
