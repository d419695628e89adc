"""Scalar fields the integrators can be instantiated over.

Public aliases hide the private implementation classes, following the rest of
the :mod:`~fieldode.algorithms` package.
"""

from .base import _Field
from .exact import _DecimalField as DecimalField
from .exact import _FractionField as FractionField
from .precision import _MPMathField as MPMathField
from .real import _RealField as RealField

__all__ = [
    "_Field",
    "RealField",
    "MPMathField",
    "DecimalField",
    "FractionField",
]
