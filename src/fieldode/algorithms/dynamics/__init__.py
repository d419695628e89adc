"""Equations integrated by :mod:`~fieldode.algorithms.integrators`."""

from .base import _EquationsProtocol, _FirstOrderEquations
from .expandable import _ExpandableODE
from .rhs import RHSSystem, create_rhs_system

__all__ = [
    "_EquationsProtocol",
    "_FirstOrderEquations",
    "_ExpandableODE",
    "RHSSystem",
    "create_rhs_system",
]
