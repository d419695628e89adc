"""Provide the scalar field abstraction used by every integrator.

A field bundles the handful of operations the stepping, interpolation and
event machinery need from a scalar type that is *not* necessarily a hardware
float: construction of constants, projection to an ordinary real number and
construction of state vectors. Arithmetic itself is plain Python operator
arithmetic on the field elements.
"""

from abc import ABC, abstractmethod
from contextlib import nullcontext
from typing import Any, Iterable

import numpy as np


class _Field(ABC):
    """Define the minimal contract of a scalar field.

    Parameters
    ----------
    name : str
        Human-readable identifier of the field.

    Notes
    -----
    Elements must support ``+``, ``-``, ``*``, ``/`` and unary ``-`` between
    themselves and with Python ``int``. Every other constant (tableau
    coefficients, user supplied times) enters the field through
    :meth:`~fieldode.algorithms.fields.base._Field.convert`.

    Ordering and tolerance decisions are always taken on the real projection
    of a difference computed inside the field, never on projected absolute
    values.
    """

    dtype: Any = object

    def __init__(self, name: str):
        self.name = name

    @property
    def zero(self):
        """Additive identity of the field."""
        return self.convert(0)

    @property
    def one(self):
        """Multiplicative identity of the field."""
        return self.convert(1)

    @abstractmethod
    def convert(self, value):
        """Return *value* (int, float, :class:`fractions.Fraction` or element) as a field element."""
        pass

    @abstractmethod
    def to_real(self, value) -> float:
        """Project a field element onto an ordinary real number."""
        pass

    def array(self, values: Iterable) -> np.ndarray:
        """Build a one-dimensional state vector of field elements.

        Parameters
        ----------
        values : iterable
            Components, converted one by one with
            :meth:`~fieldode.algorithms.fields.base._Field.convert`.

        Returns
        -------
        numpy.ndarray
            Array with :attr:`dtype` entries.
        """
        items = [self.convert(v) for v in values]
        out = np.empty(len(items), dtype=self.dtype)
        for i, v in enumerate(items):
            out[i] = v
        return out

    def zeros(self, n: int) -> np.ndarray:
        """Return a state vector of *n* zeros."""
        return self.array([0] * n)

    def to_real_array(self, values: Iterable) -> np.ndarray:
        """Project every component of *values* onto ``float64``."""
        return np.array([self.to_real(v) for v in values], dtype=np.float64)

    def sign(self, value) -> int:
        """Return -1, 0 or +1 according to the sign of the real projection."""
        r = self.to_real(value)
        if r > 0.0:
            return 1
        if r < 0.0:
            return -1
        return 0

    def is_element(self, value) -> bool:
        """Return True when *value* already belongs to the field."""
        return False

    def arithmetic_context(self):
        """Return a context manager under which element arithmetic runs.

        Integrators enter it for the whole integration. Fields whose
        precision lives in an ambient context (decimal) install it here;
        the default does nothing.
        """
        return nullcontext()

    def __eq__(self, other):
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((type(self), self.name))

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}')"
