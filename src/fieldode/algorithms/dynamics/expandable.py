"""Adapt user equations to the uniform interface the integrators drive.

:class:`~fieldode.algorithms.dynamics.expandable._ExpandableODE` is the only
object the stepping code calls to evaluate the right-hand side. It converts
results into field arrays, checks dimensions at every call boundary and
keeps the evaluation count.
"""

from typing import Optional

import numpy as np

from fieldode.algorithms.dynamics.base import _EquationsProtocol
from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.utils.exceptions import (DimensionMismatchError,
                                                  MaxEvaluationsExceededError)


class _ExpandableODE:
    """Wrap one set of equations for integration over a given field.

    Parameters
    ----------
    equations : :class:`~fieldode.algorithms.dynamics.base._EquationsProtocol`
        The user equations.
    field : :class:`~fieldode.algorithms.fields.base._Field`
        Field the state vectors live in.
    max_evaluations : int or None, default None
        Maximal number of calls to :meth:`compute_derivatives`; None means
        unbounded.

    Raises
    ------
    ValueError
        If *equations* does not expose ``dim`` and ``derivatives``.
    """

    def __init__(self, equations: _EquationsProtocol, field: _Field, max_evaluations: Optional[int] = None):
        if not isinstance(equations, _EquationsProtocol):
            raise ValueError("Equations must expose 'dim' and 'derivatives(t, y)'")
        if max_evaluations is not None and max_evaluations <= 0:
            raise ValueError(f"max_evaluations must be positive, got {max_evaluations}")
        self.equations = equations
        self.field = field
        self.max_evaluations = max_evaluations
        self.evaluations = 0

    @property
    def dim(self) -> int:
        return int(self.equations.dim)

    def check_dimension(self, y) -> None:
        """Raise :class:`~fieldode.algorithms.utils.exceptions.DimensionMismatchError` if ``len(y) != dim``."""
        if len(y) != self.dim:
            raise DimensionMismatchError(len(y), self.dim)

    def init(self, t0, y0: np.ndarray, t) -> None:
        """Reset the evaluation counter and forward the hook to the equations."""
        self.check_dimension(y0)
        self.evaluations = 0
        init = getattr(self.equations, "init", None)
        if init is not None:
            init(t0, y0, t)

    def compute_derivatives(self, t, y: np.ndarray) -> np.ndarray:
        """Evaluate the right-hand side at ``(t, y)``.

        Parameters
        ----------
        t : field element
            Evaluation time.
        y : numpy.ndarray
            State vector of length :attr:`dim`.

        Returns
        -------
        numpy.ndarray
            Read-only derivative vector in the wrapped field.

        Raises
        ------
        DimensionMismatchError
            If *y* or the returned derivative has the wrong length.
        MaxEvaluationsExceededError
            If the evaluation budget is exhausted.
        """
        self.check_dimension(y)
        if self.max_evaluations is not None and self.evaluations >= self.max_evaluations:
            raise MaxEvaluationsExceededError(self.max_evaluations)
        self.evaluations += 1
        y_view = y.view()
        y_view.setflags(write=False)
        ydot = self.equations.derivatives(t, y_view)
        self.check_dimension(ydot)
        out = self.field.array(ydot)
        out.setflags(write=False)
        return out

    def __repr__(self):
        return f"_ExpandableODE(equations={self.equations!r}, field={self.field!r})"
