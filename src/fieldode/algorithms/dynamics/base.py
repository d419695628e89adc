"""Provide the equation interface consumed by the integrators.

References
----------
Hairer, E., Norsett, S. P., & Wanner, G. (1993). "Solving Ordinary
Differential Equations I: Non-stiff Problems".
"""

from abc import ABC, abstractmethod
from typing import Protocol, Sequence, runtime_checkable

import numpy as np


@runtime_checkable
class _EquationsProtocol(Protocol):
    """
    Protocol defining the interface for first order equations.
    
    This protocol specifies the minimum interface that any system of
    equations must implement to be compatible with the integrator framework.
    """
    
    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        ...
    
    def derivatives(self, t, y: np.ndarray) -> Sequence:
        ...
            

class _FirstOrderEquations(ABC):
    """
    Abstract base class for first order differential equations ``y' = f(t, y)``.
    
    Subclasses implement :meth:`derivatives`; :meth:`init` is an optional
    hook called once per integration before the first step.

    Parameters
    ----------
    dim : int
        Dimension of the state space

    Raises
    ------
    ValueError
        If *dim* is not positive.
    """
    
    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        self._dim = dim
    
    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        return self._dim

    def init(self, t0, y0: np.ndarray, t) -> None:
        """Prepare for an integration from ``(t0, y0)`` towards *t*.

        The default implementation does nothing.
        """
        pass
    
    @abstractmethod
    def derivatives(self, t, y: np.ndarray) -> Sequence:
        """Return the time derivative of the state.

        Parameters
        ----------
        t : field element
            Current time.
        y : numpy.ndarray
            Current state, read-only.

        Returns
        -------
        sequence of field elements
            ``dy/dt``, of length :attr:`dim`.
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(dim={self.dim})"
