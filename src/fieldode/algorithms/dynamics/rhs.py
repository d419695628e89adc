from typing import Callable, Sequence

from fieldode.algorithms.dynamics.base import _FirstOrderEquations


class RHSSystem(_FirstOrderEquations):
    def __init__(self, rhs_func: Callable[..., Sequence], dim: int, name: str = "Generic RHS"):
        """Wrap an arbitrary ``(t, y)`` right-hand side into equations.

        The callable receives field elements and must return a sequence of
        field elements (a list or a numpy array) of length *dim*.
        """

        super().__init__(dim)
        self._rhs = rhs_func
        self.name = name
    
    @property
    def rhs(self) -> Callable[..., Sequence]:
        return self._rhs

    def derivatives(self, t, y):
        return self._rhs(t, y)
    
    def __repr__(self) -> str:
        return f"RHSSystem(name='{self.name}', dim={self.dim})"


def create_rhs_system(rhs_func: Callable[..., Sequence], dim: int, name: str = "Generic RHS"):
    return RHSSystem(rhs_func, dim, name)
