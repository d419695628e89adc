"""Fixed-step explicit ODE integration over arbitrary scalar fields."""

from fieldode.algorithms import *  # noqa: F401,F403
from fieldode.algorithms import __all__

__version__ = "0.1.0"
