"""
Custom exceptions for the algorithms package.
"""


class FieldODEError(Exception):
    """Base exception for fieldode errors.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class DimensionMismatchError(FieldODEError, ValueError):
    """Raised when a state or derivative length disagrees with the equation dimension.
    
    Parameters
    ----------
    actual : int
        Length that was found.
    expected : int
        Dimension declared by the equation.
    """

    def __init__(self, actual: int, expected: int):
        self.actual = actual
        self.expected = expected
        super().__init__(f"Dimension mismatch: got {actual}, expected {expected}")


class TooSmallIntervalError(FieldODEError, ValueError):
    """Raised when the requested integration span is too short to be stepped.
    
    Parameters
    ----------
    span : float
        Absolute length of the requested interval.
    threshold : float
        Smallest span the integrator accepts.
    """

    def __init__(self, span: float, threshold: float):
        self.span = span
        self.threshold = threshold
        super().__init__(
            f"Integration interval too small: {span:.6e} <= {threshold:.6e}"
        )


class ConvergenceError(FieldODEError):
    """Raised when an algorithm fails to converge.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class MaxIterationsExceededError(ConvergenceError):
    """Raised when event root refinement exhausts its iteration budget.
    
    Parameters
    ----------
    max_iterations : int
        The iteration budget that was exhausted.
    handler : object, optional
        The event handler whose root could not be located.
    """

    def __init__(self, max_iterations: int, handler=None):
        self.max_iterations = max_iterations
        self.handler = handler
        where = f" for event handler {handler!r}" if handler is not None else ""
        super().__init__(
            f"Root refinement did not converge in {max_iterations} iterations{where}"
        )


class NoBracketingError(ConvergenceError):
    """Raised when a root search is started on an interval without a sign change.
    
    Parameters
    ----------
    lo, hi : float
        Real projections of the interval end points.
    g_lo, g_hi : float
        Real projections of the function values at the end points.
    """

    def __init__(self, lo: float, hi: float, g_lo: float, g_hi: float):
        self.lo, self.hi, self.g_lo, self.g_hi = lo, hi, g_lo, g_hi
        super().__init__(
            f"Function values at end points do not have different signs: "
            f"g({lo!r}) = {g_lo!r}, g({hi!r}) = {g_hi!r}"
        )


class MaxEvaluationsExceededError(FieldODEError):
    """Raised when the right-hand side is evaluated more often than allowed.
    
    Parameters
    ----------
    max_evaluations : int
        The evaluation budget that was exhausted.
    """

    def __init__(self, max_evaluations: int):
        self.max_evaluations = max_evaluations
        super().__init__(f"Maximal count of derivative evaluations ({max_evaluations}) exceeded")
