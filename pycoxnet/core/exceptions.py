"""
Exception hierarchy for pycoxnet.

All exceptions inherit from PyCoxnetError to allow catching any
library-specific error. Non-fatal conditions are reported through the
warnings module with ConvergenceWarning.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PyCoxnetError(Exception):
    """Base exception for all pycoxnet errors."""
    pass


class ValidationError(PyCoxnetError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DataError(ValidationError):
    """
    Survival data is malformed.

    Raised for invalid (start, stop] intervals, event indicators outside
    {0, 1}, negative or non-finite times, or data without any event (the
    partial likelihood is undefined).

    Attributes:
        rows: Offending row indices, if the problem is row-specific
    """

    def __init__(self, message: str, rows: list[int] | None = None):
        super().__init__(message)
        self.rows = rows


class DimensionError(DataError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when the response and design matrix have different row counts.
    """
    pass


class ConfigError(ValidationError):
    """
    Invalid fitting configuration.

    Raised before any optimization work when alpha, lambda, the fold
    count or another option is out of range.

    Attributes:
        parameter: Name of the offending option
        value: The value that was rejected
    """

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        value: object = None,
    ):
        super().__init__(message)
        self.parameter = parameter
        self.value = value


class NumericalError(PyCoxnetError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class DegenerateStepError(NumericalError):
    """
    Barzilai-Borwein step denominator is degenerate.

    Raised inside the step-size controller when |s.g| underflows or is
    not finite. The controller recovers by falling back to a constant
    step, so this never reaches user code.

    Attributes:
        s_dot_s: Squared norm of the iterate difference
        s_dot_g: Inner product of iterate and gradient differences
    """

    def __init__(
        self,
        message: str,
        s_dot_s: float | None = None,
        s_dot_g: float | None = None,
    ):
        super().__init__(message)
        self.s_dot_s = s_dot_s
        self.s_dot_g = s_dot_g


class ConvergenceError(PyCoxnetError):
    """
    Iterative algorithm failed to converge.

    Raised by the regularization path in strict mode when the
    proximal-gradient iterator exhausts max_iter at some lambda.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final value of the stopping criterion
        reason: Why convergence failed (e.g., 'max_iterations')
        threshold: The convergence threshold that was not met
        lam: The lambda value at which the failure occurred
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None,
        lam: float | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
        self.lam = lam


class ConvergenceWarning(RuntimeWarning):
    """Iterator hit max_iter without meeting the tolerance."""
    pass
