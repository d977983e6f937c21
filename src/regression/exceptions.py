"""
Regression gate exceptions.
"""


class RegressionGateError(Exception):
    """Base exception for baseline and regression errors."""

    pass


class NoBaseline(RegressionGateError):
    """
    Raised when no baseline file exists at the configured path.

    Informational: CI should establish a baseline first.
    """

    pass


class MalformedBaseline(RegressionGateError):
    """
    Raised when the baseline file cannot be parsed or fails schema validation.

    The gate cannot run until the baseline is re-established.
    """

    pass


class BaselineWriteError(RegressionGateError):
    """Raised when the baseline file cannot be written."""

    pass
