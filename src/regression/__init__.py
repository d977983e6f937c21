"""Baseline persistence and the CI regression gate."""

from src.regression.baseline import Baseline, BaselineDifference, BaselineStore, hash_difference
from src.regression.exceptions import (
    BaselineWriteError,
    MalformedBaseline,
    NoBaseline,
    RegressionGateError,
)
from src.regression.gate import (
    ExitCode,
    RegressionGate,
    RegressionResult,
    exit_code_for,
    format_regression_error,
    get_commit_hash,
)

__all__ = [
    "Baseline",
    "BaselineDifference",
    "BaselineStore",
    "BaselineWriteError",
    "ExitCode",
    "MalformedBaseline",
    "NoBaseline",
    "RegressionGate",
    "RegressionGateError",
    "RegressionResult",
    "exit_code_for",
    "format_regression_error",
    "get_commit_hash",
    "hash_difference",
]
