"""
Custom exception hierarchy for transcript recording.

This module defines the failures a recorder can surface so that
orchestrators and the CLI can map each one to a stable outcome.
"""


class RecorderError(Exception):
    """
    Base exception for all recorder-related errors.

    Raised directly for unexpected recorder failures that do not fit
    one of the more specific subclasses below.
    """

    pass


class RecorderUnavailable(RecorderError):
    """
    Raised when a recorder's backing implementation cannot be reached.

    Covers a missing interpreter binary, a missing game file, or a model
    engine that is not configured or failed to initialize. Callers may
    degrade to single-implementation mode with a warning.
    """

    pass


class RecorderTimeout(RecorderError):
    """
    Raised when a command response or a whole run exceeds its deadline.

    Fatal to the run. The CLI maps this to exit code 4.
    """

    pass


class ProcessSpawnError(RecorderError):
    """
    Raised when the reference interpreter subprocess cannot be started.

    Usually an OS-level failure (permissions, bad executable format).
    """

    pass


class ProcessCleanupError(RecorderError):
    """
    Raised when the reference interpreter would not terminate.

    The process survived quit, terminate and kill within their bounded waits.
    """

    pass
