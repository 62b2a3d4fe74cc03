"""
Error taxonomy for the judging engine.

Verdicts (WA, RE, TLE) are never raised; they are returned as data. The
classes below cover the failures that end the requested operation.
"""


class HarnessError(RuntimeError):
    """Base class for errors that abort one harness operation."""


class ConfigError(HarnessError):
    """Raised when the run configuration is missing or malformed."""


class SelectionError(HarnessError):
    """Raised when a batch is requested without a resolvable problem."""


class InternalError(HarnessError):
    """Raised when a fixture cannot be judged because of an I/O failure."""


class BuildFailure(HarnessError):
    """Raised by callers that treat a failed build as terminal."""

    def __init__(self, result):
        message = result.error_message or "Build failed"
        super().__init__(message)
        self.result = result
