"""
Runner error types.

All errors inherit from RunnerError for easy catching.
Only caller errors are raised out of the orchestrator; spawn failures, job
failures and user cancellation are reported through the Finish event.
"""


class RunnerError(Exception):
    """Base exception for all runner failures."""
    pass


class RejectionError(RunnerError):
    """Raised when a command is refused before any state changes."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StateUnavailableError(RejectionError):
    """Raised when a runner state lock cannot be acquired in time."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Runner state unavailable ({field} lock)")


class ScriptNotFoundError(RunnerError):
    """Raised when the batch script cannot be resolved."""
    pass


class ExportError(RunnerError):
    """Raised when a log export cannot be written."""
    pass
