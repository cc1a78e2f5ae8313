"""Error taxonomy for the pipeline tracker.

`InvalidInputError` subclasses are fatal to the action and surface as a
non-zero exit. `RemoteUnavailableError` and `StorageError` are downgraded to
warnings by the tracker. `StateValidationError` refuses a write and aborts the
remote call that would have followed it.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base error with a stable machine-readable code."""

    code = "TRACKER_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidInputError(TrackerError, ValueError):
    """Caller supplied a value the tracker cannot act on."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, message: str, *, code: str | None = None) -> None:
        super().__init__(message, code=code)
        self.field = field


class MissingInputError(InvalidInputError):
    code = "MISSING_INPUT"

    def __init__(self, field: str) -> None:
        super().__init__(field, f"Missing required input: {field}")


class InvalidStepNumberError(InvalidInputError):
    code = "INVALID_STEP_NUMBER"

    def __init__(self, step_number: object, total_steps: object | None = None) -> None:
        if total_steps is None:
            message = f"Invalid step number: {step_number}"
        else:
            message = f"Invalid step number: {step_number} (total steps: {total_steps})"
        super().__init__("step_number", message)
        self.step_number = step_number
        self.total_steps = total_steps


class InvalidStatusError(InvalidInputError):
    code = "INVALID_STATUS"

    def __init__(self, status: str) -> None:
        super().__init__("status", f"Invalid status: {status}")
        self.status = status


class InvalidCredentialError(InvalidInputError):
    """Bot token or channel id is blank or malformed."""


class InvalidActionError(InvalidInputError):
    code = "INVALID_ACTION"

    def __init__(self, action: str) -> None:
        super().__init__("action", f"Invalid action: {action}")
        self.action = action


class RemoteUnavailableError(TrackerError):
    """Chat API call failed (transport error, 4xx, 5xx, or retries exhausted)."""

    def __init__(self, message: str, *, status_code: int | None = None, attempts: int = 1) -> None:
        code = f"DISCORD_API_{status_code}" if status_code else "DISCORD_API_ERROR"
        super().__init__(f"Discord API Error: {message}", code=code)
        self.status_code = status_code
        self.attempts = attempts


class StorageError(TrackerError):
    code = "FILE_SYSTEM_ERROR"


class CorruptStateError(StorageError):
    code = "CORRUPT_STATE"


class StateValidationError(TrackerError, ValueError):
    """Raised when a pipeline state record fails structural validation."""

    code = "STATE_VALIDATION_FAILED"

    def __init__(self, diagnostics: list[str] | tuple[str, ...]) -> None:
        message = "State validation failed: " + "; ".join(diagnostics)
        super().__init__(message)
        self.diagnostics = tuple(diagnostics)
