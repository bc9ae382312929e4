"""Error taxonomy for the maturity assessment engine.

Every error raised by the core layer derives from MaturityEngineError and
carries a machine-readable ErrorCode plus a ``context`` dict naming the rule,
record or stage involved, so that callers can correct the action.

    ValidationError  precondition violated (no open period, bad label,
                     guideline-qualification invariant, disabled pillar)
    NotFoundError    referenced record does not exist
    ConflictError    lost a concurrent activation race (retryable)
    PolicyError      edit against a locked stage or a read-only assessment
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error identifiers exposed to API clients."""

    VALIDATION_FAILED = "validation_failed"
    NO_OPEN_PERIOD = "no_open_period"
    INVALID_LABEL = "invalid_label"
    GUIDELINE_INVARIANT = "guideline_invariant"
    PILLAR_DISABLED = "pillar_disabled"
    INVALID_OPERATION = "invalid_operation"
    NOT_FOUND = "not_found"
    ACTIVATION_CONFLICT = "activation_conflict"
    STAGE_LOCKED = "stage_locked"
    ASSESSMENT_READ_ONLY = "assessment_read_only"


class MaturityEngineError(Exception):
    """Base class for all engine errors.

    Attributes:
        message: Human-readable description.
        error_code: Machine-readable code.
        context: Extra fields identifying what failed.
        retryable: Whether the caller may safely retry the same operation.
    """

    default_code: ErrorCode = ErrorCode.VALIDATION_FAILED
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context: dict[str, Any] = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for an API response body."""
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(MaturityEngineError):
    """A precondition of the requested operation is not met."""

    default_code = ErrorCode.VALIDATION_FAILED


class NotFoundError(MaturityEngineError):
    """A referenced record does not exist."""

    default_code = ErrorCode.NOT_FOUND


class ConflictError(MaturityEngineError):
    """A concurrent writer won the activation race; safe to retry."""

    default_code = ErrorCode.ACTIVATION_CONFLICT
    retryable = True


class PolicyError(MaturityEngineError):
    """The edit is forbidden by the stage gate or the assessment state."""

    default_code = ErrorCode.STAGE_LOCKED
