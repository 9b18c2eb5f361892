"""
Exit workflow errors.

Every error is a deterministic function of the input state, so none of
them is retried internally. A failed call leaves the aggregate exactly as
it was before the call.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for client handling."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CHECKLIST_LOCKED = "CHECKLIST_LOCKED"
    BLOCKED_BY_MANDATORY_ITEMS = "BLOCKED_BY_MANDATORY_ITEMS"
    NOT_FOUND = "NOT_FOUND"


class ExitWorkflowError(Exception):
    """Base exception with structured error info."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the payload handed back to the calling layer."""
        result = {
            "error": self.code.value,
            "message": self.message,
        }
        if self.context:
            result["context"] = self.context
        return result


class ValidationError(ExitWorkflowError):
    """Malformed input: empty required remarks, short justification, bad enum value."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[Mapping[str, str]] = None,
    ):
        context: Dict[str, Any] = {}
        if field:
            context["field"] = field
        if errors:
            context["errors"] = dict(errors)
        super().__init__(message, context)
        self.field = field
        self.errors = dict(errors or {})


class UnauthorizedError(ExitWorkflowError):
    """Actor role does not own the item, or override capability is missing."""

    code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str, actor_role: Optional[str] = None, required: Optional[str] = None):
        context = {}
        if actor_role:
            context["actor_role"] = actor_role
        if required:
            context["required"] = required
        super().__init__(message, context)
        self.actor_role = actor_role
        self.required = required


class InvalidTransitionError(ExitWorkflowError):
    """Raised when a state or item-status transition is not permitted."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
    ):
        context = {}
        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        super().__init__(message, context)
        self.from_state = from_state
        self.to_state = to_state


class ChecklistLockedError(InvalidTransitionError):
    """Checklist or financial data changed after the request was decided."""

    code = ErrorCode.CHECKLIST_LOCKED


class BlockedByMandatoryItemsError(ExitWorkflowError):
    """Approval attempted while ERROR blockers exist.

    Carries the current blockers so the caller can show what to resolve.
    """

    code = ErrorCode.BLOCKED_BY_MANDATORY_ITEMS

    def __init__(self, blockers: List[Any]):
        errors = [b for b in blockers if getattr(b, "is_error", False)]
        super().__init__(
            f"Approval blocked by {len(errors)} unresolved blocker(s)",
            {"blockers": [b.to_dict() for b in blockers]},
        )
        self.blockers = list(blockers)


class ExitRequestNotFoundError(ExitWorkflowError, LookupError):
    """No exit request with the given id."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, exit_request_id: str):
        super().__init__(
            f"Exit request {exit_request_id} not found",
            {"exit_request_id": exit_request_id},
        )
        self.exit_request_id = exit_request_id
