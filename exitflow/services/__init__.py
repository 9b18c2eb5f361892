"""Service layer: workflow orchestration and notification fan-out."""

from .exit_workflow import ExitWorkflowService, WorkflowResult
from .factory import create_workflow_service
from .notifications import NotificationDispatcher, TransitionEvent

__all__ = [
    "ExitWorkflowService",
    "NotificationDispatcher",
    "TransitionEvent",
    "WorkflowResult",
    "create_workflow_service",
]
