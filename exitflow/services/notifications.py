"""Transition notification fan-out.

The workflow hands every committed transition to the dispatcher, which
calls the handlers registered for that action. Delivery channels live in
the handlers; a failing handler is logged and never undoes the
transition.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from exitflow.core.audit import AuditAction
from exitflow.core.rbac.roles import Role

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class TransitionEvent:
    """A committed change handed to notification handlers."""
    exit_request_id: str
    action: AuditAction
    old_status: Optional[str]
    new_status: Optional[str]
    actor_id: str
    actor_role: Role
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exit_request_id": self.exit_request_id,
            "action": self.action.value,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.isoformat(),
        }


Handler = Callable[[TransitionEvent], None]


class NotificationDispatcher:
    """Fans transition events out to registered handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def register(self, handler: Handler, action: Optional[AuditAction] = None) -> None:
        """
        Register a handler.

        Args:
            handler: Callable receiving the TransitionEvent
            action: Only dispatch events of this action; all events when None
        """
        key = action.value if action else WILDCARD
        self._handlers.setdefault(key, []).append(handler)

    def dispatch(self, event: TransitionEvent) -> int:
        """
        Deliver an event to its handlers.

        Returns:
            Number of handlers that completed without raising
        """
        handlers = self._handlers.get(event.action.value, []) + self._handlers.get(WILDCARD, [])
        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Notification handler failed for %s on %s",
                    event.action.value,
                    event.exit_request_id,
                )
        return delivered
