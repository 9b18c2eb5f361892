"""Exit request state machine.

Validates transitions against the rule table and the acting role. The
machine is rebuilt from the aggregate for every operation; the performed
transitions are kept on the aggregate's state_history.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from exitflow.common.timeutils import utc_now
from exitflow.core.errors import InvalidTransitionError, UnauthorizedError, ValidationError
from exitflow.core.rbac.roles import Role

from .states import (
    ExitRequestState,
    ExitTransition,
    TransitionRule,
    can_transition,
    get_transition_rule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRecord:
    """A completed state transition."""
    id: str
    exit_request_id: str
    from_state: ExitRequestState
    to_state: ExitRequestState
    transition: ExitTransition
    actor_id: str
    actor_role: Role
    timestamp: datetime
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "exit_request_id": self.exit_request_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "transition": self.transition.value,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.isoformat(),
            "comment": self.comment,
        }


class ExitRequestStateMachine:
    """
    State machine for a single exit request.

    Manages transitions between states with:
    - Validation against the transition table
    - Role checks for protected transitions
    - Override capability checks for reversal of approvals
    """

    def __init__(self, exit_request_id: str, current_state: ExitRequestState):
        self.exit_request_id = exit_request_id
        self._state = current_state

    @property
    def state(self) -> ExitRequestState:
        return self._state

    def validate_transition(
        self,
        transition: ExitTransition,
        actor_role: Role,
        *,
        comment: Optional[str] = None,
        can_override: bool = False,
    ) -> TransitionRule:
        """
        Validate a transition without performing it.

        Raises:
            InvalidTransitionError: If the transition is not valid from the current state
            UnauthorizedError: If the role or override capability is missing
            ValidationError: If a required comment is empty
        """
        return self._check(transition, actor_role, can_override=can_override, comment=comment)

    def transition(
        self,
        transition: ExitTransition,
        *,
        actor_id: str,
        actor_role: Role,
        comment: Optional[str] = None,
        can_override: bool = False,
        timestamp: Optional[datetime] = None,
    ) -> TransitionRecord:
        """
        Perform a state transition.

        Args:
            transition: The transition to perform
            actor_id: ID of the actor performing the transition
            actor_role: Role of the actor
            comment: Comment (required for some transitions)
            can_override: Whether the actor holds the override capability
            timestamp: When the transition happened (defaults to now)

        Returns:
            The transition record

        Raises:
            InvalidTransitionError: If the transition is invalid
            UnauthorizedError: If the actor may not perform it
            ValidationError: If a required comment is missing
        """
        rule = self._check(transition, actor_role, can_override=can_override, comment=comment)

        record = TransitionRecord(
            id=str(uuid.uuid4()),
            exit_request_id=self.exit_request_id,
            from_state=self._state,
            to_state=rule.to_state,
            transition=transition,
            actor_id=actor_id,
            actor_role=actor_role,
            timestamp=timestamp or utc_now(),
            comment=comment,
        )
        self._state = rule.to_state

        logger.info(
            "Exit request %s: %s -> %s (%s by %s)",
            self.exit_request_id,
            record.from_state.value,
            record.to_state.value,
            transition.value,
            actor_role.value,
        )

        return record

    def _check(
        self,
        transition: ExitTransition,
        actor_role: Role,
        *,
        can_override: bool,
        comment: Optional[str],
    ) -> TransitionRule:
        rule = get_transition_rule(self._state, transition)
        if not can_transition(self._state, transition) or rule is None:
            raise InvalidTransitionError(
                f"Cannot perform {transition.value} from state {self._state.value}",
                from_state=self._state.value,
                to_state=transition.value,
            )

        if rule.requires_override and not can_override:
            raise UnauthorizedError(
                f"Transition {transition.value} requires the override capability",
                actor_role=actor_role.value,
                required="override",
            )

        if rule.allowed_roles is not None and actor_role not in rule.allowed_roles:
            raise UnauthorizedError(
                f"Role {actor_role.value} may not perform {transition.value}",
                actor_role=actor_role.value,
                required=",".join(sorted(r.value for r in rule.allowed_roles)),
            )

        if rule.requires_comment and not (comment and comment.strip()):
            raise ValidationError(
                f"Transition {transition.value} requires a comment",
                field="remarks",
            )

        return rule
