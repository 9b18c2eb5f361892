"""Exit request states and transitions.

State Machine Diagram:

    ┌──────────┐
    │  DRAFT   │ ← Initial state (student is filling in the form)
    └────┬─────┘
         │ submit
    ┌────▼──────┐  withdraw  ┌───────────┐
    │ SUBMITTED │───────────►│ WITHDRAWN │
    └────┬──────┘            └───────────┘
         │ begin_clearance (checklist instantiated)
    ┌────▼────────────┐
    │ UNDER_CLEARANCE │◄─────────────┐
    └────┬───────┬────┘              │ revert_approval (override)
         │       │                   │
    ┌────▼─────┐ ┌▼─────────┐        │
    │ APPROVED │ │ REJECTED │        │
    └────┬─────┘ └──────────┘        │
         └───────────────────────────┘
           override_reject (override) → REJECTED

APPROVED is terminal for normal workflow; only the override path leaves it.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Set, Tuple

from exitflow.core.rbac.roles import Role


class ExitRequestState(str, Enum):
    """States in the exit request lifecycle."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_CLEARANCE = "UNDER_CLEARANCE"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ExitTransition(str, Enum):
    """Actions that trigger state transitions."""

    SUBMIT = "submit"                      # DRAFT → SUBMITTED
    WITHDRAW = "withdraw"                  # SUBMITTED → WITHDRAWN
    BEGIN_CLEARANCE = "begin_clearance"    # SUBMITTED → UNDER_CLEARANCE
    APPROVE = "approve"                    # UNDER_CLEARANCE → APPROVED
    REJECT = "reject"                      # UNDER_CLEARANCE → REJECTED
    REVERT_APPROVAL = "revert_approval"    # APPROVED → UNDER_CLEARANCE (override)
    OVERRIDE_REJECT = "override_reject"    # APPROVED → REJECTED (override)


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ExitRequestState
    to_state: ExitRequestState
    transition: ExitTransition
    allowed_roles: Optional[FrozenSet[Role]] = None
    requires_comment: bool = False
    requires_override: bool = False


DECISION_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.TRUSTEE})

TRANSITION_RULES: List[TransitionRule] = [
    # Student lifecycle
    TransitionRule(ExitRequestState.DRAFT, ExitRequestState.SUBMITTED, ExitTransition.SUBMIT,
                   frozenset({Role.STUDENT})),
    TransitionRule(ExitRequestState.SUBMITTED, ExitRequestState.WITHDRAWN, ExitTransition.WITHDRAW,
                   frozenset({Role.STUDENT})),

    # System-triggered once the checklist is bound to the request
    TransitionRule(ExitRequestState.SUBMITTED, ExitRequestState.UNDER_CLEARANCE,
                   ExitTransition.BEGIN_CLEARANCE, frozenset({Role.SYSTEM})),

    # Decisions
    TransitionRule(ExitRequestState.UNDER_CLEARANCE, ExitRequestState.APPROVED, ExitTransition.APPROVE,
                   DECISION_ROLES),
    TransitionRule(ExitRequestState.UNDER_CLEARANCE, ExitRequestState.REJECTED, ExitTransition.REJECT,
                   DECISION_ROLES, requires_comment=True),

    # Override of an approved decision
    TransitionRule(ExitRequestState.APPROVED, ExitRequestState.UNDER_CLEARANCE,
                   ExitTransition.REVERT_APPROVAL, requires_comment=True, requires_override=True),
    TransitionRule(ExitRequestState.APPROVED, ExitRequestState.REJECTED,
                   ExitTransition.OVERRIDE_REJECT, requires_comment=True, requires_override=True),
]

# Lookup tables
VALID_TRANSITIONS: Dict[ExitRequestState, Set[ExitTransition]] = {}
TRANSITION_TARGETS: Dict[Tuple[ExitRequestState, ExitTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


# No normal-workflow transitions leave these states
TERMINAL_STATES: FrozenSet[ExitRequestState] = frozenset({
    ExitRequestState.APPROVED,
    ExitRequestState.REJECTED,
    ExitRequestState.WITHDRAWN,
})

# Checklist and financial data are read-only in these states
LOCKED_STATES: FrozenSet[ExitRequestState] = TERMINAL_STATES

# States tracked by the dashboard
TRACKED_STATES: FrozenSet[ExitRequestState] = frozenset({
    ExitRequestState.SUBMITTED,
    ExitRequestState.UNDER_CLEARANCE,
    ExitRequestState.APPROVED,
    ExitRequestState.REJECTED,
})

# Override transitions keyed by the state the override lands in
OVERRIDE_TRANSITIONS: Dict[ExitRequestState, ExitTransition] = {
    ExitRequestState.UNDER_CLEARANCE: ExitTransition.REVERT_APPROVAL,
    ExitRequestState.REJECTED: ExitTransition.OVERRIDE_REJECT,
}


def can_transition(from_state: ExitRequestState, transition: ExitTransition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(
    from_state: ExitRequestState, transition: ExitTransition
) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(
    from_state: ExitRequestState, transition: ExitTransition
) -> Optional[ExitRequestState]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None
