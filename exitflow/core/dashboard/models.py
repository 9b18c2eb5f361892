"""Dashboard records: per-request summaries, filters, sort options and stats."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from exitflow.core.request.models import HostelVertical
from exitflow.core.request.states import ExitRequestState


@dataclass(frozen=True)
class DashboardPolicy:
    """Thresholds used when projecting requests onto the dashboard."""

    item_sla_days: int = 7
    high_risk_exit_window_days: int = 7


class ExitProgressState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


class SortOption(str, Enum):
    OLDEST_FIRST = "OLDEST_FIRST"
    NEWEST_FIRST = "NEWEST_FIRST"
    EXIT_DATE_ASC = "EXIT_DATE_ASC"
    EXIT_DATE_DESC = "EXIT_DATE_DESC"
    HIGH_RISK_FIRST = "HIGH_RISK_FIRST"
    PROGRESS_ASC = "PROGRESS_ASC"
    PROGRESS_DESC = "PROGRESS_DESC"


DEFAULT_SORT = SortOption.HIGH_RISK_FIRST


@dataclass(frozen=True)
class ClearanceProgress:
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0

    @property
    def ratio(self) -> float:
        """Completed share of all items, 0 for an empty checklist."""
        return self.completed / self.total if self.total > 0 else 0.0


@dataclass(frozen=True)
class OwnedItems:
    """Items owned by the viewing role."""
    total: int = 0
    completed: int = 0
    pending: int = 0


@dataclass(frozen=True)
class LastActivity:
    timestamp: datetime
    actor: str
    action: str


@dataclass(frozen=True)
class ExitRequestSummary:
    """Read-side view of one exit request."""
    id: str
    student_name: str
    student_id: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    submitted_date: datetime
    current_status: ExitRequestState
    clearance_progress: ClearanceProgress = field(default_factory=ClearanceProgress)
    owned_items: OwnedItems = field(default_factory=OwnedItems)
    aging_days: int = 0
    is_high_risk: bool = False
    last_activity: Optional[LastActivity] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive range on the requested exit date."""
    start: Any
    end: Any


@dataclass(frozen=True)
class DashboardFilters:
    """Conjunctive dashboard filters; None means no restriction."""
    vertical: Optional[HostelVertical] = None
    progress_state: Optional[ExitProgressState] = None
    date_range: Optional[DateRange] = None
    search_query: Optional[str] = None


@dataclass(frozen=True)
class DashboardStats:
    total_requests: int = 0
    pending_clearance: int = 0
    completed_clearance: int = 0
    high_risk_count: int = 0
    my_pending_items: int = 0
    average_aging_days: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_requests": self.total_requests,
            "pending_clearance": self.pending_clearance,
            "completed_clearance": self.completed_clearance,
            "high_risk_count": self.high_risk_count,
            "my_pending_items": self.my_pending_items,
            "average_aging_days": self.average_aging_days,
        }


@dataclass(frozen=True)
class DashboardView:
    """Filtered and sorted requests plus stats over the full input."""
    requests: List[ExitRequestSummary]
    stats: DashboardStats
