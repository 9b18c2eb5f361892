"""Dashboard schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from exitflow.core.dashboard.models import (
    ClearanceProgress,
    DashboardFilters,
    DashboardStats,
    DashboardView,
    DateRange,
    ExitProgressState,
    ExitRequestSummary,
    LastActivity,
    OwnedItems,
)
from exitflow.core.request.models import HostelVertical
from exitflow.core.request.states import ExitRequestState

from .common import CamelModel


class ClearanceProgressSchema(CamelModel):
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0


class OwnedItemsSchema(CamelModel):
    total: int = 0
    completed: int = 0
    pending: int = 0


class LastActivitySchema(CamelModel):
    timestamp: datetime
    actor: str
    action: str


class ExitRequestSummarySchema(CamelModel):
    id: str
    student_name: str
    student_id: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    submitted_date: datetime
    current_status: ExitRequestState
    clearance_progress: ClearanceProgressSchema = Field(default_factory=ClearanceProgressSchema)
    owned_items: OwnedItemsSchema = Field(default_factory=OwnedItemsSchema)
    aging_days: int = 0
    is_high_risk: bool = False
    last_activity: Optional[LastActivitySchema] = None

    @classmethod
    def from_domain(cls, summary: ExitRequestSummary) -> "ExitRequestSummarySchema":
        activity = summary.last_activity
        return cls(
            id=summary.id,
            student_name=summary.student_name,
            student_id=summary.student_id,
            room_number=summary.room_number,
            vertical=summary.vertical,
            requested_exit_date=summary.requested_exit_date,
            submitted_date=summary.submitted_date,
            current_status=summary.current_status,
            clearance_progress=ClearanceProgressSchema(**vars(summary.clearance_progress)),
            owned_items=OwnedItemsSchema(**vars(summary.owned_items)),
            aging_days=summary.aging_days,
            is_high_risk=summary.is_high_risk,
            last_activity=LastActivitySchema(**vars(activity)) if activity else None,
        )

    def to_domain(self) -> ExitRequestSummary:
        activity = self.last_activity
        return ExitRequestSummary(
            id=self.id,
            student_name=self.student_name,
            student_id=self.student_id,
            room_number=self.room_number,
            vertical=self.vertical,
            requested_exit_date=self.requested_exit_date,
            submitted_date=self.submitted_date,
            current_status=self.current_status,
            clearance_progress=ClearanceProgress(**self.clearance_progress.model_dump()),
            owned_items=OwnedItems(**self.owned_items.model_dump()),
            aging_days=self.aging_days,
            is_high_risk=self.is_high_risk,
            last_activity=LastActivity(**activity.model_dump()) if activity else None,
        )


class DateRangeSchema(CamelModel):
    start: datetime = Field(alias="from")
    end: datetime = Field(alias="to")


class DashboardFiltersSchema(CamelModel):
    vertical: Optional[HostelVertical] = None
    progress_state: Optional[ExitProgressState] = None
    date_range: Optional[DateRangeSchema] = None
    search_query: Optional[str] = None

    def to_domain(self) -> DashboardFilters:
        return DashboardFilters(
            vertical=self.vertical,
            progress_state=self.progress_state,
            date_range=(
                DateRange(self.date_range.start, self.date_range.end) if self.date_range else None
            ),
            search_query=self.search_query or None,
        )


class DashboardStatsSchema(CamelModel):
    total_requests: int = 0
    pending_clearance: int = 0
    completed_clearance: int = 0
    high_risk_count: int = 0
    my_pending_items: int = 0
    average_aging_days: int = 0

    @classmethod
    def from_domain(cls, stats: DashboardStats) -> "DashboardStatsSchema":
        return cls(**stats.to_dict())


class DashboardViewSchema(CamelModel):
    requests: List[ExitRequestSummarySchema]
    stats: DashboardStatsSchema

    @classmethod
    def from_domain(cls, view: DashboardView) -> "DashboardViewSchema":
        return cls(
            requests=[ExitRequestSummarySchema.from_domain(r) for r in view.requests],
            stats=DashboardStatsSchema.from_domain(view.stats),
        )
