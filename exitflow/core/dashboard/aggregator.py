"""Dashboard aggregation.

Pure functions over lists of ExitRequestSummary: no clock, no shared
state. The same input always yields the same output.
"""

from typing import Callable, Dict, List, Optional, Sequence

from exitflow.common.timeutils import parse_iso, round_half_up

from .models import (
    DEFAULT_SORT,
    DashboardFilters,
    DashboardStats,
    DashboardView,
    ExitProgressState,
    ExitRequestSummary,
    SortOption,
)


def get_progress_state(request: ExitRequestSummary) -> ExitProgressState:
    """
    Classify a request's clearance progress.

    Checked in order: any overdue item wins, then a fully completed
    checklist, then partial progress.
    """
    progress = request.clearance_progress
    if progress.overdue > 0:
        return ExitProgressState.OVERDUE
    if progress.completed == progress.total:
        return ExitProgressState.COMPLETED
    if progress.completed > 0:
        return ExitProgressState.IN_PROGRESS
    return ExitProgressState.NOT_STARTED


def _matches(request: ExitRequestSummary, filters: DashboardFilters) -> bool:
    if filters.vertical and request.vertical != filters.vertical:
        return False

    if filters.progress_state and get_progress_state(request) != filters.progress_state:
        return False

    if filters.date_range:
        exit_at = parse_iso(request.requested_exit_date)
        if exit_at < parse_iso(filters.date_range.start) or exit_at > parse_iso(filters.date_range.end):
            return False

    if filters.search_query:
        query = filters.search_query.lower()
        haystacks = (request.student_name, request.student_id, request.room_number)
        if not any(query in h.lower() for h in haystacks):
            return False

    return True


def filter_exit_requests(
    requests: Sequence[ExitRequestSummary], filters: DashboardFilters
) -> List[ExitRequestSummary]:
    """Apply all filters (AND); the search query matches name, id or room."""
    return [r for r in requests if _matches(r, filters)]


def _high_risk_key(request: ExitRequestSummary):
    return (not request.is_high_risk, -request.aging_days)


SORT_KEYS: Dict[SortOption, Callable[[ExitRequestSummary], object]] = {
    SortOption.OLDEST_FIRST: lambda r: parse_iso(r.submitted_date),
    SortOption.EXIT_DATE_ASC: lambda r: parse_iso(r.requested_exit_date),
    SortOption.HIGH_RISK_FIRST: _high_risk_key,
    SortOption.PROGRESS_ASC: lambda r: r.clearance_progress.ratio,
}

# Descending options reuse the ascending key
REVERSED_SORTS: Dict[SortOption, SortOption] = {
    SortOption.NEWEST_FIRST: SortOption.OLDEST_FIRST,
    SortOption.EXIT_DATE_DESC: SortOption.EXIT_DATE_ASC,
    SortOption.PROGRESS_DESC: SortOption.PROGRESS_ASC,
}


def sort_exit_requests(
    requests: Sequence[ExitRequestSummary], option: SortOption = DEFAULT_SORT
) -> List[ExitRequestSummary]:
    """Stable sort; returns a new list and leaves the input untouched."""
    option = SortOption(option)
    if option in REVERSED_SORTS:
        # reverse=True keeps equal elements in their original order
        return sorted(requests, key=SORT_KEYS[REVERSED_SORTS[option]], reverse=True)
    return sorted(requests, key=SORT_KEYS[option])


def calculate_dashboard_stats(requests: Sequence[ExitRequestSummary]) -> DashboardStats:
    """Fleet-wide statistics. The caller scopes owned items to its role beforehand."""
    total = len(requests)
    completed = sum(
        1 for r in requests if get_progress_state(r) == ExitProgressState.COMPLETED
    )
    average = round_half_up(sum(r.aging_days for r in requests) / total) if total else 0

    return DashboardStats(
        total_requests=total,
        pending_clearance=total - completed,
        completed_clearance=completed,
        high_risk_count=sum(1 for r in requests if r.is_high_risk),
        my_pending_items=sum(r.owned_items.pending for r in requests),
        average_aging_days=average,
    )


def build_dashboard(
    requests: Sequence[ExitRequestSummary],
    filters: Optional[DashboardFilters] = None,
    sort_option: SortOption = DEFAULT_SORT,
) -> DashboardView:
    """Filter then sort the requests; stats cover the unfiltered input."""
    visible = filter_exit_requests(requests, filters or DashboardFilters())
    return DashboardView(
        requests=sort_exit_requests(visible, sort_option),
        stats=calculate_dashboard_stats(requests),
    )
