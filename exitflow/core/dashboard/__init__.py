"""Dashboard aggregation over many exit requests."""

from .aggregator import (
    build_dashboard,
    calculate_dashboard_stats,
    filter_exit_requests,
    get_progress_state,
    sort_exit_requests,
)
from .models import (
    DashboardFilters,
    DashboardPolicy,
    DashboardStats,
    DashboardView,
    DateRange,
    ExitProgressState,
    ExitRequestSummary,
    SortOption,
)
from .projection import summarize_exit_request, summarize_exit_requests

__all__ = [
    "build_dashboard",
    "calculate_dashboard_stats",
    "filter_exit_requests",
    "get_progress_state",
    "sort_exit_requests",
    "DashboardFilters",
    "DashboardPolicy",
    "DashboardStats",
    "DashboardView",
    "DateRange",
    "ExitProgressState",
    "ExitRequestSummary",
    "SortOption",
    "summarize_exit_request",
    "summarize_exit_requests",
]
