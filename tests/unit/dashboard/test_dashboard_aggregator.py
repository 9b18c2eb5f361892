"""Tests for dashboard filtering, sorting and statistics."""

from datetime import date, datetime, timezone

import pytest

from exitflow.core.dashboard import (
    DashboardFilters,
    DateRange,
    ExitProgressState,
    SortOption,
    build_dashboard,
    calculate_dashboard_stats,
    filter_exit_requests,
    get_progress_state,
    sort_exit_requests,
)
from exitflow.core.request.models import HostelVertical

from tests.factories import NOW, create_summary


class TestProgressState:
    """Test progress classification."""

    def test_not_started(self):
        assert get_progress_state(create_summary(total=4, completed=0)) == ExitProgressState.NOT_STARTED

    def test_in_progress(self):
        assert get_progress_state(create_summary(total=4, completed=2)) == ExitProgressState.IN_PROGRESS

    def test_completed(self):
        assert get_progress_state(create_summary(total=4, completed=4)) == ExitProgressState.COMPLETED

    def test_overdue_wins(self):
        """Test an overdue item outranks a fully completed count."""
        assert get_progress_state(create_summary(total=4, completed=4, overdue=1)) == ExitProgressState.OVERDUE


class TestFilterExitRequests:
    """Test dashboard filters."""

    def test_no_filters(self):
        requests = [create_summary(), create_summary()]
        assert filter_exit_requests(requests, DashboardFilters()) == requests

    def test_vertical(self):
        boys = create_summary()
        girls = create_summary(vertical=HostelVertical.GIRLS)
        assert filter_exit_requests([boys, girls], DashboardFilters(vertical=HostelVertical.GIRLS)) == [girls]

    def test_progress_state(self):
        done = create_summary(total=2, completed=2)
        started = create_summary(total=2, completed=1)
        filters = DashboardFilters(progress_state=ExitProgressState.COMPLETED)
        assert filter_exit_requests([done, started], filters) == [done]

    def test_date_range_inclusive(self):
        """Test both range bounds are inclusive."""
        early = create_summary(requested_exit_date=date(2026, 4, 1))
        late = create_summary(requested_exit_date=date(2026, 4, 30))
        outside = create_summary(requested_exit_date=date(2026, 5, 1))
        filters = DashboardFilters(date_range=DateRange("2026-04-01", "2026-04-30"))

        assert filter_exit_requests([early, late, outside], filters) == [early, late]

    def test_search_matches_name_id_or_room(self):
        """Test the search is case-insensitive over name, id and room."""
        asha = create_summary(student_name="Asha Rao", student_id="STU1001", room_number="G-12")
        ravi = create_summary(student_name="Ravi Kumar", student_id="STU2002", room_number="B-7")

        assert filter_exit_requests([asha, ravi], DashboardFilters(search_query="asha")) == [asha]
        assert filter_exit_requests([asha, ravi], DashboardFilters(search_query="stu2002")) == [ravi]
        assert filter_exit_requests([asha, ravi], DashboardFilters(search_query="g-12")) == [asha]

    def test_filters_combine(self):
        target = create_summary(student_name="Meera", vertical=HostelVertical.GIRLS)
        other = create_summary(student_name="Meera", vertical=HostelVertical.BOYS)
        filters = DashboardFilters(vertical=HostelVertical.GIRLS, search_query="meera")
        assert filter_exit_requests([target, other], filters) == [target]


class TestSortExitRequests:
    """Test dashboard sorting."""

    def test_oldest_and_newest(self):
        old = create_summary(aging_days=30)
        new = create_summary(aging_days=2)

        assert sort_exit_requests([new, old], SortOption.OLDEST_FIRST) == [old, new]
        assert sort_exit_requests([old, new], SortOption.NEWEST_FIRST) == [new, old]

    def test_exit_date(self):
        soon = create_summary(requested_exit_date=date(2026, 4, 1))
        later = create_summary(requested_exit_date=date(2026, 6, 1))

        assert sort_exit_requests([later, soon], SortOption.EXIT_DATE_ASC) == [soon, later]
        assert sort_exit_requests([soon, later], SortOption.EXIT_DATE_DESC) == [later, soon]

    def test_high_risk_first(self):
        """Test high-risk requests lead, older ones first within each group."""
        calm_old = create_summary(aging_days=40)
        risky_new = create_summary(aging_days=3, is_high_risk=True)
        risky_old = create_summary(aging_days=20, is_high_risk=True)

        result = sort_exit_requests([calm_old, risky_new, risky_old], SortOption.HIGH_RISK_FIRST)
        assert result == [risky_old, risky_new, calm_old]

    def test_default_is_high_risk_first(self):
        calm = create_summary()
        risky = create_summary(is_high_risk=True)
        assert sort_exit_requests([calm, risky]) == [risky, calm]

    def test_progress_with_empty_checklist(self):
        """Test an empty checklist sorts as zero progress."""
        empty = create_summary(total=0, completed=0)
        half = create_summary(total=4, completed=2)
        full = create_summary(total=2, completed=2)

        assert sort_exit_requests([full, empty, half], SortOption.PROGRESS_ASC) == [empty, half, full]
        assert sort_exit_requests([half, empty, full], SortOption.PROGRESS_DESC) == [full, half, empty]

    def test_stable_for_ties(self):
        """Test equal keys keep their input order in both directions."""
        a = create_summary(total=4, completed=1)
        b = create_summary(total=4, completed=1)
        c = create_summary(total=4, completed=1)

        assert sort_exit_requests([a, b, c], SortOption.PROGRESS_ASC) == [a, b, c]
        assert sort_exit_requests([a, b, c], SortOption.PROGRESS_DESC) == [a, b, c]

    def test_input_untouched(self):
        requests = [create_summary(aging_days=1), create_summary(aging_days=5)]
        snapshot = list(requests)
        sort_exit_requests(requests, SortOption.OLDEST_FIRST)
        assert requests == snapshot

    def test_string_option(self):
        a = create_summary(aging_days=1)
        b = create_summary(aging_days=9)
        assert sort_exit_requests([a, b], "OLDEST_FIRST") == [b, a]


class TestDashboardStats:
    """Test dashboard statistics."""

    def test_average_aging(self):
        """Test the average of 30, 45 and 15 days is 30."""
        requests = [create_summary(aging_days=d) for d in (30, 45, 15)]
        assert calculate_dashboard_stats(requests).average_aging_days == 30

    def test_average_rounds_half_up(self):
        requests = [create_summary(aging_days=d) for d in (1, 2)]
        assert calculate_dashboard_stats(requests).average_aging_days == 2

    def test_counts(self):
        requests = [
            create_summary(total=3, completed=3),
            create_summary(total=3, completed=1, is_high_risk=True, owned_pending=2),
            create_summary(total=3, completed=0, owned_pending=1),
        ]
        stats = calculate_dashboard_stats(requests)

        assert stats.total_requests == 3
        assert stats.completed_clearance == 1
        assert stats.pending_clearance == 2
        assert stats.high_risk_count == 1
        assert stats.my_pending_items == 3

    def test_empty(self):
        stats = calculate_dashboard_stats([])
        assert stats.to_dict() == {
            "total_requests": 0,
            "pending_clearance": 0,
            "completed_clearance": 0,
            "high_risk_count": 0,
            "my_pending_items": 0,
            "average_aging_days": 0,
        }


class TestPurity:
    """Test that aggregation is a pure function of its input."""

    def test_repeated_calls_agree(self):
        requests = [
            create_summary(aging_days=d, is_high_risk=d > 20, submitted_date=datetime(2026, 1, d, tzinfo=timezone.utc))
            for d in (5, 25, 12, 25)
        ]
        filters = DashboardFilters(search_query="student")

        first = build_dashboard(requests, filters, SortOption.HIGH_RISK_FIRST)
        second = build_dashboard(list(requests), filters, SortOption.HIGH_RISK_FIRST)

        assert first == second
        assert calculate_dashboard_stats(requests) == calculate_dashboard_stats(requests)


class TestBuildDashboard:
    """Test the combined dashboard view."""

    def test_stats_cover_unfiltered_input(self):
        """Test filtering narrows the list but not the statistics."""
        boys = create_summary(aging_days=10)
        girls = create_summary(aging_days=20, vertical=HostelVertical.GIRLS)

        view = build_dashboard([boys, girls], DashboardFilters(vertical=HostelVertical.GIRLS))

        assert view.requests == [girls]
        assert view.stats.total_requests == 2
        assert view.stats.average_aging_days == 15

    def test_invalid_sort_option(self):
        with pytest.raises(ValueError):
            build_dashboard([create_summary()], sort_option="ALPHABETICAL")
