from datetime import datetime, timezone

import pytest

from app.core.errors import InvalidInput
from app.services.windows import month_bounds, monthly_calendar, resolve_window, weekly_activity

UTC = timezone.utc
# miércoles
NOW = datetime(2025, 3, 12, 15, 30, tzinfo=UTC)


class TestResolveWindow:
    def test_all_has_no_bounds(self):
        w = resolve_window("all", now=NOW)
        assert w.start is None and w.end is None
        assert resolve_window(None, now=NOW).filter == "all"

    def test_day_starts_at_midnight(self):
        w = resolve_window("day", now=NOW)
        assert w.start == datetime(2025, 3, 12, tzinfo=UTC)
        assert w.end == NOW

    def test_week_starts_on_monday(self):
        w = resolve_window("week", now=NOW)
        assert w.start == datetime(2025, 3, 10, tzinfo=UTC)
        assert w.start.weekday() == 0

    def test_month_starts_on_first_day(self):
        assert resolve_window("month", now=NOW).start == datetime(2025, 3, 1, tzinfo=UTC)

    def test_current_semester_follows_the_date(self):
        assert resolve_window("semester", now=NOW).start == datetime(2025, 1, 1, tzinfo=UTC)
        later = datetime(2025, 9, 2, tzinfo=UTC)
        assert resolve_window("semester", now=later).start == datetime(2025, 7, 1, tzinfo=UTC)

    def test_fixed_semesters_cover_whole_half_year(self):
        s1 = resolve_window("semester1", now=NOW)
        assert s1.start == datetime(2025, 1, 1, tzinfo=UTC)
        assert s1.end == datetime(2025, 6, 30, 23, 59, 59, 999999, tzinfo=UTC)
        s2 = resolve_window("semester2", now=NOW)
        assert s2.start == datetime(2025, 7, 1, tzinfo=UTC)
        assert s2.end.month == 12 and s2.end.day == 31

    def test_filter_is_case_insensitive(self):
        assert resolve_window(" WEEK ", now=NOW).filter == "week"

    def test_unknown_filter_is_rejected(self):
        with pytest.raises(InvalidInput) as exc:
            resolve_window("quarter", now=NOW)
        assert exc.value.status_code == 400

    def test_contains_accepts_naive_timestamps(self):
        w = resolve_window("day", now=NOW)
        assert w.contains(datetime(2025, 3, 12, 8, 0))
        assert not w.contains(datetime(2025, 3, 11, 23, 59))


class TestMonthBounds:
    def test_leap_february(self):
        start, end = month_bounds(2, 2024)
        assert start == datetime(2024, 2, 1, tzinfo=UTC)
        assert end.day == 29

    def test_invalid_month(self):
        with pytest.raises(InvalidInput):
            month_bounds(13, 2024)


class TestMonthlyCalendar:
    def test_month_starting_on_monday_has_no_leading_padding(self):
        stamps = [
            datetime(2025, 9, 3, 10, tzinfo=UTC),
            datetime(2025, 9, 3, 18, tzinfo=UTC),
            datetime(2025, 9, 29, 9, tzinfo=UTC),
            datetime(2025, 10, 1, 9, tzinfo=UTC),  # fuera del mes
        ]
        cal = monthly_calendar(9, 2025, stamps)

        grid = cal["calendar"]
        assert [c["day"] for c in grid[0]] == [1, 2, 3, 4, 5, 6, 7]
        assert [c["day"] for c in grid[-1]] == [29, 30, 0, 0, 0, 0, 0]
        assert all(len(week) == 7 for week in grid)
        assert grid[0][2]["has_activity"] is True
        assert grid[0][3]["has_activity"] is False
        assert grid[-1][2]["has_activity"] is False
        assert cal["weekly_totals"] == [2, 0, 0, 0, 1]

    def test_leading_days_are_padded_with_zero(self):
        cal = monthly_calendar(3, 2025, [])
        # 1 de marzo de 2025 es sábado
        assert [c["day"] for c in cal["calendar"][0]] == [0, 0, 0, 0, 0, 1, 2]
        assert not any(c["has_activity"] for week in cal["calendar"] for c in week)


class TestWeeklyActivity:
    def test_groups_by_iso_week_most_recent_first(self):
        stamps = [
            datetime(2025, 3, 3, 9, tzinfo=UTC),    # lunes, semana 10
            datetime(2025, 3, 10, 9, tzinfo=UTC),   # lunes, semana 11
            datetime(2025, 3, 12, 9, tzinfo=UTC),   # miércoles
            datetime(2025, 3, 12, 20, tzinfo=UTC),
            datetime(2025, 3, 16, 9, tzinfo=UTC),   # domingo
        ]
        weeks = weekly_activity(stamps)

        assert [(w["year"], w["week_number"]) for w in weeks] == [(2025, 11), (2025, 10)]
        assert weeks[0]["days"] == [True, False, True, False, False, False, True]
        assert weeks[1]["days"] == [True, False, False, False, False, False, False]

    def test_uses_iso_year_at_year_boundary(self):
        weeks = weekly_activity([datetime(2024, 12, 30, 12)])
        assert (weeks[0]["year"], weeks[0]["week_number"]) == (2025, 1)

    def test_empty(self):
        assert weekly_activity([]) == []
