from datetime import datetime, timedelta, timezone

import pytest

from jobdesk.schemas.recurrence import RecurrenceRule
from jobdesk.services.recurrence_service import expand_recurrence, skip_breaks

# 2030-01-01 is a Tuesday
START = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
END = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _rule(**kwargs):
    return RecurrenceRule(**kwargs)


class TestCountBound:
    @pytest.mark.parametrize("rule", [
        {"frequency": "daily"},
        {"frequency": "daily", "interval": 3},
        {"frequency": "weekly"},
        {"frequency": "weekly", "days_of_week": [0, 6]},
        {"frequency": "monthly"},
        {"frequency": "monthly", "interval": 5},
        {"frequency": "custom", "days_of_week": [1, 3, 5]},
        {"frequency": "custom", "days_of_week": [4], "interval": 2},
    ])
    @pytest.mark.parametrize("count", [1, 2, 7, 50])
    def test_count_yields_exactly_count(self, rule, count):
        occurrences = expand_recurrence(_rule(count=count, **rule), START, END)
        assert len(occurrences) == count

    def test_count_above_cap_is_rejected(self):
        with pytest.raises(ValueError):
            expand_recurrence(_rule(frequency="daily", count=51), START, END)

    def test_occurrences_are_ordered_and_keep_duration(self):
        occurrences = expand_recurrence(_rule(frequency="custom", days_of_week=[1, 3, 5], count=9), START, END)
        starts = [s for s, _ in occurrences]
        assert starts == sorted(starts)
        assert all(e - s == timedelta(hours=2) for s, e in occurrences)
        assert all(s.hour == 10 for s in starts)


class TestUntilBound:
    @pytest.mark.parametrize("rule", [
        {"frequency": "daily"},
        {"frequency": "weekly", "interval": 2},
        {"frequency": "monthly"},
        {"frequency": "custom", "days_of_week": [0, 2, 4]},
    ])
    @pytest.mark.parametrize("days", [0, 1, 13, 90])
    def test_every_start_is_on_or_before_until(self, rule, days):
        until = START + timedelta(days=days)
        occurrences = expand_recurrence(_rule(until_date=until, **rule), START, END)
        assert all(s <= until for s, _ in occurrences)

    def test_until_is_inclusive(self):
        until = datetime(2030, 1, 10, 10, 0, tzinfo=timezone.utc)
        occurrences = expand_recurrence(_rule(frequency="daily", until_date=until), START, END)
        assert len(occurrences) == 10
        assert occurrences[-1][0] == until

    def test_count_and_until_stop_at_whichever_comes_first(self):
        until = datetime(2030, 1, 3, 23, 0, tzinfo=timezone.utc)
        assert len(expand_recurrence(_rule(frequency="daily", count=10, until_date=until), START, END)) == 3
        assert len(expand_recurrence(_rule(frequency="daily", count=2, until_date=until), START, END)) == 2

    def test_long_until_is_capped(self):
        until = datetime(2031, 12, 31, tzinfo=timezone.utc)
        occurrences = expand_recurrence(_rule(frequency="daily", until_date=until), START, END)
        assert len(occurrences) == 50


class TestUnbounded:
    def test_rejected_without_horizon(self):
        with pytest.raises(ValueError):
            expand_recurrence(_rule(frequency="weekly"), START, END)

    def test_horizon_bounds_expansion(self):
        horizon = START + timedelta(weeks=4)
        occurrences = expand_recurrence(_rule(frequency="weekly"), START, END, horizon=horizon)
        assert len(occurrences) == 5
        assert all(s <= horizon for s, _ in occurrences)


class TestPatterns:
    def test_monthly_clamps_to_month_end(self):
        start = datetime(2030, 1, 31, 9, 0, tzinfo=timezone.utc)
        occurrences = expand_recurrence(_rule(frequency="monthly", count=4), start, start + timedelta(hours=1))
        assert [s.date().isoformat() for s, _ in occurrences] == [
            "2030-01-31", "2030-02-28", "2030-03-31", "2030-04-30",
        ]

    def test_custom_excludes_anchor_outside_day_set(self):
        # Anchor Tuesday; Mondays and Wednesdays only
        occurrences = expand_recurrence(_rule(frequency="custom", days_of_week=[1, 3], count=3), START, END)
        assert [s.date().isoformat() for s, _ in occurrences] == ["2030-01-02", "2030-01-07", "2030-01-09"]

    def test_custom_interval_skips_weeks(self):
        occurrences = expand_recurrence(
            _rule(frequency="custom", days_of_week=[3], interval=2, count=3), START, END,
        )
        assert [s.date().isoformat() for s, _ in occurrences] == ["2030-01-02", "2030-01-16", "2030-01-30"]

    def test_weekly_with_days_uses_day_pattern(self):
        occurrences = expand_recurrence(_rule(frequency="weekly", days_of_week=[2, 4], count=4), START, END)
        assert [s.date().isoformat() for s, _ in occurrences] == [
            "2030-01-01", "2030-01-03", "2030-01-08", "2030-01-10",
        ]

    def test_custom_requires_days(self):
        with pytest.raises(ValueError):
            expand_recurrence(_rule(frequency="custom", count=3), START, END)

    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            expand_recurrence(_rule(frequency="daily", count=3), START, START)

    def test_invalid_weekday_rejected_by_schema(self):
        with pytest.raises(ValueError):
            _rule(frequency="custom", days_of_week=[7])


class TestBreaks:
    def test_occurrences_inside_a_break_are_skipped(self):
        occurrences = expand_recurrence(_rule(frequency="daily", count=5), START, END)
        breaks = [{"start_time": "2030-01-03T00:00:00Z", "end_time": "2030-01-04T00:00:00Z", "reason": "Holiday"}]
        kept = skip_breaks(occurrences, breaks)
        assert len(kept) == 4
        assert all(s.date().isoformat() != "2030-01-03" for s, _ in kept)

    def test_no_breaks_keeps_everything(self):
        occurrences = expand_recurrence(_rule(frequency="daily", count=5), START, END)
        assert skip_breaks(occurrences, None) == occurrences
