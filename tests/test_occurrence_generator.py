"""Tests for the occurrence generator and recurrence rule validation."""
from datetime import date, timedelta

import pytest

from planner_recurrence.errors import InvalidRecurrenceRuleError
from planner_recurrence.models.recurrence_rule import (
    EndCondition,
    NthWeekday,
    RecurrenceRule,
    RecurrenceType,
)
from planner_recurrence.services.occurrence_generator import MAX_OCCURRENCES, generate_occurrences


def daily(**kwargs) -> RecurrenceRule:
    return RecurrenceRule(type=RecurrenceType.DAILY, **kwargs)


class TestDailyRules:
    """Daily rules step from the anchor by `interval` days."""

    def test_every_day(self):
        dates = generate_occurrences(daily(), date(2026, 3, 1), date(2026, 3, 1), date(2026, 3, 5))
        assert dates == [date(2026, 3, d) for d in range(1, 6)]

    def test_interval_spacing(self):
        dates = generate_occurrences(daily(interval=3), date(2026, 1, 1), date(2026, 1, 1), date(2026, 1, 31))
        assert dates[:4] == [date(2026, 1, 1), date(2026, 1, 4), date(2026, 1, 7), date(2026, 1, 10)]
        assert all(b - a == timedelta(days=3) for a, b in zip(dates, dates[1:]))

    def test_interval_stays_aligned_to_anchor(self):
        # Window starts between two steps
        dates = generate_occurrences(daily(interval=3), date(2026, 1, 1), date(2026, 1, 5), date(2026, 1, 12))
        assert dates == [date(2026, 1, 7), date(2026, 1, 10)]

    def test_nothing_before_anchor(self):
        dates = generate_occurrences(daily(), date(2026, 3, 10), date(2026, 3, 1), date(2026, 3, 12))
        assert dates == [date(2026, 3, 10), date(2026, 3, 11), date(2026, 3, 12)]

    def test_empty_when_window_inverted(self):
        assert generate_occurrences(daily(), date(2026, 3, 1), date(2026, 3, 10), date(2026, 3, 1)) == []

    def test_exceptions_are_skipped(self):
        rule = daily(exceptions=frozenset([date(2026, 3, 2), date(2026, 3, 4)]))
        dates = generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 1), date(2026, 3, 5))
        assert dates == [date(2026, 3, 1), date(2026, 3, 3), date(2026, 3, 5)]

    def test_end_date_bounds_window(self):
        rule = daily(end_condition=EndCondition.after_date(date(2026, 1, 5)))
        dates = generate_occurrences(rule, date(2026, 1, 1), date(2026, 1, 1), date(2026, 1, 31))
        assert dates == [date(2026, 1, d) for d in range(1, 6)]

    def test_occurrence_cap(self):
        dates = generate_occurrences(daily(), date(2020, 1, 1), date(2020, 1, 1), date(2030, 12, 31))
        assert len(dates) == MAX_OCCURRENCES
        assert dates[0] == date(2020, 1, 1)


class TestAfterCount:
    """Count-bounded rules count from the anchor, not the window."""

    def test_occurrences_before_window_consume_count(self):
        rule = daily(end_condition=EndCondition.after_count(5))
        dates = generate_occurrences(rule, date(2026, 1, 1), date(2026, 1, 3), date(2026, 1, 31))
        assert dates == [date(2026, 1, 3), date(2026, 1, 4), date(2026, 1, 5)]

    def test_exceptions_do_not_consume_count(self):
        rule = daily(
            end_condition=EndCondition.after_count(5),
            exceptions=frozenset([date(2026, 1, 2)]),
        )
        dates = generate_occurrences(rule, date(2026, 1, 1), date(2026, 1, 1), date(2026, 1, 31))
        assert dates == [date(2026, 1, 1), date(2026, 1, 3), date(2026, 1, 4), date(2026, 1, 5), date(2026, 1, 6)]


class TestWeeklyRules:

    def test_monday_and_wednesday(self):
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, days_of_week=frozenset([1, 3]))
        dates = generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 1), date(2026, 3, 14))
        assert dates == [date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 9), date(2026, 3, 11)]

    def test_interval_is_ignored(self):
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY, interval=2, days_of_week=frozenset([1]))
        dates = generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 1), date(2026, 3, 16))
        assert dates == [date(2026, 3, 2), date(2026, 3, 9), date(2026, 3, 16)]

    def test_defaults_to_anchor_weekday(self):
        rule = RecurrenceRule(type=RecurrenceType.WEEKLY)
        dates = generate_occurrences(rule, date(2026, 3, 4), date(2026, 3, 1), date(2026, 3, 20))
        assert dates == [date(2026, 3, 4), date(2026, 3, 11), date(2026, 3, 18)]


class TestMonthlyRules:

    def test_month_end_rollover_clamps(self):
        rule = RecurrenceRule(type=RecurrenceType.MONTHLY)
        dates = generate_occurrences(rule, date(2026, 1, 31), date(2026, 1, 1), date(2026, 4, 30))
        assert dates == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

    def test_interval_months(self):
        rule = RecurrenceRule(type=RecurrenceType.MONTHLY, interval=2, day_of_month=15)
        dates = generate_occurrences(rule, date(2026, 1, 10), date(2026, 1, 1), date(2026, 7, 31))
        assert dates == [date(2026, 1, 15), date(2026, 3, 15), date(2026, 5, 15), date(2026, 7, 15)]

    def test_nth_weekday(self):
        # Second Tuesday
        rule = RecurrenceRule(type=RecurrenceType.MONTHLY, nth_weekday=NthWeekday(2, 2))
        dates = generate_occurrences(rule, date(2026, 1, 1), date(2026, 1, 1), date(2026, 3, 31))
        assert dates == [date(2026, 1, 13), date(2026, 2, 10), date(2026, 3, 10)]

    def test_last_weekday(self):
        # Last Friday
        rule = RecurrenceRule(type=RecurrenceType.MONTHLY, nth_weekday=NthWeekday(-1, 5))
        dates = generate_occurrences(rule, date(2026, 1, 1), date(2026, 1, 1), date(2026, 1, 31))
        assert dates == [date(2026, 1, 30)]

    def test_specific_dates_skip_missing_days(self):
        rule = RecurrenceRule(type=RecurrenceType.MONTHLY, specific_dates_of_month=(1, 15, 30))
        dates = generate_occurrences(rule, date(2026, 2, 1), date(2026, 2, 1), date(2026, 3, 31))
        assert dates == [date(2026, 2, 1), date(2026, 2, 15), date(2026, 3, 1), date(2026, 3, 15), date(2026, 3, 30)]


class TestYearlyRules:

    def test_leap_day_clamps_in_common_years(self):
        rule = RecurrenceRule(type=RecurrenceType.YEARLY)
        dates = generate_occurrences(rule, date(2024, 2, 29), date(2024, 1, 1), date(2028, 12, 31))
        assert dates == [
            date(2024, 2, 29),
            date(2025, 2, 28),
            date(2026, 2, 28),
            date(2027, 2, 28),
            date(2028, 2, 29),
        ]


class TestAfterCompletion:

    def test_single_date(self):
        rule = RecurrenceRule(type=RecurrenceType.AFTER_COMPLETION, days_after_completion=7)
        dates = generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 5), date(2027, 3, 5))
        assert dates == [date(2026, 3, 5)]

    def test_exception_moves_date_forward(self):
        rule = RecurrenceRule(
            type=RecurrenceType.AFTER_COMPLETION,
            days_after_completion=7,
            exceptions=frozenset([date(2026, 3, 5), date(2026, 3, 6)]),
        )
        dates = generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 5), date(2026, 4, 5))
        assert dates == [date(2026, 3, 7)]

    def test_exception_at_end_of_window(self):
        rule = RecurrenceRule(
            type=RecurrenceType.AFTER_COMPLETION,
            days_after_completion=7,
            exceptions=frozenset([date(2026, 3, 5)]),
        )
        assert generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 5), date(2026, 3, 5)) == []

    def test_end_date_before_window(self):
        rule = RecurrenceRule(
            type=RecurrenceType.AFTER_COMPLETION,
            days_after_completion=7,
            end_condition=EndCondition.after_date(date(2026, 3, 3)),
        )
        assert generate_occurrences(rule, date(2026, 3, 1), date(2026, 3, 5), date(2026, 4, 5)) == []


class TestGeneratorProperties:

    @pytest.mark.parametrize("rule", [
        daily(interval=2),
        RecurrenceRule(type=RecurrenceType.WEEKLY, days_of_week=frozenset([0, 6])),
        RecurrenceRule(type=RecurrenceType.MONTHLY, day_of_month=31),
        RecurrenceRule(type=RecurrenceType.YEARLY, month_of_year=6),
    ])
    def test_idempotent_increasing_and_bounded(self, rule):
        anchor, start, end = date(2025, 11, 30), date(2026, 1, 1), date(2027, 12, 31)
        first = generate_occurrences(rule, anchor, start, end)
        second = generate_occurrences(rule, anchor, start, end)
        assert first == second
        assert first == sorted(set(first))
        assert all(start <= d <= end for d in first)


class TestRuleValidation:

    def test_interval_must_be_positive(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            daily(interval=0)

    def test_after_completion_requires_days(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            RecurrenceRule(type=RecurrenceType.AFTER_COMPLETION)

    def test_nth_weekday_range(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            NthWeekday(6, 1)

    def test_document_round_trip(self):
        rule = RecurrenceRule(
            type=RecurrenceType.MONTHLY,
            interval=2,
            nth_weekday=NthWeekday(-1, 5),
            end_condition=EndCondition.after_date(date(2026, 12, 31)),
            exceptions=frozenset([date(2026, 5, 29)]),
        )
        assert RecurrenceRule.from_document(rule.to_document()) == rule

    def test_invalid_stored_document(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            RecurrenceRule.from_document({"type": "custom"})
        with pytest.raises(InvalidRecurrenceRuleError):
            RecurrenceRule.from_document({"interval": 2})
