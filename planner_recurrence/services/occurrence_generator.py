"""
Occurrence Generator

Turns a validated recurrence rule into the ordered calendar dates on which a
task instance should exist inside a window.

Rollover policy: when the target day does not exist in a month (the 31st in
April, Feb 29 in a non-leap year) the occurrence is clamped to the last day
of that month. Each step is computed from the anchor, so a rule anchored on
Jan 31 yields Jan 31, Feb 28, Mar 31, Apr 30.

Daily alignment: daily steps are counted from the anchor, not from the window
start, so every refresh of a pattern lands on the same grid of dates.
"""

import logging
from datetime import date, timedelta
from typing import Iterator, List

from planner_recurrence.models.recurrence_rule import RecurrenceRule, RecurrenceType
from planner_recurrence.utils.dates import (
    DateLike,
    add_months,
    clamp_day,
    days_in_month,
    js_weekday,
    months_between,
    nth_weekday_of_month,
    to_date,
)

logger = logging.getLogger(__name__)

# Upper bound on dates returned by a single call
MAX_OCCURRENCES = 1000

ONE_DAY = timedelta(days=1)


def generate_occurrences(
    rule: RecurrenceRule,
    anchor_date: DateLike,
    range_start: DateLike,
    range_end: DateLike,
) -> List[date]:
    """
    Dates selected by `rule` within [range_start, range_end].

    Args:
        rule: Validated recurrence rule
        anchor_date: The pattern's start date; nothing is produced before it
        range_start: First date of the window (inclusive)
        range_end: Last date of the window (inclusive)

    Returns:
        Strictly increasing list of dates, never containing an exception
        date, never outside the window or past the end condition.
    """
    anchor = to_date(anchor_date)
    window_start = max(to_date(range_start), anchor)
    window_end = to_date(range_end)

    date_bound = rule.end_condition.date_bound
    if date_bound is not None and date_bound < window_end:
        window_end = date_bound

    if window_start > window_end:
        return []

    if rule.type is RecurrenceType.AFTER_COMPLETION:
        # One pending instance at a time; completion drives the next one
        candidate = window_start
        while candidate in rule.exceptions:
            candidate += ONE_DAY
        return [candidate] if candidate <= window_end else []

    max_count = rule.end_condition.count_bound
    # Occurrences before the window still consume an afterCount budget
    walk_from = anchor if max_count is not None else window_start

    dates: List[date] = []
    counted = 0
    for candidate in _candidates(rule, anchor, walk_from, window_end):
        if candidate in rule.exceptions:
            continue
        counted += 1
        if max_count is not None and counted > max_count:
            break
        if candidate < window_start:
            continue
        dates.append(candidate)
        if len(dates) >= MAX_OCCURRENCES:
            logger.warning(
                f"Occurrence cap of {MAX_OCCURRENCES} reached for {rule.type.value} rule "
                f"between {window_start} and {window_end}"
            )
            break

    return dates


def _candidates(rule: RecurrenceRule, anchor: date, walk_from: date, until: date) -> Iterator[date]:
    """Rule-selected dates in [max(anchor, walk_from), until], ascending."""
    if rule.type is RecurrenceType.DAILY:
        return _daily(rule, anchor, walk_from, until)
    if rule.type is RecurrenceType.WEEKLY:
        return _weekly(rule, anchor, walk_from, until)
    if rule.type is RecurrenceType.MONTHLY:
        return _monthly(rule, anchor, walk_from, until)
    if rule.type is RecurrenceType.YEARLY:
        return _yearly(rule, anchor, walk_from, until)
    raise ValueError(f"No date walk for recurrence type {rule.type.value}")


def _daily(rule: RecurrenceRule, anchor: date, walk_from: date, until: date) -> Iterator[date]:
    step = rule.interval
    offset = max(0, (walk_from - anchor).days)
    # First anchor-aligned step on or after walk_from
    cursor = anchor + timedelta(days=-(-offset // step) * step)
    while cursor <= until:
        yield cursor
        cursor += timedelta(days=step)


def _weekly(rule: RecurrenceRule, anchor: date, walk_from: date, until: date) -> Iterator[date]:
    # interval is not applied to weekly rules: every matching weekday is selected
    weekdays = rule.days_of_week or frozenset([js_weekday(anchor)])
    cursor = max(anchor, walk_from)
    while cursor <= until:
        if js_weekday(cursor) in weekdays:
            yield cursor
        cursor += ONE_DAY


def _monthly(rule: RecurrenceRule, anchor: date, walk_from: date, until: date) -> Iterator[date]:
    first_of_anchor_month = date(anchor.year, anchor.month, 1)
    step = max(0, months_between(anchor, walk_from) // rule.interval)
    while True:
        month_start = add_months(first_of_anchor_month, step * rule.interval)
        if month_start > until:
            return
        for candidate in _days_in_month(rule, anchor, month_start.year, month_start.month):
            if candidate < anchor or candidate < walk_from:
                continue
            if candidate > until:
                return
            yield candidate
        step += 1


def _yearly(rule: RecurrenceRule, anchor: date, walk_from: date, until: date) -> Iterator[date]:
    month = rule.month_of_year or anchor.month
    step = max(0, (walk_from.year - anchor.year) // rule.interval)
    while True:
        year = anchor.year + step * rule.interval
        if date(year, month, 1) > until:
            return
        for candidate in _days_in_month(rule, anchor, year, month):
            if candidate < anchor or candidate < walk_from:
                continue
            if candidate > until:
                return
            yield candidate
        step += 1


def _days_in_month(rule: RecurrenceRule, anchor: date, year: int, month: int) -> List[date]:
    """Days a monthly/yearly rule selects within one month, ascending."""
    if rule.nth_weekday is not None:
        nth = nth_weekday_of_month(year, month, rule.nth_weekday.n, rule.nth_weekday.weekday)
        return [nth] if nth else []

    if rule.specific_dates_of_month:
        # Listed days missing from a short month are skipped, not clamped
        length = days_in_month(year, month)
        return [date(year, month, day) for day in sorted(set(rule.specific_dates_of_month)) if day <= length]

    return [clamp_day(year, month, rule.day_of_month or anchor.day)]
