"""Models package for recurring patterns and tasks."""

from .recurrence_rule import EndCondition, EndConditionType, NthWeekday, RecurrenceRule, RecurrenceType
from .recurring_pattern import RecurringPattern
from .task import Task

__all__ = [
    "EndCondition",
    "EndConditionType",
    "NthWeekday",
    "RecurrenceRule",
    "RecurrenceType",
    "RecurringPattern",
    "Task",
]
