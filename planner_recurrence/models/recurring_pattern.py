"""Recurring Pattern model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON, String, Text
from datetime import datetime
from typing import Any, Dict, List, Optional

from planner_recurrence.models.recurrence_rule import RecurrenceRule
from planner_recurrence.models.task import new_document_id
from planner_recurrence.utils.dates import to_date, utcnow

PATTERN_COLLECTION = "recurringPatterns"


class RecurringPattern(SQLModel, table=True):
    """Persisted recurrence definition that owns materialized task instances."""

    __tablename__ = "recurring_pattern"

    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=64)
    user_id: str = Field(max_length=128, index=True)

    # Template copied onto every generated instance
    title: str = Field(max_length=500, min_length=1)
    description: str = Field(default="", sa_column=Column(Text, default=""))
    category_id: Optional[str] = Field(default=None, max_length=64)
    priority: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    start_time: Optional[str] = Field(default=None, max_length=5)
    duration: Optional[int] = Field(default=None)

    # Flattened recurrence rule
    type: str = Field(max_length=20)  # daily, weekly, monthly, yearly, afterCompletion
    interval: int = Field(default=1)
    days_of_week: Optional[List[int]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))  # 0-6 for Sunday-Saturday
    day_of_month: Optional[int] = Field(default=None)
    month_of_year: Optional[int] = Field(default=None)
    nth_weekday: Optional[Dict[str, int]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    specific_dates_of_month: Optional[List[int]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    days_after_completion: Optional[int] = Field(default=None)
    end_condition: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    exceptions: Optional[List[str]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))  # ISO dates

    # Instance tracking
    start_date: datetime = Field(sa_column=Column(DateTime, nullable=False))  # anchor, midnight
    generated_until: datetime = Field(sa_column=Column(DateTime, nullable=False))  # high-water mark of materialized dates
    active_instance_id: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    migrated_from_task_id: Optional[str] = Field(default=None, sa_column=Column(String(64), index=True, nullable=True))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def rule(self) -> RecurrenceRule:
        """The pattern's recurrence rule."""
        return RecurrenceRule.from_document({
            "type": self.type,
            "interval": self.interval,
            "daysOfWeek": self.days_of_week,
            "dayOfMonth": self.day_of_month,
            "monthOfYear": self.month_of_year,
            "nthWeekday": self.nth_weekday,
            "specificDatesOfMonth": self.specific_dates_of_month,
            "daysAfterCompletion": self.days_after_completion,
            "endCondition": self.end_condition,
            "exceptions": self.exceptions,
        })

    @property
    def start_day(self):
        return to_date(self.start_date)

    @property
    def generated_until_day(self):
        return to_date(self.generated_until)

    @classmethod
    def from_rule(cls, rule: RecurrenceRule, **fields) -> "RecurringPattern":
        """Build a pattern whose rule columns are taken from `rule`."""
        document = rule.to_document()
        return cls(
            type=document["type"],
            interval=document["interval"],
            days_of_week=document["daysOfWeek"],
            day_of_month=document["dayOfMonth"],
            month_of_year=document["monthOfYear"],
            nth_weekday=document["nthWeekday"],
            specific_dates_of_month=document["specificDatesOfMonth"],
            days_after_completion=document["daysAfterCompletion"],
            end_condition=document["endCondition"],
            exceptions=document["exceptions"],
            **fields
        )
