"""Schemas for legacy embedded recurrence data."""
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from planner_recurrence.errors import InvalidRecurrenceRuleError, LegacyRecurrenceError
from planner_recurrence.models.recurrence_rule import (
    EndCondition,
    NthWeekday,
    RecurrenceRule,
    RecurrenceType,
)
from planner_recurrence.utils.dates import to_date


class LegacyNthWeekday(BaseModel):
    """Schema for the legacy n-th weekday refinement."""
    n: int
    weekday: int = Field(..., ge=0, le=6)


class LegacyEndCondition(BaseModel):
    """Schema for the legacy end condition."""
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(default="never", pattern=r"^(never|date|occurrences)$")
    end_date: Optional[Union[datetime, date]] = Field(None, alias="endDate")
    max_occurrences: Optional[int] = Field(None, alias="maxOccurrences", ge=0)


class LegacyRecurrence(BaseModel):
    """
    Schema for the recurrence object embedded on legacy tasks.

    Field names follow the stored camelCase documents; missing or null list
    fields default to empty, and a missing interval defaults to 1.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(..., pattern=r"^(daily|weekly|monthly|yearly|afterCompletion)$")
    interval: int = Field(default=1, ge=1)
    days_of_week: List[int] = Field(default_factory=list, alias="daysOfWeek")
    day_of_month: Optional[int] = Field(None, alias="dayOfMonth", ge=1, le=31)
    month_of_year: Optional[int] = Field(None, alias="monthOfYear", ge=1, le=12)
    nth_weekday: Optional[LegacyNthWeekday] = Field(None, alias="nthWeekday")
    specific_dates_of_month: List[int] = Field(default_factory=list, alias="specificDatesOfMonth")
    days_after_completion: Optional[int] = Field(None, alias="daysAfterCompletion")
    end_condition: LegacyEndCondition = Field(default_factory=LegacyEndCondition, alias="endCondition")
    exceptions: List[Union[datetime, date]] = Field(default_factory=list)

    @field_validator("interval", mode="before")
    @classmethod
    def default_interval(cls, value: Any) -> Any:
        # Older clients wrote 0 or null for "every"
        return value or 1

    @field_validator("days_of_week", "specific_dates_of_month", "exceptions", mode="before")
    @classmethod
    def null_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("end_condition", mode="before")
    @classmethod
    def null_end_condition(cls, value: Any) -> Any:
        return value or {}

    def to_rule(self) -> RecurrenceRule:
        """Convert to a validated RecurrenceRule."""
        end = self.end_condition
        if end.type == "date" and end.end_date:
            end_condition = EndCondition.after_date(to_date(end.end_date))
        elif end.type == "occurrences" and end.max_occurrences:
            end_condition = EndCondition.after_count(end.max_occurrences)
        else:
            end_condition = EndCondition.never()

        return RecurrenceRule(
            type=RecurrenceType(self.type),
            interval=self.interval,
            days_of_week=frozenset(self.days_of_week),
            day_of_month=self.day_of_month,
            month_of_year=self.month_of_year,
            nth_weekday=NthWeekday(self.nth_weekday.n, self.nth_weekday.weekday) if self.nth_weekday else None,
            specific_dates_of_month=tuple(sorted(set(self.specific_dates_of_month))),
            days_after_completion=self.days_after_completion,
            end_condition=end_condition,
            exceptions=frozenset(to_date(d) for d in self.exceptions),
        )


def parse_legacy_recurrence(data: Optional[Dict[str, Any]]) -> RecurrenceRule:
    """
    Validate a loosely typed legacy recurrence record.

    Args:
        data: The raw `recurrence` value from a legacy task document

    Returns:
        The equivalent RecurrenceRule

    Raises:
        LegacyRecurrenceError: If the record cannot be interpreted
    """
    if not isinstance(data, dict):
        raise LegacyRecurrenceError(
            f"Recurrence must be an object, got {type(data).__name__}",
            details={"value": repr(data)}
        )
    try:
        return LegacyRecurrence.model_validate(data).to_rule()
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise LegacyRecurrenceError(
            f"Invalid legacy recurrence ({', '.join(fields)})",
            details={"errors": e.errors(include_url=False)}
        )
    except InvalidRecurrenceRuleError as e:
        raise LegacyRecurrenceError(e.message, details=e.details)
