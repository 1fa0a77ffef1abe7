"""Recurrence rule model."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from planner_recurrence.errors import InvalidRecurrenceRuleError
from planner_recurrence.utils.dates import to_date


class RecurrenceType(str, Enum):
    """How a rule selects dates."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    AFTER_COMPLETION = "afterCompletion"


class EndConditionType(str, Enum):
    """When a rule stops producing dates."""
    NEVER = "never"
    AFTER_DATE = "date"
    AFTER_COUNT = "occurrences"


@dataclass(frozen=True)
class NthWeekday:
    """The n-th weekday of a month; n=-1 means the last one."""
    n: int
    weekday: int  # 0=Sunday .. 6=Saturday

    def __post_init__(self):
        if self.n not in (-1, 1, 2, 3, 4, 5):
            raise InvalidRecurrenceRuleError(
                f"nthWeekday.n must be 1-5 or -1, got {self.n}",
                details={"field": "nthWeekday.n"}
            )
        if not 0 <= self.weekday <= 6:
            raise InvalidRecurrenceRuleError(
                f"nthWeekday.weekday must be 0-6, got {self.weekday}",
                details={"field": "nthWeekday.weekday"}
            )


@dataclass(frozen=True)
class EndCondition:
    """Termination of a recurrence: never, after a date, or after N occurrences."""
    type: EndConditionType = EndConditionType.NEVER
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None

    def __post_init__(self):
        if self.type is EndConditionType.AFTER_DATE and self.end_date is None:
            raise InvalidRecurrenceRuleError("afterDate end condition requires an end date")
        if self.type is EndConditionType.AFTER_COUNT and (self.max_occurrences is None or self.max_occurrences < 1):
            raise InvalidRecurrenceRuleError("afterCount end condition requires a positive count")

    @classmethod
    def never(cls) -> "EndCondition":
        return cls(EndConditionType.NEVER)

    @classmethod
    def after_date(cls, end_date: date) -> "EndCondition":
        return cls(EndConditionType.AFTER_DATE, end_date=end_date)

    @classmethod
    def after_count(cls, count: int) -> "EndCondition":
        return cls(EndConditionType.AFTER_COUNT, max_occurrences=count)

    @property
    def date_bound(self) -> Optional[date]:
        return self.end_date if self.type is EndConditionType.AFTER_DATE else None

    @property
    def count_bound(self) -> Optional[int]:
        return self.max_occurrences if self.type is EndConditionType.AFTER_COUNT else None

    def to_document(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "maxOccurrences": self.max_occurrences,
        }

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]]) -> "EndCondition":
        """
        Build an end condition from its stored form.

        A "date" condition without a date, or an "occurrences" condition
        without a count, never ends.
        """
        if not data:
            return cls.never()
        end_type = data.get("type") or EndConditionType.NEVER.value
        if end_type == EndConditionType.AFTER_DATE.value and data.get("endDate"):
            return cls.after_date(to_date(data["endDate"]))
        if end_type == EndConditionType.AFTER_COUNT.value and data.get("maxOccurrences"):
            return cls.after_count(int(data["maxOccurrences"]))
        return cls.never()


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Validated, immutable description of a repeat pattern.

    Only fully validated rules reach the occurrence generator; loosely typed
    legacy data is parsed by `LegacyRecurrence` first.
    """
    type: RecurrenceType
    interval: int = 1
    days_of_week: FrozenSet[int] = field(default_factory=frozenset)
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    nth_weekday: Optional[NthWeekday] = None
    specific_dates_of_month: Tuple[int, ...] = ()
    days_after_completion: Optional[int] = None
    end_condition: EndCondition = field(default_factory=EndCondition.never)
    exceptions: FrozenSet[date] = field(default_factory=frozenset)

    def __post_init__(self):
        if not isinstance(self.type, RecurrenceType):
            raise InvalidRecurrenceRuleError(f"Unknown recurrence type: {self.type}")
        if self.interval < 1:
            raise InvalidRecurrenceRuleError(
                f"Interval must be a positive integer, got {self.interval}",
                details={"field": "interval"}
            )
        if any(not 0 <= d <= 6 for d in self.days_of_week):
            raise InvalidRecurrenceRuleError(
                f"daysOfWeek values must be 0-6, got {sorted(self.days_of_week)}",
                details={"field": "daysOfWeek"}
            )
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise InvalidRecurrenceRuleError(
                f"dayOfMonth must be 1-31, got {self.day_of_month}",
                details={"field": "dayOfMonth"}
            )
        if self.month_of_year is not None and not 1 <= self.month_of_year <= 12:
            raise InvalidRecurrenceRuleError(
                f"monthOfYear must be 1-12, got {self.month_of_year}",
                details={"field": "monthOfYear"}
            )
        if any(not 1 <= d <= 31 for d in self.specific_dates_of_month):
            raise InvalidRecurrenceRuleError(
                "specificDatesOfMonth values must be 1-31",
                details={"field": "specificDatesOfMonth"}
            )
        if self.type is RecurrenceType.AFTER_COMPLETION and (
            self.days_after_completion is None or self.days_after_completion < 1
        ):
            raise InvalidRecurrenceRuleError(
                "afterCompletion recurrence requires a positive daysAfterCompletion",
                details={"field": "daysAfterCompletion"}
            )

    def to_document(self) -> Dict[str, Any]:
        """Flattened, JSON-friendly rule fields as stored on a pattern."""
        return {
            "type": self.type.value,
            "interval": self.interval,
            "daysOfWeek": sorted(self.days_of_week),
            "dayOfMonth": self.day_of_month,
            "monthOfYear": self.month_of_year,
            "nthWeekday": (
                {"n": self.nth_weekday.n, "weekday": self.nth_weekday.weekday}
                if self.nth_weekday else None
            ),
            "specificDatesOfMonth": list(self.specific_dates_of_month) or None,
            "daysAfterCompletion": self.days_after_completion,
            "endCondition": self.end_condition.to_document(),
            "exceptions": sorted(d.isoformat() for d in self.exceptions),
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "RecurrenceRule":
        """
        Rebuild a rule from the flattened fields written by `to_document`.

        Raises:
            InvalidRecurrenceRuleError: If the stored fields do not form a rule
        """
        try:
            nth = data.get("nthWeekday")
            return cls(
                type=RecurrenceType(data["type"]),
                interval=data.get("interval") or 1,
                days_of_week=frozenset(data.get("daysOfWeek") or ()),
                day_of_month=data.get("dayOfMonth"),
                month_of_year=data.get("monthOfYear"),
                nth_weekday=NthWeekday(nth["n"], nth["weekday"]) if nth else None,
                specific_dates_of_month=tuple(sorted(set(data.get("specificDatesOfMonth") or ()))),
                days_after_completion=data.get("daysAfterCompletion"),
                end_condition=EndCondition.from_document(data.get("endCondition")),
                exceptions=frozenset(to_date(d) for d in data.get("exceptions") or ()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRecurrenceRuleError(
                f"Stored recurrence rule is invalid: {e}",
                details={"type": data.get("type")}
            )
