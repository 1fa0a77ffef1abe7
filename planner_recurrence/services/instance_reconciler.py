"""
Instance Reconciler

Diffs the dates a pattern should cover against the instances that already
exist and plans the minimal set of creations and link removals. Pure: no I/O,
no clock; callers pass `today` and apply the plan themselves.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from planner_recurrence.models.recurrence_rule import RecurrenceType
from planner_recurrence.models.recurring_pattern import RecurringPattern
from planner_recurrence.models.task import STATUS_COMPLETE, STATUS_IN_PROGRESS, Task
from planner_recurrence.services.occurrence_generator import generate_occurrences
from planner_recurrence.utils.dates import to_date, to_midnight


@dataclass(frozen=True)
class InstanceDescriptor:
    """What the reconciler needs to know about an existing instance."""
    id: str
    scheduled_date: Optional[date]
    status: str = STATUS_IN_PROGRESS
    deleted: bool = False
    completed_at: Optional[date] = None

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    @property
    def is_pending(self) -> bool:
        return not self.deleted and not self.is_complete

    @classmethod
    def from_task(cls, task: Task) -> "InstanceDescriptor":
        return cls(
            id=task.id,
            scheduled_date=to_date(task.scheduled_date),
            status=task.status,
            deleted=task.deleted_at is not None,
            completed_at=to_date(task.completed_at),
        )


@dataclass
class TaskInstanceDraft:
    """A task instance to be created for one date of a pattern."""
    user_id: str
    recurring_pattern_id: str
    scheduled_date: date
    title: str
    description: str = ""
    category_id: Optional[str] = None
    priority: Optional[Dict[str, Any]] = None
    start_time: Optional[str] = None
    duration: Optional[int] = None
    status: str = STATUS_IN_PROGRESS

    @classmethod
    def from_pattern(cls, pattern: RecurringPattern, scheduled_date: date) -> "TaskInstanceDraft":
        return cls(
            user_id=pattern.user_id,
            recurring_pattern_id=pattern.id,
            scheduled_date=scheduled_date,
            title=pattern.title,
            description=pattern.description or "",
            category_id=pattern.category_id,
            priority=pattern.priority,
            start_time=pattern.start_time,
            duration=pattern.duration,
        )

    def to_task(self, now: datetime) -> Task:
        """Materialize the draft as a new Task row."""
        return Task(
            user_id=self.user_id,
            title=self.title,
            description=self.description,
            category_id=self.category_id,
            priority=self.priority,
            status=self.status,
            scheduled_date=to_midnight(self.scheduled_date),
            start_time=self.start_time,
            duration=self.duration,
            show_on_calendar=bool(self.start_time),
            recurring_pattern_id=self.recurring_pattern_id,
            recurrence=None,
            is_recurring_instance=False,
            recurring_parent_id=None,
            linked_note_ids=[],
            created_at=now,
            updated_at=now,
        )


@dataclass
class ReconcilePlan:
    """Operations that bring a pattern's instances in line with its rule."""
    to_create: List[TaskInstanceDraft] = field(default_factory=list)
    to_unlink: List[str] = field(default_factory=list)
    # afterCompletion: the single created draft becomes the active instance
    activate_new_instance: bool = False
    # afterCompletion: an existing pending instance becomes the active one
    adopt_instance_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_unlink and self.adopt_instance_id is None


def reconcile(pattern: RecurringPattern, existing: Iterable[InstanceDescriptor], today: date) -> ReconcilePlan:
    """
    Plan the instance changes for one pattern.

    Args:
        pattern: The recurring pattern
        existing: Instances currently linked to the pattern, deleted ones included
        today: The reconciliation date; nothing is created before it

    Returns:
        ReconcilePlan; empty when the pattern is deleted or fully covered
    """
    if pattern.is_deleted:
        return ReconcilePlan()

    existing = list(existing)
    if pattern.type == RecurrenceType.AFTER_COMPLETION.value:
        return _reconcile_after_completion(pattern, existing, today)
    return _reconcile_calendar(pattern, existing, today)


def _reconcile_calendar(pattern: RecurringPattern, existing: List[InstanceDescriptor], today: date) -> ReconcilePlan:
    generated_until = pattern.generated_until_day
    wanted = generate_occurrences(pattern.rule, pattern.start_day, today, generated_until)
    wanted_set = set(wanted)

    plan = ReconcilePlan()
    covered: Set[date] = set()
    kept: Set[date] = set()

    # A deleted instance still covers its date so it is never recreated
    for instance in existing:
        if instance.scheduled_date is not None:
            covered.add(instance.scheduled_date)

    for instance in existing:
        day = instance.scheduled_date
        if instance.deleted or day is None:
            continue
        if day < today or day > generated_until:
            continue
        if day not in wanted_set or day in kept:
            plan.to_unlink.append(instance.id)
        else:
            kept.add(day)

    for day in wanted:
        if day not in covered:
            plan.to_create.append(TaskInstanceDraft.from_pattern(pattern, day))

    return plan


def _reconcile_after_completion(pattern: RecurringPattern, existing: List[InstanceDescriptor], today: date) -> ReconcilePlan:
    by_id = {instance.id: instance for instance in existing}
    active = by_id.get(pattern.active_instance_id) if pattern.active_instance_id else None
    if active is not None and active.is_pending:
        return ReconcilePlan()

    pending = [instance for instance in existing if instance.is_pending]
    if pending:
        adopted = min(pending, key=lambda i: (i.scheduled_date or date.max, i.id))
        return ReconcilePlan(adopt_instance_id=adopted.id)

    rule = pattern.rule
    max_count = rule.end_condition.count_bound
    if max_count is not None and sum(1 for i in existing if not i.deleted) >= max_count:
        return ReconcilePlan()

    completions = [i.completed_at or i.scheduled_date for i in existing if i.is_complete and not i.deleted]
    completions = [d for d in completions if d is not None]
    if completions:
        base = max(completions) + timedelta(days=rule.days_after_completion)
    else:
        base = pattern.start_day

    candidate = max(today, base)
    # Wide enough to step past every exception date
    dates = generate_occurrences(rule, candidate, candidate, candidate + timedelta(days=len(rule.exceptions)))
    if not dates:
        return ReconcilePlan()
    return ReconcilePlan(
        to_create=[TaskInstanceDraft.from_pattern(pattern, dates[0])],
        activate_new_instance=True,
    )
