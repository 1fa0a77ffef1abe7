"""
Recurring Pattern Service.

Keeps patterns materialized as time passes: advances `generated_until`,
creates the next instance when an after-completion task is completed, and
soft-deletes patterns.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from planner_recurrence.db.base_store import BatchWriter, RecurrenceStore
from planner_recurrence.db.config import DEFAULT_GENERATION_DAYS, horizon_end
from planner_recurrence.errors import PatternNotFoundError, RecurrenceError
from planner_recurrence.models.recurrence_rule import RecurrenceType
from planner_recurrence.models.recurring_pattern import RecurringPattern
from planner_recurrence.models.task import STATUS_COMPLETE, TASK_COLLECTION, Task
from planner_recurrence.services.instance_reconciler import InstanceDescriptor, ReconcilePlan, reconcile
from planner_recurrence.utils.dates import to_date, to_midnight, today_in, utcnow
from planner_recurrence.utils.logger import DRY_RUN_PREFIX, RULE, get_logger


@dataclass
class RefreshSummary:
    """Counters of one horizon refresh run."""
    dry_run: bool = False
    patterns_checked: int = 0
    patterns_extended: int = 0
    instances_generated: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.errors else 0

    def render(self) -> str:
        lines = [
            RULE,
            "Pattern Refresh Summary",
            RULE,
            f"  Patterns checked: {self.patterns_checked}",
            f"  Patterns extended: {self.patterns_extended}",
            f"  Instances generated: {self.instances_generated}",
            f"  Errors: {len(self.errors)}",
        ]
        lines.extend(f"    - {error}" for error in self.errors)
        lines.append(RULE)
        if self.dry_run:
            lines = [f"{DRY_RUN_PREFIX}{line}" for line in lines]
        return "\n".join(lines)


class PatternService:
    """Service to keep recurring patterns materialized."""

    def __init__(
        self,
        store: RecurrenceStore,
        dry_run: bool = False,
        now: Optional[datetime] = None,
        timezone: str = "UTC",
        generation_days: int = DEFAULT_GENERATION_DAYS,
    ):
        self.store = store
        self.dry_run = dry_run
        self.now = now
        self.timezone = timezone
        self.generation_days = generation_days
        self.log = get_logger(__name__, dry_run=dry_run)

    def _clock(self) -> datetime:
        return self.now or utcnow()

    async def _require_pattern(self, pattern_id: str) -> RecurringPattern:
        pattern = await self.store.get_pattern(pattern_id)
        if pattern is None or pattern.is_deleted:
            raise PatternNotFoundError(f"Pattern {pattern_id} not found", details={"pattern_id": pattern_id})
        return pattern

    async def materialize(self, pattern: RecurringPattern, until: date) -> List[str]:
        """
        Create the missing instances of `pattern` up to `until`.

        Advances `generated_until` when `until` is beyond it; never moves it
        backwards. Returns the ids of created instances (drafts are not
        written, and no ids returned, in dry-run mode).
        """
        now = self._clock()
        today = today_in(self.timezone, now)
        if until > pattern.generated_until_day:
            pattern.generated_until = to_midnight(until)

        instances = await self.store.find_pattern_instances(pattern.id)
        plan = reconcile(pattern, [InstanceDescriptor.from_task(t) for t in instances], today)
        if self.dry_run:
            self.log.info(f"Would generate {len(plan.to_create)} instances", pattern_id=pattern.id)
            return [None] * len(plan.to_create)

        created_ids = await self._apply_plan(pattern, plan, now)
        await self.store.update_pattern(pattern.id, {
            "generated_until": pattern.generated_until,
            "updated_at": now,
        })
        self.log.info(
            f"Generated {len(created_ids)} instances",
            pattern_id=pattern.id, generated_until=pattern.generated_until,
        )
        return created_ids

    async def extend_horizon(self, pattern_id: str, target_date: date) -> List[str]:
        """
        Ensure instances exist when navigating to `target_date`.

        No-op when the pattern is already materialized that far; otherwise
        materializes up to a full horizon past `target_date`.
        """
        pattern = await self._require_pattern(pattern_id)
        if target_date <= pattern.generated_until_day:
            return []
        return await self.materialize(pattern, horizon_end(target_date, self.generation_days))

    async def refresh_patterns(self, user_id: Optional[str] = None) -> RefreshSummary:
        """Advance every active pattern's horizon to today's."""
        summary = RefreshSummary(dry_run=self.dry_run)
        until = horizon_end(today_in(self.timezone, self._clock()), self.generation_days)

        for pattern in await self.store.list_active_patterns(user_id):
            summary.patterns_checked += 1
            if pattern.type == RecurrenceType.AFTER_COMPLETION.value:
                continue
            if until <= pattern.generated_until_day:
                continue
            try:
                created = await self.materialize(pattern, until)
            except Exception as e:
                message = e.message if isinstance(e, RecurrenceError) else str(e) or type(e).__name__
                error = f"Failed to refresh pattern {pattern.id}: {message}"
                summary.errors.append(error)
                self.log.error(error, pattern_id=pattern.id, code=getattr(e, "code", None))
                continue
            summary.patterns_extended += 1
            summary.instances_generated += len(created)

        return summary

    async def handle_instance_completed(self, task_id: str, completed_at: Optional[datetime] = None) -> Optional[Task]:
        """
        Create the next occurrence after an instance is completed.

        Only afterCompletion patterns react; the next instance is dated
        `completed_at + days_after_completion` (or today, if later) and
        becomes the pattern's active instance.

        Returns:
            The new instance, or None when nothing was created
        """
        task = await self.store.get_task(task_id)
        if task is None:
            self.log.error(f"Task {task_id} not found", task_id=task_id)
            return None
        if not task.recurring_pattern_id:
            self.log.info(f"Task {task_id} does not belong to a pattern, skipping next occurrence creation")
            return None

        pattern = await self._require_pattern(task.recurring_pattern_id)
        if pattern.type != RecurrenceType.AFTER_COMPLETION.value:
            return None

        now = self._clock()
        completed_at = completed_at or task.completed_at or now
        if self.dry_run:
            instances = await self.store.find_pattern_instances(pattern.id)
            descriptors = [
                InstanceDescriptor(t.id, to_date(t.scheduled_date), STATUS_COMPLETE, t.is_deleted, to_date(completed_at))
                if t.id == task.id else InstanceDescriptor.from_task(t)
                for t in instances
            ]
            plan = reconcile(pattern, descriptors, today_in(self.timezone, now))
            self.log.info(f"Would create {len(plan.to_create)} next instances", pattern_id=pattern.id)
            return None

        if not task.is_complete or task.completed_at is None:
            await self.store.update_task(task.id, {
                "status": STATUS_COMPLETE,
                "completed_at": completed_at,
                "updated_at": now,
            })

        instances = await self.store.find_pattern_instances(pattern.id)
        plan = reconcile(pattern, [InstanceDescriptor.from_task(t) for t in instances], today_in(self.timezone, now))
        created_ids = await self._apply_plan(pattern, plan, now)
        if not created_ids:
            return None

        self.log.info(
            f"Created next occurrence of task {task_id}: new task {created_ids[0]}",
            pattern_id=pattern.id,
        )
        return await self.store.get_task(created_ids[0])

    async def delete_pattern(self, pattern_id: str, delete_instances: bool = False) -> int:
        """
        Soft-delete a pattern and optionally its instances.

        Returns:
            Number of instances soft-deleted
        """
        pattern = await self._require_pattern(pattern_id)
        now = self._clock()
        instances = []
        if delete_instances:
            instances = await self.store.find_pattern_instances(pattern.id, include_deleted=False)
        if self.dry_run:
            return len(instances)

        await self.store.soft_delete_pattern(pattern.id, now)
        batch = BatchWriter(self.store)
        for instance in instances:
            await batch.update(TASK_COLLECTION, instance.id, {"deleted_at": now, "updated_at": now})
        await batch.flush()
        self.log.info(f"Deleted pattern {pattern.id}", pattern_id=pattern.id, instances_deleted=len(instances))
        return len(instances)

    async def _apply_plan(self, pattern: RecurringPattern, plan: ReconcilePlan, now: datetime) -> List[str]:
        created_ids = []
        for draft in plan.to_create:
            created_ids.append(await self.store.add_task(draft.to_task(now)))

        if plan.to_unlink:
            batch = BatchWriter(self.store)
            for instance_id in plan.to_unlink:
                await batch.update(TASK_COLLECTION, instance_id, {"recurring_pattern_id": None, "updated_at": now})
            await batch.flush()

        active_id = plan.adopt_instance_id
        if plan.activate_new_instance and created_ids:
            active_id = created_ids[0]
        if active_id is not None:
            await self.store.update_pattern(pattern.id, {"active_instance_id": active_id, "updated_at": now})
            pattern.active_instance_id = active_id
        return created_ids
