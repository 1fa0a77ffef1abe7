"""
Legacy Recurring Task Migration

Moves tasks that carry an embedded `recurrence` onto RecurringPattern
documents with materialized task instances.

Each legacy task goes through
    discovered -> pattern_converted -> instances_linked
    -> instances_generated -> migrated
and lands in `failed` if any step raises. Failures are recorded on the
user's result and the run continues with the next task. Marking the legacy
task migrated (which also soft-deletes it) is always the last write.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from planner_recurrence.db.base_store import BatchWriter, RecurrenceStore
from planner_recurrence.db.config import DEFAULT_GENERATION_DAYS, horizon_end
from planner_recurrence.errors import RecurrenceError, create_error_response
from planner_recurrence.models.recurrence_rule import RecurrenceRule
from planner_recurrence.models.recurring_pattern import RecurringPattern
from planner_recurrence.models.task import TASK_COLLECTION, Task
from planner_recurrence.schemas.legacy import parse_legacy_recurrence
from planner_recurrence.services.instance_reconciler import InstanceDescriptor, ReconcilePlan, reconcile
from planner_recurrence.services.migration_report import MigrationReport, UserMigrationResult
from planner_recurrence.utils.dates import to_date, to_midnight, today_in, utcnow
from planner_recurrence.utils.logger import get_logger


class MigrationStage(str, Enum):
    """Progress of one legacy task through the migration."""
    DISCOVERED = "discovered"
    PATTERN_CONVERTED = "pattern_converted"
    INSTANCES_LINKED = "instances_linked"
    INSTANCES_GENERATED = "instances_generated"
    MIGRATED = "migrated"
    FAILED = "failed"


@dataclass
class TaskMigration:
    """Outcome of migrating one legacy task."""
    task_id: str
    stage: MigrationStage = MigrationStage.DISCOVERED
    pattern_id: Optional[str] = None
    pattern_reused: bool = False
    error: Optional[str] = None


def convert_to_pattern(task: Task, rule: RecurrenceRule, today: date, now: datetime,
                       generation_days: int = DEFAULT_GENERATION_DAYS) -> RecurringPattern:
    """
    Build the RecurringPattern draft for a legacy recurring task.

    Args:
        task: Legacy parent task (template source)
        rule: The validated recurrence rule of the task
        today: Reference date; anchors tasks without a scheduled date
        now: Timestamp for created_at / updated_at
        generation_days: Horizon length

    Returns:
        Unsaved pattern carrying `migrated_from_task_id`
    """
    start_date = to_date(task.scheduled_date) or today
    return RecurringPattern.from_rule(
        rule,
        user_id=task.user_id,
        title=task.title,
        description=task.description or "",
        category_id=task.category_id,
        priority=task.priority,
        start_time=task.start_time,
        duration=task.duration,
        start_date=to_midnight(start_date),
        generated_until=to_midnight(horizon_end(today, generation_days)),
        active_instance_id=None,
        created_at=now,
        updated_at=now,
        deleted_at=None,
        migrated_from_task_id=task.id,
    )


class MigrationService:
    """Migrates legacy recurring tasks, live or as a dry run."""

    def __init__(
        self,
        store: RecurrenceStore,
        dry_run: bool = False,
        now: Optional[datetime] = None,
        timezone: str = "UTC",
        generation_days: int = DEFAULT_GENERATION_DAYS,
    ):
        """
        Args:
            store: Persistence boundary for tasks and patterns
            dry_run: Compute and report effects without writing
            now: Fixed clock (naive UTC) for reproducible runs
            timezone: Zone that defines "today"
            generation_days: Horizon length for new instances
        """
        self.store = store
        self.dry_run = dry_run
        self.now = now
        self.timezone = timezone
        self.generation_days = generation_days
        self.log = get_logger(__name__, dry_run=dry_run)

    def _clock(self) -> datetime:
        return self.now or utcnow()

    async def run(self, user_id: Optional[str] = None) -> MigrationReport:
        """
        Migrate every legacy recurring task, or only one user's.

        Raises:
            StoreError: If discovery fails; per-task failures never raise
        """
        report = MigrationReport(dry_run=self.dry_run)
        self.log.info(
            "Starting recurring tasks migration",
            mode="DRY RUN (no changes will be made)" if self.dry_run else "LIVE",
            target=user_id or "All users",
        )

        legacy_tasks = await self.store.find_legacy_recurring_tasks(user_id)
        self.log.info(f"Found {len(legacy_tasks)} legacy recurring tasks to migrate")
        if not legacy_tasks:
            return report

        tasks_by_user: Dict[str, List[Task]] = OrderedDict()
        for task in legacy_tasks:
            tasks_by_user.setdefault(task.user_id, []).append(task)
        self.log.info(f"Tasks span {len(tasks_by_user)} users")

        for uid, user_tasks in tasks_by_user.items():
            self.log.info(f"Processing user {uid}", user_id=uid, tasks=len(user_tasks))
            result = report.for_user(uid)
            for task in user_tasks:
                migration = await self.migrate_task(task, result)
                self.log.info(
                    f"Task {task.id} finished at stage {migration.stage.value}",
                    task_id=task.id, stage=migration.stage.value, pattern_id=migration.pattern_id,
                    pattern_reused=migration.pattern_reused,
                )

        return report

    async def migrate_task(self, task: Task, result: UserMigrationResult) -> TaskMigration:
        """Run all steps for one legacy task, isolating any failure."""
        migration = TaskMigration(task_id=task.id)
        result.tasks_processed += 1
        self.log.info(f'Migrating task "{task.title}"', task_id=task.id)

        try:
            await self._migrate(task, result, migration)
        except Exception as e:
            message = e.message if isinstance(e, RecurrenceError) else str(e) or type(e).__name__
            migration.stage = MigrationStage.FAILED
            migration.error = result.record_error(task.id, message)
            extra = create_error_response(e)["error"] if isinstance(e, RecurrenceError) else {}
            self.log.error(migration.error, task_id=task.id, user_id=task.user_id, error=extra)

        return migration

    async def _migrate(self, task: Task, result: UserMigrationResult, migration: TaskMigration) -> None:
        now = self._clock()
        today = today_in(self.timezone, now)

        # Convert
        rule = parse_legacy_recurrence(task.recurrence)
        pattern = await self.store.find_pattern_by_migrated_task(task.id)
        if pattern is not None:
            migration.pattern_reused = True
            self.log.warning(
                "Pattern from an earlier run found, reusing it",
                task_id=task.id, pattern_id=pattern.id,
            )
        else:
            pattern = convert_to_pattern(task, rule, today, now, self.generation_days)
        migration.stage = MigrationStage.PATTERN_CONVERTED
        self.log.info(f"Pattern type: {pattern.type}, interval: {pattern.interval}", task_id=task.id)

        # Link existing instances
        legacy_instances = await self.store.find_legacy_instances(task.id, task.user_id)
        self.log.info(f"Found {len(legacy_instances)} existing instances", task_id=task.id)

        if not migration.pattern_reused:
            if not self.dry_run:
                pattern.id = await self.store.add_pattern(pattern)
                self.log.info(f"Created pattern {pattern.id}", task_id=task.id, pattern_id=pattern.id)
            result.patterns_created += 1
        migration.pattern_id = pattern.id

        if legacy_instances and not self.dry_run:
            batch = BatchWriter(self.store)
            for instance in legacy_instances:
                await batch.update(TASK_COLLECTION, instance.id, {
                    "recurring_pattern_id": pattern.id,
                    "recurring_parent_id": None,
                    "is_recurring_instance": False,
                    "updated_at": now,
                })
            await batch.flush()
        result.instances_updated += len(legacy_instances)
        migration.stage = MigrationStage.INSTANCES_LINKED

        # Generate new instances
        existing = [InstanceDescriptor.from_task(t) for t in legacy_instances]
        if migration.pattern_reused:
            owned = await self.store.find_pattern_instances(pattern.id)
            linked = {d.id for d in existing}
            existing.extend(InstanceDescriptor.from_task(t) for t in owned if t.id not in linked)

        plan = reconcile(pattern, existing, today)
        self.log.info(f"Generating {len(plan.to_create)} new instances", task_id=task.id)
        if not self.dry_run:
            await self._apply_plan(pattern, plan, now)
        result.instances_generated += len(plan.to_create)
        migration.stage = MigrationStage.INSTANCES_GENERATED

        # Finalize
        if self.dry_run:
            self.log.info("Would create pattern and update instances", task_id=task.id)
            return
        await self.store.update_task(task.id, {
            "migrated_to_pattern_id": pattern.id,
            "deleted_at": now,
            "updated_at": now,
        })
        migration.stage = MigrationStage.MIGRATED
        self.log.info("Marked original task as migrated", task_id=task.id, pattern_id=pattern.id)

    async def _apply_plan(self, pattern: RecurringPattern, plan: ReconcilePlan, now: datetime) -> None:
        created_ids = []
        for draft in plan.to_create:
            created_ids.append(await self.store.add_task(draft.to_task(now)))

        if plan.to_unlink:
            batch = BatchWriter(self.store)
            for instance_id in plan.to_unlink:
                await batch.update(TASK_COLLECTION, instance_id, {"recurring_pattern_id": None, "updated_at": now})
            await batch.flush()
            self.log.info(f"Unlinked {len(plan.to_unlink)} instances outside the pattern", pattern_id=pattern.id)

        active_id = plan.adopt_instance_id
        if plan.activate_new_instance and created_ids:
            active_id = created_ids[0]
        if active_id is not None:
            await self.store.update_pattern(pattern.id, {"active_instance_id": active_id, "updated_at": now})
            pattern.active_instance_id = active_id
