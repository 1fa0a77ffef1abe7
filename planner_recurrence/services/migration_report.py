"""Migration report: per-user counters, summary rendering and exit status."""
from dataclasses import dataclass, field
from typing import Dict, List

from planner_recurrence.utils.logger import DRY_RUN_PREFIX, RULE, THIN_RULE


@dataclass
class UserMigrationResult:
    """Counters for one user's migrated tasks."""
    user_id: str
    tasks_processed: int = 0
    patterns_created: int = 0
    instances_generated: int = 0
    instances_updated: int = 0
    errors: List[str] = field(default_factory=list)

    def record_error(self, task_id: str, message: str) -> str:
        error = f"Failed to migrate task {task_id}: {message}"
        self.errors.append(error)
        return error


@dataclass
class MigrationReport:
    """Results of one migration or refresh run."""
    dry_run: bool = False
    results: Dict[str, UserMigrationResult] = field(default_factory=dict)

    def for_user(self, user_id: str) -> UserMigrationResult:
        if user_id not in self.results:
            self.results[user_id] = UserMigrationResult(user_id=user_id)
        return self.results[user_id]

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results.values())

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def exit_code(self) -> int:
        """1 if any task failed, dry run or not; 0 otherwise."""
        return 1 if self.has_errors else 0

    def totals(self) -> Dict[str, int]:
        results = self.results.values()
        return {
            "tasks_processed": sum(r.tasks_processed for r in results),
            "patterns_created": sum(r.patterns_created for r in results),
            "instances_generated": sum(r.instances_generated for r in results),
            "instances_updated": sum(r.instances_updated for r in results),
            "errors": self.error_count,
        }

    def render(self) -> str:
        """Human-readable summary ordered by user, followed by totals."""
        lines = [RULE, "Migration Summary", RULE]

        for user_id in sorted(self.results):
            result = self.results[user_id]
            lines.append("")
            lines.append(f"User: {user_id}")
            lines.append(f"  Tasks processed: {result.tasks_processed}")
            lines.append(f"  Patterns created: {result.patterns_created}")
            lines.append(f"  Instances generated: {result.instances_generated}")
            lines.append(f"  Instances updated: {result.instances_updated}")
            if result.errors:
                lines.append(f"  Errors: {len(result.errors)}")
                lines.extend(f"    - {error}" for error in result.errors)

        totals = self.totals()
        lines.extend([
            "",
            THIN_RULE,
            "Totals:",
            f"  Tasks processed: {totals['tasks_processed']}",
            f"  Patterns created: {totals['patterns_created']}",
            f"  Instances generated: {totals['instances_generated']}",
            f"  Instances updated: {totals['instances_updated']}",
            f"  Errors: {totals['errors']}",
            RULE,
        ])

        if self.dry_run:
            lines.extend([
                "",
                "This was a dry run. No changes were made.",
                "Run without --dry-run to perform the actual migration.",
            ])
            lines = [f"{DRY_RUN_PREFIX}{line}" if line else line for line in lines]

        return "\n".join(lines)
