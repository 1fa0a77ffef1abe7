"""
Recurrence Store Interface

Persistence boundary for tasks and recurring patterns. The recurrence core
only needs equality filters, document inserts that return generated ids,
field-level partial updates, and batched partial updates whose physical
commits stay under the store's operation limit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
import logging

from planner_recurrence.models.recurring_pattern import RecurringPattern
from planner_recurrence.models.task import Task

logger = logging.getLogger(__name__)

# Maximum number of operations in one physical batch commit
MAX_BATCH_SIZE = 500


@dataclass(frozen=True)
class BatchUpdate:
    """A partial update of one document inside a batch."""
    collection: str
    document_id: str
    fields: Dict[str, Any]


class RecurrenceStore(ABC):
    """
    Base class for recurrence stores

    All operations are coroutines so callers can await each write in order.
    """

    # Tasks

    @abstractmethod
    async def find_legacy_recurring_tasks(self, user_id: Optional[str] = None) -> List[Task]:
        """Non-deleted tasks with an embedded recurrence that are not instances."""

    @abstractmethod
    async def find_legacy_instances(self, parent_task_id: str, user_id: str) -> List[Task]:
        """Non-deleted tasks whose legacy parent link points at `parent_task_id`."""

    @abstractmethod
    async def find_pattern_instances(self, pattern_id: str, include_deleted: bool = True) -> List[Task]:
        """Tasks owned by a pattern, ordered by scheduled date."""

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]:
        """Fetch one task by id."""

    @abstractmethod
    async def add_task(self, task: Task) -> str:
        """Insert a task and return its id."""

    @abstractmethod
    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> None:
        """Partially update one task."""

    # Patterns

    @abstractmethod
    async def add_pattern(self, pattern: RecurringPattern) -> str:
        """Insert a pattern and return its id."""

    @abstractmethod
    async def get_pattern(self, pattern_id: str) -> Optional[RecurringPattern]:
        """Fetch one pattern by id."""

    @abstractmethod
    async def find_pattern_by_migrated_task(self, task_id: str) -> Optional[RecurringPattern]:
        """Non-deleted pattern created by migrating `task_id`, if any."""

    @abstractmethod
    async def list_active_patterns(self, user_id: Optional[str] = None) -> List[RecurringPattern]:
        """Non-deleted patterns, optionally for one user."""

    @abstractmethod
    async def update_pattern(self, pattern_id: str, fields: Dict[str, Any]) -> None:
        """Partially update one pattern."""

    async def soft_delete_pattern(self, pattern_id: str, deleted_at: datetime) -> None:
        """Mark a pattern deleted; a deleted pattern generates nothing."""
        await self.update_pattern(pattern_id, {"deleted_at": deleted_at, "updated_at": deleted_at})

    # Batches

    @abstractmethod
    async def commit_batch(self, updates: Sequence[BatchUpdate]) -> None:
        """
        Apply all updates in one atomic commit

        Raises:
            StoreError: If the batch exceeds MAX_BATCH_SIZE or the commit fails
        """


class BatchWriter:
    """
    Accumulates partial updates and commits them in chunks.

    Each physical commit holds at most `max_operations` updates; larger sets
    are committed sequentially. Commits are atomic per chunk only.
    """

    def __init__(self, store: RecurrenceStore, max_operations: int = MAX_BATCH_SIZE):
        self.store = store
        self.max_operations = max_operations
        self.pending: List[BatchUpdate] = []
        self.commits = 0
        self.written = 0

    async def update(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        self.pending.append(BatchUpdate(collection, document_id, fields))
        if len(self.pending) >= self.max_operations:
            await self.flush()

    async def flush(self) -> None:
        if not self.pending:
            return
        chunk, self.pending = self.pending, []
        await self.store.commit_batch(chunk)
        self.commits += 1
        self.written += len(chunk)
        logger.debug(f"Committed batch of {len(chunk)} updates")
