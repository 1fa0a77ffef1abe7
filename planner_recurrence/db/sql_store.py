"""
SQLModel Recurrence Store.

Implements the recurrence store on the planner's SQL database. Tasks and
patterns live in the `task` and `recurring_pattern` tables; loosely typed
document fields (legacy recurrence, priority, rule refinements) are JSON
columns.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Type
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from planner_recurrence.db.base_store import MAX_BATCH_SIZE, BatchUpdate, RecurrenceStore
from planner_recurrence.errors import StoreError
from planner_recurrence.models.recurring_pattern import PATTERN_COLLECTION, RecurringPattern
from planner_recurrence.models.task import TASK_COLLECTION, Task
from planner_recurrence.utils.metrics import MetricsCollector

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Type[SQLModel]] = {
    TASK_COLLECTION: Task,
    PATTERN_COLLECTION: RecurringPattern,
}


class SQLModelStore(RecurrenceStore):
    """Recurrence store backed by a SQLModel engine."""

    def __init__(self, engine: Engine, metrics: Optional[MetricsCollector] = None):
        self.engine = engine
        self.metrics = metrics or MetricsCollector()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self.metrics.timer(f"store_{operation}_seconds"):
                with Session(self.engine) as session:
                    yield session
        except SQLAlchemyError as e:
            self.metrics.store_error()
            logger.error(f"Store operation {operation} failed: {str(e)}")
            raise StoreError(f"Store operation {operation} failed: {e}", details={"operation": operation})

    # Tasks

    async def find_legacy_recurring_tasks(self, user_id: Optional[str] = None) -> List[Task]:
        statement = select(Task).where(
            Task.deleted_at.is_(None),
            Task.recurrence.is_not(None),
            Task.recurring_parent_id.is_(None),
            Task.is_recurring_instance == False  # noqa: E712
        )
        if user_id:
            statement = statement.where(Task.user_id == user_id)
        statement = statement.order_by(Task.user_id, Task.created_at, Task.id)

        with self._session("find_legacy_recurring_tasks") as session:
            tasks = list(session.exec(statement).all())
        self.metrics.store_read()
        return tasks

    async def find_legacy_instances(self, parent_task_id: str, user_id: str) -> List[Task]:
        statement = (
            select(Task)
            .where(Task.user_id == user_id)
            .where(Task.recurring_parent_id == parent_task_id)
            .where(Task.deleted_at.is_(None))
            .order_by(Task.scheduled_date, Task.id)
        )
        with self._session("find_legacy_instances") as session:
            tasks = list(session.exec(statement).all())
        self.metrics.store_read()
        return tasks

    async def find_pattern_instances(self, pattern_id: str, include_deleted: bool = True) -> List[Task]:
        statement = select(Task).where(Task.recurring_pattern_id == pattern_id)
        if not include_deleted:
            statement = statement.where(Task.deleted_at.is_(None))
        statement = statement.order_by(Task.scheduled_date, Task.id)

        with self._session("find_pattern_instances") as session:
            tasks = list(session.exec(statement).all())
        self.metrics.store_read()
        return tasks

    async def get_task(self, task_id: str) -> Optional[Task]:
        with self._session("get_task") as session:
            task = session.get(Task, task_id)
        self.metrics.store_read()
        return task

    async def add_task(self, task: Task) -> str:
        return self._add(task, "add_task")

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> None:
        self._update(TASK_COLLECTION, task_id, fields)

    # Patterns

    async def add_pattern(self, pattern: RecurringPattern) -> str:
        return self._add(pattern, "add_pattern")

    async def get_pattern(self, pattern_id: str) -> Optional[RecurringPattern]:
        with self._session("get_pattern") as session:
            pattern = session.get(RecurringPattern, pattern_id)
        self.metrics.store_read()
        return pattern

    async def find_pattern_by_migrated_task(self, task_id: str) -> Optional[RecurringPattern]:
        statement = (
            select(RecurringPattern)
            .where(RecurringPattern.migrated_from_task_id == task_id)
            .where(RecurringPattern.deleted_at.is_(None))
            .order_by(RecurringPattern.created_at)
        )
        with self._session("find_pattern_by_migrated_task") as session:
            pattern = session.exec(statement).first()
        self.metrics.store_read()
        return pattern

    async def list_active_patterns(self, user_id: Optional[str] = None) -> List[RecurringPattern]:
        statement = select(RecurringPattern).where(RecurringPattern.deleted_at.is_(None))
        if user_id:
            statement = statement.where(RecurringPattern.user_id == user_id)
        statement = statement.order_by(RecurringPattern.user_id, RecurringPattern.created_at)

        with self._session("list_active_patterns") as session:
            patterns = list(session.exec(statement).all())
        self.metrics.store_read()
        return patterns

    async def update_pattern(self, pattern_id: str, fields: Dict[str, Any]) -> None:
        self._update(PATTERN_COLLECTION, pattern_id, fields)

    # Batches

    async def commit_batch(self, updates: Sequence[BatchUpdate]) -> None:
        if len(updates) > MAX_BATCH_SIZE:
            raise StoreError(
                f"Batch of {len(updates)} operations exceeds the limit of {MAX_BATCH_SIZE}",
                details={"operations": len(updates)}
            )
        if not updates:
            return

        with self._session("commit_batch") as session:
            for update in updates:
                self._apply(session, update.collection, update.document_id, update.fields)
            session.commit()
        self.metrics.batch_commit()
        self.metrics.store_write(len(updates))

    # Helpers

    def _add(self, document: SQLModel, operation: str) -> str:
        with self._session(operation) as session:
            session.add(document)
            session.commit()
            session.refresh(document)
            document_id = document.id
        self.metrics.store_write()
        return document_id

    def _update(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        with self._session(f"update_{collection}") as session:
            self._apply(session, collection, document_id, fields)
            session.commit()
        self.metrics.store_write()

    def _apply(self, session: Session, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        model = COLLECTIONS.get(collection)
        if model is None:
            raise StoreError(f"Unknown collection: {collection}")

        document = session.get(model, document_id)
        if document is None:
            raise StoreError(
                f"Document {document_id} not found in {collection}",
                details={"collection": collection, "id": document_id}
            )

        for name, value in fields.items():
            if name not in model.model_fields:
                raise StoreError(
                    f"Unknown field {name} for {collection}",
                    details={"collection": collection, "field": name}
                )
            setattr(document, name, value)
        session.add(document)
