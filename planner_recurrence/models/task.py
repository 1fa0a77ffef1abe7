"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON, String, Text
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from planner_recurrence.utils.dates import utcnow

TASK_COLLECTION = "tasks"

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETE = "complete"


def new_document_id() -> str:
    """Generate a document identifier."""
    return uuid.uuid4().hex


class Task(SQLModel, table=True):
    """Task entity: a plain task, a legacy recurring parent, or a pattern instance."""

    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=64)
    user_id: str = Field(max_length=128, index=True)
    title: str = Field(max_length=500, min_length=1)
    description: str = Field(default="", sa_column=Column(Text, default=""))
    category_id: Optional[str] = Field(default=None, max_length=64)
    priority: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))  # {"letter": "A", "number": 1}
    status: str = Field(default=STATUS_IN_PROGRESS, max_length=20)  # in_progress, forward, complete, cancelled, delegate
    scheduled_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, index=True, nullable=True))  # midnight of the scheduled day
    start_time: Optional[str] = Field(default=None, max_length=5)  # HH:MM
    duration: Optional[int] = Field(default=None)  # minutes
    show_on_calendar: bool = Field(default=False)

    # Legacy embedded recurrence, loosely typed as it was written by older clients
    recurrence: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    is_recurring_instance: bool = Field(default=False)
    recurring_parent_id: Optional[str] = Field(default=None, sa_column=Column(String(64), index=True, nullable=True))
    instance_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    # Pattern ownership
    recurring_pattern_id: Optional[str] = Field(default=None, sa_column=Column(String(64), index=True, nullable=True))
    migrated_to_pattern_id: Optional[str] = Field(default=None, max_length=64)

    linked_note_ids: Optional[List[str]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
