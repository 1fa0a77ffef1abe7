"""Shared fixtures: an in-memory SQLite store and legacy task builders."""
from datetime import date, datetime
from typing import Any, Dict, Optional

import pytest

from planner_recurrence.db.config import create_store_engine
from planner_recurrence.db.init import init_db
from planner_recurrence.db.sql_store import SQLModelStore
from planner_recurrence.models.task import Task
from planner_recurrence.utils.dates import to_midnight

NOW = datetime(2026, 3, 1, 12, 0, 0)
TODAY = date(2026, 3, 1)


@pytest.fixture
def engine():
    engine = create_store_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SQLModelStore(engine)


def legacy_task(user_id: str, recurrence: Optional[Dict[str, Any]], scheduled: Optional[date] = None,
                title: str = "Water plants", **fields) -> Task:
    """A legacy recurring parent task."""
    return Task(
        user_id=user_id,
        title=title,
        description="Legacy recurring task",
        priority={"letter": "A", "number": 1},
        scheduled_date=to_midnight(scheduled) if scheduled else None,
        start_time="08:30",
        duration=15,
        recurrence=recurrence,
        created_at=NOW,
        updated_at=NOW,
        **fields
    )


def legacy_instance(parent: Task, scheduled: date, **fields) -> Task:
    """A legacy instance materialized from `parent`."""
    return Task(
        user_id=parent.user_id,
        title=parent.title,
        scheduled_date=to_midnight(scheduled),
        is_recurring_instance=True,
        recurring_parent_id=parent.id,
        instance_date=to_midnight(scheduled),
        created_at=NOW,
        updated_at=NOW,
        **fields
    )
