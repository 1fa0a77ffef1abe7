"""Initialize store tables."""
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from planner_recurrence.errors import StoreError
from planner_recurrence.models.recurring_pattern import RecurringPattern  # noqa: F401
from planner_recurrence.models.task import Task  # noqa: F401


def init_db(engine: Engine) -> None:
    """
    Verify the store is reachable and create missing tables.

    Raises:
        StoreError: If the store cannot be reached
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        SQLModel.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StoreError(f"Store unreachable: {e}", details={"url": engine.url.render_as_string(hide_password=True)})
