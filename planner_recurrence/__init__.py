"""
Planner Recurrence Package

Recurring task materialization for the planner:
- models: RecurrenceRule, RecurringPattern and Task
- services: occurrence generation, instance reconciliation, legacy migration
- db: the recurrence store and its SQLModel implementation
"""

__version__ = "0.1.0"
