"""Store package: the recurrence store interface, configuration and SQLModel implementation."""
