"""Recurrence services: generation, reconciliation, migration and pattern upkeep."""
