"""Schemas for loosely typed legacy documents."""
