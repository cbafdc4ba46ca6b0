"""Aggregate model imports for Alembic auto-detection."""

from firmbook.models.activity_log import ActivityLog  # noqa: F401
