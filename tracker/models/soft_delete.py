"""
Soft Delete Mixin.

Adds the `deleted_at` timestamp column for soft delete.
Issues are never physically removed; the workflow engine treats a
soft-deleted issue exactly like a missing one.

Usage:
    class Issue(SoftDeleteMixin, OrganizationModel):
        ...

    issue.soft_delete()
    db.session.commit()
"""

from datetime import datetime, timezone

from tracker.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime, nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)
