"""
OrganizationModel — Abstract base class for organization-scoped models.

All models that need tenant isolation should inherit from OrganizationModel
instead of db.Model directly. This adds:
  - organization_id FK column with index
  - query_for_organization(organization_id) classmethod
"""

import uuid
from datetime import datetime, timezone

from tracker.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class OrganizationModel(db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_organization(cls, organization_id):
        """Return a query filtered by organization_id."""
        return cls.query.filter_by(organization_id=organization_id)
