"""
Issue Tracker — Workflow Engine
Issue domain models.

Models:
    - IssueType, Priority: organization reference data.
    - Issue: the entity whose ``status_id`` the workflow engine governs.
    - IssueHistory: append-only field-level change log.
"""

import re

from tracker.models import db
from tracker.models.base import OrganizationModel, _utcnow, _uuid
from tracker.models.soft_delete import SoftDeleteMixin

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class IssueType(OrganizationModel):
    __tablename__ = "issue_types"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    is_subtask = db.Column(db.Boolean, default=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "is_subtask": self.is_subtask}


class Priority(OrganizationModel):
    __tablename__ = "priorities"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(50), nullable=False)
    rank = db.Column(db.Integer, default=0)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "rank": self.rank}


class Issue(SoftDeleteMixin, OrganizationModel):
    """
    Tracked work item.

    The workflow engine mutates ``status_id`` only. Validators read any
    other column (or a ``custom_fields`` key) by name through ``field_value``.
    """

    __tablename__ = "issues"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "key", name="uq_issue_org_key"),
        db.Index("idx_issue_project_status", "project_id", "status_id"),
        db.Index("idx_issue_parent", "organization_id", "parent_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    key = db.Column(db.String(30), nullable=False)
    summary = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status_id = db.Column(
        db.String(36), db.ForeignKey("statuses.id"), nullable=False,
    )
    issue_type_id = db.Column(
        db.String(36), db.ForeignKey("issue_types.id", ondelete="SET NULL"), nullable=True,
    )
    priority_id = db.Column(
        db.String(36), db.ForeignKey("priorities.id", ondelete="SET NULL"), nullable=True,
    )
    assignee_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    reporter_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    parent_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="SET NULL"), nullable=True,
    )
    resolution_id = db.Column(db.String(36), nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    story_points = db.Column(db.Integer, nullable=True)
    custom_fields = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    status = db.relationship("Status")
    issue_type = db.relationship("IssueType")
    priority = db.relationship("Priority")
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    reporter = db.relationship("User", foreign_keys=[reporter_id])
    parent = db.relationship("Issue", remote_side=[id])

    def field_value(self, name: str):
        """Return the value of a column or custom field, None when absent.

        camelCase names (``resolutionId``) resolve to their snake_case column.
        """
        for candidate in (name, _to_snake(name)):
            column = self.__table__.columns.get(candidate)
            if column is not None and candidate != "custom_fields":
                return getattr(self, candidate)
        return (self.custom_fields or {}).get(name)

    def to_dict(self, include_refs=False):
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "key": self.key,
            "summary": self.summary,
            "description": self.description,
            "status_id": self.status_id,
            "issue_type_id": self.issue_type_id,
            "priority_id": self.priority_id,
            "assignee_id": self.assignee_id,
            "reporter_id": self.reporter_id,
            "parent_id": self.parent_id,
            "resolution_id": self.resolution_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "story_points": self.story_points,
            "custom_fields": self.custom_fields or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_refs:
            d["issue_type"] = self.issue_type.to_dict() if self.issue_type else None
            d["status"] = self.status.to_dict() if self.status else None
            d["priority"] = self.priority.to_dict() if self.priority else None
            d["assignee"] = self.assignee.to_summary() if self.assignee else None
            d["reporter"] = self.reporter.to_summary() if self.reporter else None
            d["parent"] = (
                {"id": self.parent.id, "key": self.parent.key, "summary": self.parent.summary}
                if self.parent else None
            )
        return d

    def __repr__(self):
        return f"<Issue {self.key} status={self.status_id}>"


class IssueHistory(OrganizationModel):
    """One row per changed field. Never updated or deleted."""

    __tablename__ = "issue_history"
    __table_args__ = (
        db.Index("idx_issue_history_issue", "issue_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(
        db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    field = db.Column(db.String(100), nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "issue_id": self.issue_id,
            "user_id": self.user_id,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
