"""
Issue Tracker — Workflow Engine
Organization domain models.

Models:
    - Organization: tenant root; every other row is scoped to one.
    - User: organization member, referenced as actor / assignee / reporter.
    - Project: groups issues; may be bound to a workflow.

These rows are owned by the surrounding administration service; the
workflow engine only reads them.
"""

from tracker.models import db
from tracker.models.base import OrganizationModel, _utcnow, _uuid


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class User(OrganizationModel):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(200), nullable=False)
    full_name = db.Column(db.String(200), default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_summary(self):
        return {"id": self.id, "email": self.email, "full_name": self.full_name}


class Project(OrganizationModel):
    """Issue container. Workflow bindings live in ``workflow_projects``."""

    __tablename__ = "projects"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "key", name="uq_project_org_key"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    key = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    default_workflow_id = db.Column(
        db.String(36),
        db.ForeignKey("workflows.id", ondelete="SET NULL"),
        nullable=True,
        comment="Last workflow assigned through scheme administration",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    workflows = db.relationship(
        "Workflow",
        secondary="workflow_projects",
        back_populates="projects",
        lazy="select",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "key": self.key,
            "name": self.name,
            "default_workflow_id": self.default_workflow_id,
        }
