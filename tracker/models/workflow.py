"""
Issue Tracker — Workflow Engine
Workflow domain models.

Models:
    - Status: organization reference data (name + category).
    - Workflow: organization-scoped status graph; one default per organization.
    - WorkflowStatus: ordered membership of a Status in a Workflow.
    - Transition: directed edge between two statuses, gated by validators.

``workflow_projects`` binds workflows to projects. A project with no
binding falls back to the organization's default workflow.
"""

from enum import Enum

from tracker.models import db
from tracker.models.base import OrganizationModel, _utcnow, _uuid


class StatusCategory(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


STATUS_CATEGORIES = {c.value for c in StatusCategory}


workflow_projects = db.Table(
    "workflow_projects",
    db.Column(
        "workflow_id", db.String(36),
        db.ForeignKey("workflows.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "project_id", db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Status(OrganizationModel):
    """Immutable per-organization status. Read-only to the engine."""

    __tablename__ = "statuses"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_status_org_name"),
        db.CheckConstraint(
            "category IN (" + ",".join(f"'{c}'" for c in sorted(STATUS_CATEGORIES)) + ")",
            name="ck_status_category",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(
        db.String(20), nullable=False, default=StatusCategory.TODO.value,
        comment="TODO | IN_PROGRESS | DONE",
    )
    color = db.Column(db.String(20), default="#42526E")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "color": self.color,
        }


class Workflow(OrganizationModel):
    __tablename__ = "workflows"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_workflow_org_name"),
        db.Index("idx_workflow_org_default", "organization_id", "is_default", "is_active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    parent_id = db.Column(
        db.String(36), db.ForeignKey("workflows.id", ondelete="SET NULL"),
        nullable=True, comment="Source workflow when created by clone",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    workflow_statuses = db.relationship(
        "WorkflowStatus",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowStatus.position",
    )
    transitions = db.relationship(
        "Transition",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="Transition.created_at",
    )
    projects = db.relationship(
        "Project",
        secondary=workflow_projects,
        back_populates="workflows",
    )

    def to_dict(self, include_entries=True):
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "parent_id": self.parent_id,
        }
        if include_entries:
            d["statuses"] = [ws.to_dict() for ws in self.workflow_statuses]
            d["transitions"] = [t.to_dict() for t in self.transitions]
        return d

    def __repr__(self):
        return f"<Workflow {self.id}: {self.name}>"


class WorkflowStatus(db.Model):
    """Status membership; ``position`` drives display order only."""

    __tablename__ = "workflow_statuses"
    __table_args__ = (
        db.UniqueConstraint("workflow_id", "status_id", name="uq_workflow_status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_id = db.Column(
        db.String(36), db.ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    status_id = db.Column(
        db.String(36), db.ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    workflow = db.relationship("Workflow", back_populates="workflow_statuses")
    status = db.relationship("Status", lazy="joined")

    def to_dict(self):
        return {
            "status_id": self.status_id,
            "position": self.position,
            "status": self.status.to_dict() if self.status else None,
        }


class Transition(db.Model):
    """
    Directed edge between two statuses of one workflow.

    ``validators`` is interpreted at transition time. ``conditions`` and
    ``post_functions`` are carried verbatim and never executed.
    """

    __tablename__ = "transitions"
    __table_args__ = (
        db.Index("idx_transition_workflow_from", "workflow_id", "from_status_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_id = db.Column(
        db.String(36), db.ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(200), nullable=False)
    from_status_id = db.Column(
        db.String(36), db.ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=False,
    )
    to_status_id = db.Column(
        db.String(36), db.ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=False,
    )
    validators = db.Column(db.JSON, default=list, comment='[{"type": str, "config": {}}]')
    conditions = db.Column(db.JSON, default=list)
    post_functions = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    workflow = db.relationship("Workflow", back_populates="transitions")
    from_status = db.relationship("Status", foreign_keys=[from_status_id], lazy="joined")
    to_status = db.relationship("Status", foreign_keys=[to_status_id], lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "from_status_id": self.from_status_id,
            "to_status_id": self.to_status_id,
            "validators": self.validators if self.validators is not None else [],
            "conditions": self.conditions if self.conditions is not None else [],
            "post_functions": self.post_functions if self.post_functions is not None else [],
        }

    def __repr__(self):
        return f"<Transition {self.id}: {self.name} {self.from_status_id}->{self.to_status_id}>"
