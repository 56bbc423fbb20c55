"""
Default workflow provisioning.

Every organization needs one active default workflow; the engine treats
its absence as a fatal configuration error. This is the provisioning side
of that contract, run when an organization is created (or from the
``flask seed-default-workflow`` command for existing ones).
"""

import logging

from sqlalchemy import select

from tracker.models import db
from tracker.models.organization import Organization
from tracker.models.workflow import Status, StatusCategory, Transition, Workflow, WorkflowStatus

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_NAME = "Default Workflow"

DEFAULT_STATUSES = [
    # (name, category, color)
    ("To Do", StatusCategory.TODO, "#42526E"),
    ("In Progress", StatusCategory.IN_PROGRESS, "#0052CC"),
    ("Done", StatusCategory.DONE, "#00875A"),
]

DEFAULT_TRANSITIONS = [
    # (name, from, to)
    ("Start Progress", "To Do", "In Progress"),
    ("Stop Progress", "In Progress", "To Do"),
    ("Done", "In Progress", "Done"),
    ("Reopen", "Done", "To Do"),
]


def _ensure_statuses(organization_id: int) -> dict[str, Status]:
    statuses = {}
    for name, category, color in DEFAULT_STATUSES:
        status = Status.query_for_organization(organization_id).filter_by(name=name).first()
        if status is None:
            status = Status(
                organization_id=organization_id, name=name,
                category=category.value, color=color,
            )
            db.session.add(status)
        statuses[name] = status
    db.session.flush()
    return statuses


def _find_adoptable(organization_id: int) -> Workflow | None:
    """Existing default (active or not), else a workflow already holding the default name."""
    existing = db.session.execute(
        select(Workflow)
        .where(Workflow.organization_id == organization_id, Workflow.is_default.is_(True))
        .order_by(Workflow.created_at)
    ).scalars().first()
    if existing is not None:
        return existing
    return db.session.execute(
        select(Workflow).where(
            Workflow.organization_id == organization_id,
            Workflow.name == DEFAULT_WORKFLOW_NAME,
        )
    ).scalars().first()


def provision_default_workflow(organization_id: int) -> Workflow:
    """Ensure the organization has exactly one active default workflow. Idempotent.

    An existing default is reactivated rather than duplicated; a non-default
    workflow named "Default Workflow" is promoted instead of colliding on
    the per-organization name constraint.
    """
    if db.session.get(Organization, organization_id) is None:
        raise ValueError(f"Organization not found: {organization_id}")

    existing = _find_adoptable(organization_id)
    if existing is not None:
        if existing.is_default and existing.is_active:
            return existing
        try:
            existing.is_default = True
            existing.is_active = True
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.warning(
            "Adopted workflow %s as default for organization %s", existing.id, organization_id,
            extra={"organization_id": organization_id, "workflow_id": existing.id},
        )
        return existing

    try:
        statuses = _ensure_statuses(organization_id)
        workflow = Workflow(
            organization_id=organization_id,
            name=DEFAULT_WORKFLOW_NAME,
            description="Provisioned default workflow",
            is_default=True,
            is_active=True,
        )
        workflow.workflow_statuses = [
            WorkflowStatus(status_id=statuses[name].id, position=pos)
            for pos, (name, _category, _color) in enumerate(DEFAULT_STATUSES)
        ]
        workflow.transitions = [
            Transition(
                name=name,
                from_status_id=statuses[src].id,
                to_status_id=statuses[dst].id,
                validators=[], conditions=[], post_functions=[],
            )
            for name, src, dst in DEFAULT_TRANSITIONS
        ]
        db.session.add(workflow)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Provisioned default workflow %s for organization %s", workflow.id, organization_id,
                extra={"organization_id": organization_id, "workflow_id": workflow.id})
    return workflow
