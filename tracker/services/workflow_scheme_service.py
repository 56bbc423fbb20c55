"""
Workflow scheme administration.

Workflows are administered as "schemes": an organization copies a workflow,
edits the copy, and points projects at it. This module exposes that
clone-and-reassign shape as a small capability object so the generic
scheme UI can drive it without knowing about statuses or transitions.

Each public method owns its own transaction and commits it.

Usage:
    from tracker.services.workflow_scheme_service import workflow_scheme_adapter

    copy = workflow_scheme_adapter.clone(org_id, wf_id, "Support Workflow")
    workflow_scheme_adapter.assign_to_project(org_id, copy.id, project_id)
"""

import copy
import logging

from sqlalchemy import func, select

from tracker.core.exceptions import ConflictError, ValidationError
from tracker.models import db
from tracker.models.audit import write_audit
from tracker.models.organization import Project
from tracker.models.workflow import Transition, Workflow, WorkflowStatus, workflow_projects
from tracker.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


class WorkflowSchemeAdapter:
    """Scheme capability for workflows: find, count usages, clone, assign."""

    scheme_type = "Workflow"

    def find_with_entries(self, organization_id: int, workflow_id: str) -> Workflow:
        """Workflow with its ordered statuses and transitions loaded."""
        workflow = get_scoped(Workflow, workflow_id, organization_id=organization_id)
        # touch the collections so callers can serialise after the session closes
        _ = list(workflow.workflow_statuses), list(workflow.transitions)
        return workflow

    def count_usages(self, organization_id: int, workflow_id: str) -> int:
        """Number of projects bound to the workflow."""
        return db.session.execute(
            select(func.count(Project.id))
            .join(workflow_projects, workflow_projects.c.project_id == Project.id)
            .where(
                Project.organization_id == organization_id,
                workflow_projects.c.workflow_id == workflow_id,
            )
        ).scalar_one()

    def clone(self, organization_id: int, workflow_id: str, name: str,
              user_id: str | None = None) -> Workflow:
        """Deep-copy a workflow under a new name.

        Status positions and transitions are copied; ``validators``,
        ``conditions`` and ``post_functions`` are carried verbatim. The copy
        is active, never default, and records the source in ``parent_id``.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Workflow name is required", details={"name": "required"})

        original = self.find_with_entries(organization_id, workflow_id)

        duplicate = db.session.execute(
            select(Workflow.id).where(
                Workflow.organization_id == organization_id, Workflow.name == name,
            )
        ).first()
        if duplicate:
            raise ConflictError("Workflow", "name", name)

        clone = Workflow(
            organization_id=organization_id,
            name=name,
            description=original.description,
            is_default=False,
            is_active=True,
            parent_id=original.id,
        )
        clone.workflow_statuses = [
            WorkflowStatus(status_id=ws.status_id, position=ws.position)
            for ws in original.workflow_statuses
        ]
        clone.transitions = [
            Transition(
                name=t.name,
                from_status_id=t.from_status_id,
                to_status_id=t.to_status_id,
                validators=copy.deepcopy(t.validators) if t.validators is not None else [],
                conditions=copy.deepcopy(t.conditions) if t.conditions is not None else [],
                post_functions=(
                    copy.deepcopy(t.post_functions) if t.post_functions is not None else []
                ),
            )
            for t in original.transitions
        ]

        try:
            db.session.add(clone)
            db.session.flush()
            write_audit(
                organization_id=organization_id,
                user_id=user_id,
                entity_type="Workflow",
                entity_id=clone.id,
                action="CLONED",
                diff={"sourceWorkflowId": original.id, "name": name},
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Cloned workflow %s into %s (%s)", original.id, clone.id, name,
                    extra={"organization_id": organization_id, "workflow_id": clone.id})
        return clone

    def assign_to_project(self, organization_id: int, workflow_id: str, project_id: str,
                          user_id: str | None = None) -> Project:
        """Make *workflow_id* the only workflow bound to *project_id*."""
        workflow = get_scoped(Workflow, workflow_id, organization_id=organization_id)
        project = get_scoped(Project, project_id, organization_id=organization_id)

        previous = [w.id for w in project.workflows]
        try:
            project.workflows = [workflow]
            project.default_workflow_id = workflow.id
            write_audit(
                organization_id=organization_id,
                user_id=user_id,
                entity_type="Workflow",
                entity_id=workflow.id,
                action="ASSIGNED",
                diff={"projectId": project.id, "previousWorkflowIds": previous},
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Assigned workflow %s to project %s (was %s)", workflow.id, project.id, previous,
                    extra={"organization_id": organization_id, "workflow_id": workflow.id})
        return project


workflow_scheme_adapter = WorkflowSchemeAdapter()
