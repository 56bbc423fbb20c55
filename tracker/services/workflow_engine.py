"""
Workflow Engine — issue status transitions.

Three public operations, all scoped to one organization:

    get_workflow_for_project(organization_id, project_id)   -> Workflow
    get_available_transitions(organization_id, issue_id)    -> [{id, name, to_status}]
    transition_issue(organization_id, user_id, issue_id, transition_id) -> issue dict

Resolution: an active workflow bound to the project wins; otherwise the
organization's active default workflow; otherwise NotFoundError (a
provisioning bug, never retried).

transition_issue runs, in order:
  1. load issue (soft-deleted = missing)
  2. resolve workflow
  3. locate transition inside that workflow
  4. from_status must equal the issue's current status
  5. decode stored validators (malformed → no validators)
  6. run the validator pipeline
  7. one transaction: conditional status UPDATE + IssueHistory + AuditLog

The UPDATE in step 7 matches on the status read in step 1, so two
concurrent calls from the same status cannot both commit. The loser gets
WORKFLOW_TRANSITION_BLOCKED with reason "concurrent_update".
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context
from sqlalchemy import select, update

from tracker.core.exceptions import (
    WORKFLOW_TRANSITION_BLOCKED,
    NotFoundError,
    ValidationError,
)
from tracker.models import db
from tracker.models.audit import write_audit
from tracker.models.base import _utcnow
from tracker.models.issue import Issue, IssueHistory
from tracker.models.workflow import Transition, Workflow, workflow_projects
from tracker.services.helpers.scoped_queries import get_scoped
from tracker.services.workflow_validators import (
    ValidatorContext,
    ValidatorRegistry,
    decode_validators,
    run_validators,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Workflow resolution
# ──────────────────────────────────────────────────────────────────────────────

def get_workflow_for_project(organization_id: int, project_id: str) -> Workflow:
    """Return the single workflow governing *project_id*.

    Raises:
        NotFoundError: neither a project binding nor an active default exists.
    """
    bound = db.session.execute(
        select(Workflow)
        .join(workflow_projects, workflow_projects.c.workflow_id == Workflow.id)
        .where(
            Workflow.organization_id == organization_id,
            workflow_projects.c.project_id == project_id,
            Workflow.is_active.is_(True),
        )
        .order_by(Workflow.created_at)
        .limit(1)
    ).scalar_one_or_none()
    if bound is not None:
        return bound

    default = db.session.execute(
        select(Workflow)
        .where(
            Workflow.organization_id == organization_id,
            Workflow.is_default.is_(True),
            Workflow.is_active.is_(True),
        )
        .order_by(Workflow.created_at)
        .limit(1)
    ).scalar_one_or_none()
    if default is None:
        logger.error(
            "No default workflow for organization %s (project %s)",
            organization_id, project_id,
            extra={"organization_id": organization_id, "event_type": "workflow.missing_default"},
        )
        raise NotFoundError(resource="Workflow", organization_id=organization_id)

    logger.debug("Project %s has no workflow binding; using default %s", project_id, default.id)
    return default


# ──────────────────────────────────────────────────────────────────────────────
# Status / transition catalog
# ──────────────────────────────────────────────────────────────────────────────

def ordered_statuses(workflow: Workflow) -> list:
    """Statuses of *workflow* in position order."""
    return [ws.status for ws in sorted(workflow.workflow_statuses, key=lambda ws: ws.position)]


def outgoing_transitions(workflow: Workflow, status_id: str) -> list[Transition]:
    return [t for t in workflow.transitions if t.from_status_id == status_id]


def find_transition(workflow: Workflow, transition_id: str) -> Transition:
    for transition in workflow.transitions:
        if transition.id == transition_id:
            return transition
    raise NotFoundError(resource="Transition", resource_id=transition_id)


# ──────────────────────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────────────────────

def get_available_transitions(organization_id: int, issue_id: str) -> list[dict]:
    """Transitions leaving the issue's current status.

    Validator configuration is never part of the payload.
    An empty list means the issue sits in a status with no outgoing edges.
    """
    issue = get_scoped(Issue, issue_id, organization_id=organization_id)
    workflow = get_workflow_for_project(organization_id, issue.project_id)
    return [
        {
            "id": t.id,
            "name": t.name,
            "to_status": t.to_status.to_dict() if t.to_status else None,
        }
        for t in outgoing_transitions(workflow, issue.status_id)
    ]


# ──────────────────────────────────────────────────────────────────────────────
# Transition executor
# ──────────────────────────────────────────────────────────────────────────────

def _strict_validator_config() -> bool:
    if not has_app_context():
        return False
    return bool(current_app.config.get("WORKFLOW_STRICT_VALIDATOR_CONFIG", False))


def _blocked(message: str, **details) -> ValidationError:
    return ValidationError(message, code=WORKFLOW_TRANSITION_BLOCKED, details=details)


def transition_issue(
    organization_id: int,
    user_id: str | None,
    issue_id: str,
    transition_id: str,
    *,
    registry: ValidatorRegistry | None = None,
) -> dict:
    """
    Move an issue along one workflow transition.

    Args:
        organization_id: Tenant scope for every lookup and write.
        user_id: Actor recorded on the history and audit rows.
        issue_id: Issue to move.
        transition_id: Transition of the issue's resolved workflow.
        registry: Validator registry override (defaults to the built-ins).

    Returns:
        The updated issue with type, status, priority, assignee, reporter
        and parent populated.

    Raises:
        NotFoundError: issue, workflow or transition not visible in the organization.
        ValidationError: code WORKFLOW_TRANSITION_BLOCKED on status mismatch,
            failing/unknown validator, bad validator config, or a concurrent update.
    """
    log_extra = {
        "organization_id": organization_id,
        "issue_id": issue_id,
        "transition_id": transition_id,
    }

    issue = get_scoped(Issue, issue_id, organization_id=organization_id)
    workflow = get_workflow_for_project(organization_id, issue.project_id)
    transition = find_transition(workflow, transition_id)

    from_status_id = issue.status_id
    if transition.from_status_id != from_status_id:
        logger.info(
            "Transition %s blocked: issue %s is at %s, transition starts at %s",
            transition.id, issue.id, from_status_id, transition.from_status_id,
            extra=log_extra,
        )
        raise _blocked(
            f"Transition '{transition.name}' is not valid from current status",
            reason="status_mismatch",
            current_status_id=from_status_id,
            expected_status_id=transition.from_status_id,
        )

    specs = decode_validators(transition.validators, strict=_strict_validator_config())
    run_validators(
        ValidatorContext(organization_id=organization_id, issue=issue),
        specs,
        registry=registry,
    )

    try:
        result = db.session.execute(
            update(Issue)
            .where(
                Issue.id == issue.id,
                Issue.organization_id == organization_id,
                Issue.status_id == from_status_id,
                Issue.deleted_at.is_(None),
            )
            .values(status_id=transition.to_status_id, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Issue %s changed status concurrently; transition %s rejected",
                issue.id, transition.id, extra=log_extra,
            )
            raise _blocked(
                f"Transition '{transition.name}' is not valid from current status",
                reason="concurrent_update",
                expected_status_id=from_status_id,
            )

        db.session.add(IssueHistory(
            organization_id=organization_id,
            issue_id=issue.id,
            user_id=user_id,
            field="statusId",
            old_value=from_status_id,
            new_value=transition.to_status_id,
        ))
        write_audit(
            organization_id=organization_id,
            user_id=user_id,
            entity_type="Issue",
            entity_id=issue.id,
            action="TRANSITIONED",
            diff={
                "transitionId": transition.id,
                "transitionName": transition.name,
                "fromStatusId": from_status_id,
                "toStatusId": transition.to_status_id,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Issue %s transitioned %s -> %s via %s",
        issue.id, from_status_id, transition.to_status_id, transition.name,
        extra={**log_extra, "workflow_id": workflow.id, "event_type": "issue.transitioned"},
    )

    updated = get_scoped(Issue, issue_id, organization_id=organization_id)
    return updated.to_dict(include_refs=True)
