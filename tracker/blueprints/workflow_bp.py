"""Workflow engine blueprint.

Thin HTTP adapter over the workflow engine. Authentication and tenant
derivation belong to the enclosing service; here organization_id is read
from the query string or JSON body.

Endpoints:
  GET   /api/v1/projects/<project_id>/workflow      Workflow governing a project
  GET   /api/v1/issues/<issue_id>/transitions       Transitions available now
  POST  /api/v1/issues/<issue_id>/transitions       Execute {transition_id, user_id}
  GET   /api/v1/health                              Liveness
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import tracker.services.workflow_engine as engine
from tracker.blueprints import organization_id_arg
from tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1")


def _organization_required() -> tuple[int | None, tuple | None]:
    oid = organization_id_arg()
    if oid is None:
        return None, api_error(E.VALIDATION_REQUIRED, "organization_id is required")
    return oid, None


# ── Error handlers ────────────────────────────────────────────────────────────


@workflow_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@workflow_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(error.code or E.BUSINESS_RULE, str(error), status=422, details=error.details)


@workflow_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@workflow_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in workflow_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Routes
# ═════════════════════════════════════════════════════════════════════════


@workflow_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "Issue Tracker Workflow Engine"}), 200


@workflow_bp.route("/projects/<project_id>/workflow", methods=["GET"])
def get_project_workflow(project_id: str):
    """Return the workflow governing a project, with statuses and transitions.

    Query params: organization_id (required)
    """
    organization_id, err = _organization_required()
    if err:
        return err
    workflow = engine.get_workflow_for_project(organization_id, project_id)
    return jsonify(workflow.to_dict()), 200


@workflow_bp.route("/issues/<issue_id>/transitions", methods=["GET"])
def list_transitions(issue_id: str):
    """Return the transitions available from the issue's current status.

    Query params: organization_id (required)
    Returns: {"transitions": [{id, name, to_status}]}
    """
    organization_id, err = _organization_required()
    if err:
        return err
    transitions = engine.get_available_transitions(organization_id, issue_id)
    return jsonify({"transitions": transitions}), 200


@workflow_bp.route("/issues/<issue_id>/transitions", methods=["POST"])
def execute_transition(issue_id: str):
    """Move an issue along a transition.

    Body: {organization_id, transition_id, user_id}
    Returns: updated issue (200).
    """
    organization_id, err = _organization_required()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    transition_id = str(data.get("transition_id") or "").strip()
    if not transition_id:
        return api_error(E.VALIDATION_REQUIRED, "transition_id is required")
    user_id = data.get("user_id") or request.headers.get("X-User-Id")

    issue = engine.transition_issue(organization_id, user_id, issue_id, transition_id)
    return jsonify(issue), 200
