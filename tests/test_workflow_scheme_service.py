"""
Workflow Scheme Administration Tests

Covers:
  - find_with_entries / count_usages
  - clone: deep copy, verbatim validator/condition/post-function blobs,
    parent link, never default, duplicate name conflict, audit row
  - assign_to_project: replaces bindings, drives engine resolution
"""

import pytest

from tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from tracker.models import db
from tracker.models.audit import AuditLog
from tracker.services.workflow_engine import get_workflow_for_project
from tracker.services.workflow_scheme_service import workflow_scheme_adapter
from tests._factories import (
    ORG_ID,
    OTHER_ORG_ID,
    PROJECT_ID,
    USER_ID,
    make_organization,
    make_project,
    make_transition,
    make_workflow,
)


VALIDATORS = [{"type": "required_field", "config": {"field": "resolutionId"}}]
CONDITIONS = [{"type": "user_in_group", "config": {"group": "qa"}}]
POST_FUNCTIONS = [{"type": "notify", "config": {"channel": "#releases"}}]


def test_scheme_type():
    assert workflow_scheme_adapter.scheme_type == "Workflow"


class TestFindAndCount:

    def test_find_with_entries(self, world):
        wf = workflow_scheme_adapter.find_with_entries(ORG_ID, "wf-1")
        assert [ws.status_id for ws in wf.workflow_statuses] == [
            "status-todo", "status-ip", "status-done",
        ]
        assert {t.id for t in wf.transitions} == {"trans-start", "trans-done"}

    def test_find_is_organization_scoped(self, world):
        make_organization(OTHER_ORG_ID)
        db.session.commit()
        with pytest.raises(NotFoundError):
            workflow_scheme_adapter.find_with_entries(OTHER_ORG_ID, "wf-1")

    def test_count_usages(self, world):
        assert workflow_scheme_adapter.count_usages(ORG_ID, "wf-1") == 0

        second = make_project("proj-2", key="SEC")
        world["workflow"].projects = [world["project"], second]
        db.session.commit()

        assert workflow_scheme_adapter.count_usages(ORG_ID, "wf-1") == 2


class TestClone:

    def test_deep_copies_statuses_and_transitions(self, world):
        make_transition(
            world["workflow"], "trans-qa", "Submit to QA", "status-ip", "status-done",
            validators=VALIDATORS, conditions=CONDITIONS, post_functions=POST_FUNCTIONS,
        )
        db.session.commit()

        clone = workflow_scheme_adapter.clone(ORG_ID, "wf-1", "Custom Workflow", user_id=USER_ID)

        assert clone.id != "wf-1"
        assert clone.parent_id == "wf-1"
        assert clone.is_default is False
        assert clone.is_active is True
        assert [(ws.status_id, ws.position) for ws in clone.workflow_statuses] == [
            ("status-todo", 0), ("status-ip", 1), ("status-done", 2),
        ]
        copied = {t.name: t for t in clone.transitions}
        assert set(copied) == {"Start Progress", "Done", "Submit to QA"}
        assert all(t.id not in {"trans-start", "trans-done", "trans-qa"} for t in clone.transitions)
        qa = copied["Submit to QA"]
        assert qa.validators == VALIDATORS
        assert qa.conditions == CONDITIONS
        assert qa.post_functions == POST_FUNCTIONS

    def test_clone_is_independent_of_source(self, world):
        clone = workflow_scheme_adapter.clone(ORG_ID, "wf-1", "Copy")
        for t in clone.transitions:
            t.validators = [{"type": "no_open_subtasks", "config": {}}]
        db.session.commit()

        source = workflow_scheme_adapter.find_with_entries(ORG_ID, "wf-1")
        assert all(t.validators == [] for t in source.transitions)

    def test_default_stays_the_fallback(self, world):
        workflow_scheme_adapter.clone(ORG_ID, "wf-1", "Copy")
        assert get_workflow_for_project(ORG_ID, PROJECT_ID).id == "wf-1"

    def test_duplicate_name_conflicts(self, world):
        with pytest.raises(ConflictError):
            workflow_scheme_adapter.clone(ORG_ID, "wf-1", "Default Workflow")

    def test_blank_name_rejected(self, world):
        with pytest.raises(ValidationError):
            workflow_scheme_adapter.clone(ORG_ID, "wf-1", "   ")

    def test_writes_audit_entry(self, world):
        clone = workflow_scheme_adapter.clone(ORG_ID, "wf-1", "Copy", user_id=USER_ID)

        log = AuditLog.query.filter_by(entity_type="Workflow", entity_id=clone.id).one()
        assert log.action == "CLONED"
        assert log.diff["sourceWorkflowId"] == "wf-1"


class TestAssignToProject:

    def test_binding_replaces_previous_and_drives_resolution(self, world):
        old = make_workflow("wf-old", [world["todo"]], name="Old", projects=[world["project"]])
        new = make_workflow("wf-new", [world["todo"]], name="New")
        db.session.commit()
        assert get_workflow_for_project(ORG_ID, PROJECT_ID).id == old.id

        project = workflow_scheme_adapter.assign_to_project(ORG_ID, "wf-new", PROJECT_ID)

        assert [w.id for w in project.workflows] == [new.id]
        assert project.default_workflow_id == new.id
        assert get_workflow_for_project(ORG_ID, PROJECT_ID).id == new.id
        assert workflow_scheme_adapter.count_usages(ORG_ID, "wf-old") == 0

    def test_cross_org_project_is_not_found(self, world):
        make_organization(OTHER_ORG_ID)
        make_project("proj-other", org_id=OTHER_ORG_ID, key="OTH")
        db.session.commit()

        with pytest.raises(NotFoundError):
            workflow_scheme_adapter.assign_to_project(ORG_ID, "wf-1", "proj-other")
