"""Structured logging formatter tests."""

import json
import logging

import pytest

from tracker.core.exceptions import ValidationError
from tracker.middleware.logging_config import JSONFormatter, ReadableFormatter
from tracker.services.workflow_engine import transition_issue
from tests._factories import ORG_ID, USER_ID


def _record(**extra):
    record = logging.LogRecord(
        name="tracker.services.workflow_engine", level=logging.INFO, pathname=__file__,
        lineno=1, msg="Issue %s transitioned", args=("issue-1",), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_engine_context():
    payload = json.loads(JSONFormatter().format(
        _record(organization_id=1, issue_id="issue-1", transition_id="trans-start"),
    ))

    assert payload["message"] == "Issue issue-1 transitioned"
    assert payload["level"] == "INFO"
    assert payload["organization_id"] == 1
    assert payload["transition_id"] == "trans-start"
    assert "workflow_id" not in payload


def test_readable_formatter_shows_organization():
    line = ReadableFormatter().format(_record(organization_id=7))
    assert "[org=7]" in line
    assert "Issue issue-1 transitioned" in line


def test_blocked_transition_is_logged(world, caplog):
    with caplog.at_level(logging.INFO, logger="tracker.services.workflow_engine"):
        with pytest.raises(ValidationError):
            transition_issue(ORG_ID, USER_ID, "issue-1", "trans-done")

    blocked = [r for r in caplog.records if "blocked" in r.getMessage()]
    assert blocked
    assert blocked[0].organization_id == ORG_ID
