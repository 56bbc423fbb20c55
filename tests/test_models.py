"""Model-level guards: status categories and audit vocabulary."""

import pytest
from sqlalchemy.exc import IntegrityError

from tracker.models import db
from tracker.models.audit import AuditLog, write_audit
from tracker.models.workflow import STATUS_CATEGORIES
from tests._factories import ORG_ID, make_organization, make_status


def test_status_categories():
    assert STATUS_CATEGORIES == {"TODO", "IN_PROGRESS", "DONE"}


@pytest.mark.parametrize("category", ["done", "Closed", ""])
def test_status_category_outside_vocabulary_is_rejected(category):
    make_organization()
    with pytest.raises(IntegrityError):
        make_status("status-bad", "Bad", category)
    db.session.rollback()


class TestWriteAudit:

    def test_flushes_row_with_diff(self, world):
        log = write_audit(
            organization_id=ORG_ID, entity_type="Issue", entity_id="issue-1",
            action="TRANSITIONED", diff={"toStatusId": "status-ip"},
        )
        assert log.id is not None
        assert db.session.get(AuditLog, log.id).diff == {"toStatusId": "status-ip"}

    def test_unknown_entity_type_rejected(self, world):
        with pytest.raises(ValueError, match="entity type"):
            write_audit(organization_id=ORG_ID, entity_type="Sprint",
                        entity_id="s-1", action="UPDATED")

    def test_unknown_action_rejected(self, world):
        with pytest.raises(ValueError, match="audit action"):
            write_audit(organization_id=ORG_ID, entity_type="Issue",
                        entity_id="issue-1", action="ARCHIVED")
