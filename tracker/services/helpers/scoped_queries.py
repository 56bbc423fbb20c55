"""
Organization-scoped query helpers.

Every get-by-id in the engine goes through get_scoped instead of
db.session.get(Model, pk). A bare .get() bypasses tenant isolation.

Usage:
    issue = get_scoped(Issue, issue_id, organization_id=org_id)

Models carrying ``SoftDeleteMixin`` have deleted rows filtered out, so a
soft-deleted row is indistinguishable from a missing one.
"""

import logging

from sqlalchemy import select

from tracker.core.exceptions import NotFoundError
from tracker.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk, *, organization_id: int | None):
    """Fetch a single entity by PK within one organization.

    Args:
        model: SQLAlchemy model class with ``id`` and ``organization_id`` columns.
        pk: Primary key value to look up.
        organization_id: Mandatory scope. ``None`` is refused.

    Returns:
        The model instance if found within the organization.

    Raises:
        ValueError: If no organization scope is given or the model has no
                    ``organization_id`` column.
        NotFoundError: If the entity does not exist, is soft-deleted, or
                       belongs to another organization.
    """
    if organization_id is None:
        raise ValueError(
            f"{model.__name__} id={pk} requires an organization_id scope. "
            "Unscoped lookups are forbidden; they bypass tenant isolation."
        )
    if not hasattr(model, "organization_id"):
        raise ValueError(
            f"{model.__name__} has no organization_id column; "
            "refusing to perform an unscoped lookup."
        )

    stmt = select(model).where(model.id == pk, model.organization_id == organization_id)
    if hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))

    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug(
            "get_scoped: %s id=%s not found in organization %s",
            model.__name__,
            pk,
            organization_id,
        )
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    return result
