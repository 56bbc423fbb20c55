"""workflow_engine_tables

Creates the workflow engine tables:
  - organizations, users, projects
  - statuses, workflows, workflow_statuses, transitions, workflow_projects
  - issue_types, priorities, issues, issue_history
  - audit_logs

Tables created conditionally (IF NOT EXISTS semantics) so the revision can
run against databases that already received them via db.create_all().

Revision ID: a1c3e5f70b21
Revises:
Create Date: 2026-10-17 09:12:44.120391
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1c3e5f70b21'
down_revision = None
branch_labels = None
depends_on = None


def _org_fk():
    return sa.Column(
        "organization_id", sa.Integer(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    if "organizations" not in existing:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False, unique=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "statuses" not in existing:
        op.create_table(
            "statuses",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column(
                "category", sa.String(length=20), nullable=False,
                comment="TODO | IN_PROGRESS | DONE",
            ),
            sa.Column("color", sa.String(length=20), nullable=True),
            sa.UniqueConstraint("organization_id", "name", name="uq_status_org_name"),
            sa.CheckConstraint(
                "category IN ('DONE','IN_PROGRESS','TODO')",
                name="ck_status_category",
            ),
        )

    if "workflows" not in existing:
        op.create_table(
            "workflows",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "parent_id", sa.String(length=36),
                sa.ForeignKey("workflows.id", ondelete="SET NULL"), nullable=True,
                comment="Source workflow when created by clone",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("organization_id", "name", name="uq_workflow_org_name"),
        )
        op.create_index(
            "idx_workflow_org_default", "workflows",
            ["organization_id", "is_default", "is_active"],
        )

    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("key", sa.String(length=20), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "default_workflow_id", sa.String(length=36),
                sa.ForeignKey("workflows.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("organization_id", "key", name="uq_project_org_key"),
        )

    if "workflow_statuses" not in existing:
        op.create_table(
            "workflow_statuses",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column(
                "workflow_id", sa.String(length=36),
                sa.ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True,
            ),
            sa.Column(
                "status_id", sa.String(length=36),
                sa.ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint("workflow_id", "status_id", name="uq_workflow_status"),
        )

    if "transitions" not in existing:
        op.create_table(
            "transitions",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column(
                "workflow_id", sa.String(length=36),
                sa.ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "from_status_id", sa.String(length=36),
                sa.ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "to_status_id", sa.String(length=36),
                sa.ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("validators", sa.JSON(), nullable=True),
            sa.Column("conditions", sa.JSON(), nullable=True),
            sa.Column("post_functions", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index(
            "idx_transition_workflow_from", "transitions", ["workflow_id", "from_status_id"],
        )

    if "workflow_projects" not in existing:
        op.create_table(
            "workflow_projects",
            sa.Column(
                "workflow_id", sa.String(length=36),
                sa.ForeignKey("workflows.id", ondelete="CASCADE"), primary_key=True,
            ),
            sa.Column(
                "project_id", sa.String(length=36),
                sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True,
            ),
        )

    if "issue_types" not in existing:
        op.create_table(
            "issue_types",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("is_subtask", sa.Boolean(), nullable=True),
        )

    if "priorities" not in existing:
        op.create_table(
            "priorities",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column("name", sa.String(length=50), nullable=False),
            sa.Column("rank", sa.Integer(), nullable=True),
        )

    if "issues" not in existing:
        op.create_table(
            "issues",
            sa.Column("id", sa.String(length=36), primary_key=True),
            _org_fk(),
            sa.Column(
                "project_id", sa.String(length=36),
                sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
            ),
            sa.Column("key", sa.String(length=30), nullable=False),
            sa.Column("summary", sa.String(length=500), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column(
                "status_id", sa.String(length=36), sa.ForeignKey("statuses.id"), nullable=False,
            ),
            sa.Column(
                "issue_type_id", sa.String(length=36),
                sa.ForeignKey("issue_types.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column(
                "priority_id", sa.String(length=36),
                sa.ForeignKey("priorities.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column(
                "assignee_id", sa.String(length=36),
                sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column(
                "reporter_id", sa.String(length=36),
                sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column(
                "parent_id", sa.String(length=36),
                sa.ForeignKey("issues.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("resolution_id", sa.String(length=36), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("story_points", sa.Integer(), nullable=True),
            sa.Column("custom_fields", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(), nullable=True, index=True),
            sa.UniqueConstraint("organization_id", "key", name="uq_issue_org_key"),
        )
        op.create_index("idx_issue_project_status", "issues", ["project_id", "status_id"])
        op.create_index("idx_issue_parent", "issues", ["organization_id", "parent_id"])

    if "issue_history" not in existing:
        op.create_table(
            "issue_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            _org_fk(),
            sa.Column(
                "issue_id", sa.String(length=36),
                sa.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "user_id", sa.String(length=36),
                sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("field", sa.String(length=100), nullable=False),
            sa.Column("old_value", sa.Text(), nullable=True),
            sa.Column("new_value", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("idx_issue_history_issue", "issue_history", ["issue_id", "created_at"])

    if "audit_logs" not in existing:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(),
                sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "user_id", sa.String(length=36),
                sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_org", "audit_logs", ["organization_id"])
        op.create_index("idx_audit_user", "audit_logs", ["user_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs", "issue_history", "issues", "priorities", "issue_types",
        "workflow_projects", "transitions", "workflow_statuses", "projects",
        "workflows", "statuses", "users", "organizations",
    ):
        op.drop_table(table)
