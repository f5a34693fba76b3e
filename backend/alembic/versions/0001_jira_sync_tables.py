"""add jira sync tables

Revision ID: 0001_jira_sync_tables
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_jira_sync_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "jira_sites",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("alias", sa.String(length=128), nullable=False),
        sa.Column("base_url", sa.String(length=512), nullable=False),
        sa.Column("admin_email", sa.String(length=255), nullable=False),
        sa.Column("api_token", sa.String(length=1024), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_sites_tenant_id"), "jira_sites", ["tenant_id"], unique=False)

    op.create_table(
        "jira_projects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("site_id", sa.String(length=36), nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["jira_sites.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("site_id", "jira_id", name="uq_jira_projects_site_jira_id"),
    )
    op.create_index(op.f("ix_jira_projects_tenant_id"), "jira_projects", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_jira_projects_site_id"), "jira_projects", ["site_id"], unique=False)

    op.create_table(
        "project_tracked_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("jira_account_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("is_tracked", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["project_id"], ["jira_projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "jira_account_id", name="uq_project_tracked_users_account"),
    )
    op.create_index(op.f("ix_project_tracked_users_project_id"), "project_tracked_users", ["project_id"], unique=False)

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("workflow_id", sa.String(length=255), nullable=False),
        sa.Column("schedule_id", sa.String(length=255), nullable=False),
        sa.Column("cron_schedule", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("backoff_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("backoff_original_cron", sa.String(length=64), nullable=True),
        sa.Column("backoff_last_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["jira_projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sync_jobs_project_id"), "sync_jobs", ["project_id"], unique=True)

    op.create_table(
        "sync_states",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("entity", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="IDLE"),
        sa.Column("last_sync_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["jira_projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "entity", name="uq_sync_states_project_entity"),
    )
    op.create_index(op.f("ix_sync_states_project_id"), "sync_states", ["project_id"], unique=False)

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("level", sa.String(length=8), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["jira_projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_logs_project_id_created_at", "sync_logs", ["project_id", "created_at"], unique=False)

    op.create_table(
        "jira_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("account_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_users_account_id"), "jira_users", ["account_id"], unique=True)

    op.create_table(
        "jira_sprints",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("jira_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_sprints_jira_id"), "jira_sprints", ["jira_id"], unique=True)

    op.create_table(
        "jira_issues",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("priority", sa.String(length=64), nullable=True),
        sa.Column("assignee_id", sa.String(length=36), nullable=True),
        sa.Column("sprint_id", sa.String(length=36), nullable=True),
        sa.Column("jira_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remote_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["jira_projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assignee_id"], ["jira_users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["sprint_id"], ["jira_sprints.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_issues_jira_id"), "jira_issues", ["jira_id"], unique=True)
    op.create_index(op.f("ix_jira_issues_key"), "jira_issues", ["key"], unique=False)
    op.create_index(op.f("ix_jira_issues_project_id"), "jira_issues", ["project_id"], unique=False)

    op.create_table(
        "jira_comments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("issue_id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("jira_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["issue_id"], ["jira_issues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["jira_users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_comments_jira_id"), "jira_comments", ["jira_id"], unique=True)
    op.create_index(op.f("ix_jira_comments_issue_id"), "jira_comments", ["issue_id"], unique=False)

    op.create_table(
        "jira_worklogs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("issue_id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("jira_started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["issue_id"], ["jira_issues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["jira_users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_jira_worklogs_jira_id"), "jira_worklogs", ["jira_id"], unique=True)
    op.create_index(op.f("ix_jira_worklogs_issue_id"), "jira_worklogs", ["issue_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_jira_worklogs_issue_id"), table_name="jira_worklogs")
    op.drop_index(op.f("ix_jira_worklogs_jira_id"), table_name="jira_worklogs")
    op.drop_table("jira_worklogs")
    op.drop_index(op.f("ix_jira_comments_issue_id"), table_name="jira_comments")
    op.drop_index(op.f("ix_jira_comments_jira_id"), table_name="jira_comments")
    op.drop_table("jira_comments")
    op.drop_index(op.f("ix_jira_issues_project_id"), table_name="jira_issues")
    op.drop_index(op.f("ix_jira_issues_key"), table_name="jira_issues")
    op.drop_index(op.f("ix_jira_issues_jira_id"), table_name="jira_issues")
    op.drop_table("jira_issues")
    op.drop_index(op.f("ix_jira_sprints_jira_id"), table_name="jira_sprints")
    op.drop_table("jira_sprints")
    op.drop_index(op.f("ix_jira_users_account_id"), table_name="jira_users")
    op.drop_table("jira_users")
    op.drop_index("ix_sync_logs_project_id_created_at", table_name="sync_logs")
    op.drop_table("sync_logs")
    op.drop_index(op.f("ix_sync_states_project_id"), table_name="sync_states")
    op.drop_table("sync_states")
    op.drop_index(op.f("ix_sync_jobs_project_id"), table_name="sync_jobs")
    op.drop_table("sync_jobs")
    op.drop_index(op.f("ix_project_tracked_users_project_id"), table_name="project_tracked_users")
    op.drop_table("project_tracked_users")
    op.drop_index(op.f("ix_jira_projects_site_id"), table_name="jira_projects")
    op.drop_index(op.f("ix_jira_projects_tenant_id"), table_name="jira_projects")
    op.drop_table("jira_projects")
    op.drop_index(op.f("ix_jira_sites_tenant_id"), table_name="jira_sites")
    op.drop_table("jira_sites")
