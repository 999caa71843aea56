"""Create users, projects, role workflow and notification tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: accounts with engagement history, the project
       aggregate (project, roles, members, applications) and notifications.
How:   UUID primary keys generated by the application, TIMESTAMP WITH TIME
       ZONE everywhere, integer `version` columns for optimistic locking.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── users / past_engagements ──────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("username", sa.String(60), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "user_role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'jobseeker'"),
            comment="Capability class: founder, investor, jobseeker",
        ),
        sa.Column(
            "headline",
            sa.String(255),
            nullable=False,
            server_default=sa.text("'Synergy User'"),
        ),
        # Set and cleared together; no FK so history survives project deletion
        sa.Column("current_project_id", sa.Uuid(), nullable=True),
        sa.Column("current_role_title", sa.String(120), nullable=True),
        sa.Column("current_join_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "past_engagements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("role_title", sa.String(120), nullable=False),
        sa.Column("join_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("exit_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_past_engagements_user_id", "past_engagements", ["user_id"])

    # ── projects ──────────────────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("stage", sa.String(30), nullable=False, server_default=sa.text("'idea'")),
        sa.Column("website", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("founder_id", sa.Uuid(), nullable=False),
        sa.Column(
            "team_size",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("1"),
            comment="Maximum team members, founder included",
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("team_size >= 1", name="ck_projects_team_size"),
        sa.ForeignKeyConstraint(["founder_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_founder_id", "projects", ["founder_id"])
    op.create_index("idx_projects_created_at", "projects", [sa.text("created_at DESC")])

    op.create_table(
        "project_roles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("filled_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("capacity >= 1", name="ck_project_roles_capacity"),
        sa.CheckConstraint(
            "filled_count >= 0 AND filled_count <= capacity",
            name="ck_project_roles_filled",
        ),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "title", name="uq_project_role_title"),
    )
    op.create_index("ix_project_roles_project_id", "project_roles", ["project_id"])

    op.create_table(
        "project_members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role_title", sa.String(120), nullable=False),
        sa.Column("join_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_member_user"),
    )
    op.create_index("ix_project_members_project_id", "project_members", ["project_id"])
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    op.create_table(
        "project_applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role_title", sa.String(120), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
            comment="pending, accepted, rejected, cancelled",
        ),
        sa.Column("applied_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("decided_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_project_applications_project_id", "project_applications", ["project_id"]
    )
    op.create_index(
        "idx_project_applications_user_status",
        "project_applications",
        ["user_id", "status"],
    )
    # At most one pending application per (project, user, role)
    op.create_index(
        "uq_project_applications_pending",
        "project_applications",
        ["project_id", "user_id", "role_title"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # ── notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=True),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notifications_recipient_created",
        "notifications",
        ["recipient_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_notifications_recipient_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("uq_project_applications_pending", table_name="project_applications")
    op.drop_index("idx_project_applications_user_status", table_name="project_applications")
    op.drop_index("ix_project_applications_project_id", table_name="project_applications")
    op.drop_table("project_applications")
    op.drop_index("ix_project_members_user_id", table_name="project_members")
    op.drop_index("ix_project_members_project_id", table_name="project_members")
    op.drop_table("project_members")
    op.drop_index("ix_project_roles_project_id", table_name="project_roles")
    op.drop_table("project_roles")
    op.drop_index("idx_projects_created_at", table_name="projects")
    op.drop_index("ix_projects_founder_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_past_engagements_user_id", table_name="past_engagements")
    op.drop_table("past_engagements")
    op.drop_table("users")
