"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "departments",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(), nullable=False, unique=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "teams",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_teams_department_id", "teams", ["department_id"], unique=False)

  op.create_table(
    "users",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=True),
    sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=True),
    sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)
  op.create_index("ix_users_department_id", "users", ["department_id"], unique=False)
  op.create_index("ix_users_team_id", "users", ["team_id"], unique=False)

  op.create_table(
    "api_tokens",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("token_hash", sa.String(), nullable=False),
    sa.Column("token_hint", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
  )
  op.create_index("ix_api_tokens_user_id", "api_tokens", ["user_id"], unique=False)
  op.create_index("ix_api_tokens_token_hash", "api_tokens", ["token_hash"], unique=True)

  op.create_table(
    "projects",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(200), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
    sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=True),
    sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default="planning"),
    sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
    sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("manual_adjustment", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("member_ids", sa.JSON(), nullable=False),
    sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_projects_progress"),
    sa.CheckConstraint("manual_adjustment >= -10 AND manual_adjustment <= 10", name="ck_projects_adjustment"),
    sa.CheckConstraint("deadline > start_date", name="ck_projects_deadline"),
  )
  op.create_index("ix_projects_department_id", "projects", ["department_id"], unique=False)
  op.create_index("ix_projects_team_id", "projects", ["team_id"], unique=False)
  op.create_index("ix_projects_created_by_id", "projects", ["created_by_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("assignee_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("requesting_department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
    sa.Column("executing_department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
    sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("kanban_stage", sa.String(), nullable=False, server_default="Backlog"),
    sa.Column("status", sa.String(), nullable=False, server_default="Pending"),
    sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("priority", sa.String(), nullable=False, server_default="Medium"),
    sa.Column("remark", sa.String(500), nullable=True),
    sa.Column("estimated_hours", sa.Float(), nullable=False, server_default="0"),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_tasks_progress"),
  )
  for col in ("project_id", "assignee_id", "requesting_department_id", "executing_department_id", "created_by_id", "kanban_stage", "status", "due_date"):
    op.create_index(f"ix_tasks_{col}", "tasks", [col], unique=False)

  op.create_table(
    "task_logs",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("updated_by_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("progress", sa.Integer(), nullable=False),
    sa.Column("remark", sa.String(500), nullable=False),
    sa.Column("hours_worked", sa.Float(), nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_task_logs_task_id", "task_logs", ["task_id"], unique=False)
  op.create_index("ix_task_logs_updated_by_id", "task_logs", ["updated_by_id"], unique=False)

  op.create_table(
    "audit_events",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(36), nullable=True),
    sa.Column("task_id", sa.String(36), nullable=True),
    sa.Column("actor_id", sa.String(36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(36), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_audit_events_project_id", "audit_events", ["project_id"], unique=False)
  op.create_index("ix_audit_events_task_id", "audit_events", ["task_id"], unique=False)
  op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"], unique=False)

  op.create_table(
    "inapp_notifications",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("level", sa.String(), nullable=False, server_default="info"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False, server_default=""),
    sa.Column("event_type", sa.String(), nullable=True),
    sa.Column("taxonomy", sa.String(), nullable=False, server_default="informational"),
    sa.Column("entity_type", sa.String(), nullable=True),
    sa.Column("entity_id", sa.String(36), nullable=True),
    sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_inapp_notifications_user_id", "inapp_notifications", ["user_id"], unique=False)


def downgrade() -> None:
  op.drop_table("inapp_notifications")
  op.drop_table("audit_events")
  op.drop_table("task_logs")
  op.drop_table("tasks")
  op.drop_table("projects")
  op.drop_table("api_tokens")
  op.drop_table("users")
  op.drop_table("teams")
  op.drop_table("departments")
