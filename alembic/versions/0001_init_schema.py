"""Initial schema: users, generation jobs, chat sessions, templates, assistant conversations"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    uuid = sa.Uuid()
    json = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
    tstz = sa.DateTime(timezone=True)

    op.create_table(
        "users",
        sa.Column("id", uuid, primary_key=True),
        sa.Column("google_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("picture", sa.Text(), nullable=True),
        sa.Column("last_login_at", tstz, nullable=True),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "generation_jobs",
        sa.Column("id", uuid, primary_key=True),
        sa.Column("user_id", uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("params", json, nullable=False),
        sa.Column("content", json, nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'processing'")),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("completed_at", tstz, nullable=True),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "idx_generation_jobs_user_kind_created",
        "generation_jobs",
        ["user_id", "kind", "created_at"],
    )

    op.create_table(
        "chat_sessions",
        sa.Column("id", uuid, primary_key=True),
        sa.Column("user_id", uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False, server_default=sa.text("'New Chat'")),
        sa.Column("total_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_processing", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processing_started_at", tstz, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_activity_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_chat_sessions_user", "chat_sessions", ["user_id"])
    op.create_index("idx_chat_sessions_last_activity", "chat_sessions", ["last_activity_at"])

    op.create_table(
        "chat_messages",
        sa.Column("id", uuid, primary_key=True),
        sa.Column(
            "session_id",
            uuid,
            sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("session_id", "position", name="uq_chat_messages_session_position"),
    )

    op.create_table(
        "chat_files",
        sa.Column("id", uuid, primary_key=True),
        sa.Column(
            "session_id",
            uuid,
            sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_name", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("is_processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sheet_names", json, nullable=True),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_chat_files_session", "chat_files", ["session_id"])

    op.create_table(
        "prompt_templates",
        sa.Column("id", uuid, primary_key=True),
        sa.Column("user_id", uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("variables", json, nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "assistant_conversations",
        sa.Column("id", uuid, primary_key=True),
        sa.Column("user_id", uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=sa.text("'New Conversation'")),
        sa.Column("agent", json, nullable=True),
        sa.Column("messages", json, nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "user_id",
            "conversation_id",
            name="uq_assistant_conversations_user_conversation",
        ),
    )

    op.create_table(
        "google_analytics_credentials",
        sa.Column("id", uuid, primary_key=True),
        sa.Column(
            "user_id",
            uuid,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("expires_at", tstz, nullable=False),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("token_type", sa.Text(), nullable=False, server_default=sa.text("'Bearer'")),
        sa.Column("created_at", tstz, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", tstz, server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("google_analytics_credentials")
    op.drop_table("assistant_conversations")
    op.drop_table("prompt_templates")
    op.drop_index("idx_chat_files_session", table_name="chat_files")
    op.drop_table("chat_files")
    op.drop_table("chat_messages")
    op.drop_index("idx_chat_sessions_last_activity", table_name="chat_sessions")
    op.drop_index("idx_chat_sessions_user", table_name="chat_sessions")
    op.drop_table("chat_sessions")
    op.drop_index("idx_generation_jobs_user_kind_created", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    op.drop_table("users")
