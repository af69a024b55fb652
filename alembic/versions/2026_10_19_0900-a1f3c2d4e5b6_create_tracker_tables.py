"""create messages, chats and sessions tables

Revision ID: a1f3c2d4e5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "a1f3c2d4e5b6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: message ledger, chat summaries and agent sessions."""
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("message_id", sa.String(length=255), nullable=False),
        sa.Column("session_name", sa.String(length=255), nullable=False),
        sa.Column("from_number", sa.String(length=255), nullable=False),
        sa.Column("to_number", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("group_id", sa.String(length=255), nullable=True),
        sa.Column("is_from_me", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("chat_id", sa.String(length=255), nullable=False),
        sa.Column("participant_id", sa.String(length=255), nullable=True),
        sa.Column("participant_name", sa.String(length=255), nullable=True),
        sa.Column("participant_phone", sa.String(length=64), nullable=True),
        sa.Column("pushname", sa.String(length=255), nullable=True),
        sa.Column("is_reply", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("quoted_message_id", sa.String(length=255), nullable=True),
        sa.Column("quoted_message_body", sa.Text(), nullable=True),
        sa.Column("quoted_message_from", sa.String(length=255), nullable=True),
        sa.Column("quoted_message_kind", sa.String(length=32), nullable=True),
        sa.Column("quoted_message_timestamp", sa.DateTime(), nullable=True),
        sa.Column("media_filename", sa.String(length=255), nullable=True),
        sa.Column("media_mimetype", sa.String(length=100), nullable=True),
        sa.Column("media_size", sa.BigInteger(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_messages_message_id", "messages", ["message_id"], unique=True)
    op.create_index("ix_messages_session_name", "messages", ["session_name"])
    op.create_index(
        "ix_messages_chat_session_timestamp",
        "messages",
        ["chat_id", "session_name", "timestamp"],
    )

    op.create_table(
        "chats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.String(length=255), nullable=False),
        sa.Column("session_name", sa.String(length=255), nullable=False),
        sa.Column("chat_type", sa.String(length=16), nullable=False),
        sa.Column("participant_number", sa.String(length=64), nullable=True),
        sa.Column("group_name", sa.String(length=255), nullable=True),
        sa.Column("chat_name", sa.String(length=255), nullable=True),
        sa.Column("last_message_id", sa.String(length=255), nullable=True),
        sa.Column("last_message_text", sa.Text(), nullable=True),
        sa.Column("last_message_time", sa.DateTime(), nullable=True),
        sa.Column("last_message_from", sa.String(length=255), nullable=True),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "chat_id", "session_name", name="uq_chats_chat_id_session_name"
        ),
    )
    op.create_index("ix_chats_session_name", "chats", ["session_name"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_name", sa.String(length=255), nullable=False),
        sa.Column("agent_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("last_connected_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_sessions_session_name", "sessions", ["session_name"], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_sessions_session_name", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_chats_session_name", table_name="chats")
    op.drop_table("chats")
    op.drop_index("ix_messages_chat_session_timestamp", table_name="messages")
    op.drop_index("ix_messages_session_name", table_name="messages")
    op.drop_index("ix_messages_message_id", table_name="messages")
    op.drop_table("messages")
