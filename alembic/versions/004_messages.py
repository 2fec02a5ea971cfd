"""Message ledger

Revision ID: 004
Revises: 003
Create Date: 2026-10-19

Creates: messages
Enums: messagestatus, messagetype
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "004"
down_revision: str | None = "003"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("CREATE TYPE messagestatus AS ENUM ('SENT', 'DELIVERED', 'READ');")
    op.execute("CREATE TYPE messagetype AS ENUM ('TEXT', 'FILE', 'SYSTEM');")

    # Exactly one of order_id / inquiry_id anchors the message.
    op.execute("""
        CREATE TABLE messages (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_id            UUID REFERENCES orders(id) ON DELETE CASCADE,
            inquiry_id          UUID REFERENCES inquiries(id) ON DELETE CASCADE,
            sender_org_id       UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            recipient_org_id    UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            sent_by             UUID,
            body                TEXT,
            attachments         JSONB NOT NULL DEFAULT '[]',
            message_type        messagetype NOT NULL DEFAULT 'TEXT',
            status              messagestatus NOT NULL DEFAULT 'SENT',
            is_quote            BOOLEAN NOT NULL DEFAULT false,
            quote_details       JSONB,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
            delivered_at        TIMESTAMPTZ,
            read_at             TIMESTAMPTZ,
            CONSTRAINT ck_messages_single_thread
                CHECK ((order_id IS NULL) <> (inquiry_id IS NULL))
        );
    """)
    op.execute("CREATE INDEX ix_messages_order_thread ON messages (order_id, created_at);")
    op.execute("CREATE INDEX ix_messages_inquiry_thread ON messages (inquiry_id, created_at);")
    op.execute("""
        CREATE INDEX ix_messages_unread_recipient ON messages (recipient_org_id)
        WHERE status <> 'READ';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS messages;")
    op.execute("DROP TYPE IF EXISTS messagetype;")
    op.execute("DROP TYPE IF EXISTS messagestatus;")
