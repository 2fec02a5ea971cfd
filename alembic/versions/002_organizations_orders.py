"""Organizations, orders and the event outbox

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Creates: organizations, orders, event_outbox
Enums: organizationtype, organizationstatus, orderstatus, eventstatus
Sequence: order_number_seq
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("""
        CREATE TYPE organizationtype AS ENUM (
            'BUYER', 'SUPPLIER', 'BOTH', 'PLATFORM'
        );
    """)
    op.execute("""
        CREATE TYPE organizationstatus AS ENUM (
            'ACTIVE', 'SUSPENDED'
        );
    """)
    op.execute("""
        CREATE TYPE orderstatus AS ENUM (
            'DRAFT', 'PENDING', 'CONFIRMED', 'PROCESSING', 'SHIPPED',
            'DELIVERED', 'COMPLETED', 'CANCELLED', 'DISPUTED'
        );
    """)
    op.execute("""
        CREATE TYPE eventstatus AS ENUM (
            'PENDING', 'PROCESSING', 'COMPLETED', 'FAILED'
        );
    """)

    # ── 2. Create sequence for order numbers ─────────────────────────────
    op.execute("CREATE SEQUENCE order_number_seq START WITH 1;")

    # ── 3. Create organizations table ────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name            VARCHAR(255) NOT NULL,
            type            organizationtype NOT NULL,
            status          organizationstatus NOT NULL DEFAULT 'ACTIVE',
            is_active       BOOLEAN NOT NULL DEFAULT true,
            logo_url        VARCHAR(500),
            primary_email   VARCHAR(255),
            primary_phone   VARCHAR(20),
            website         VARCHAR(255),
            country         VARCHAR(2),
            created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_organizations_type ON organizations (type);")

    # ── 4. Create orders table ───────────────────────────────────────────
    # inquiry_id gets its foreign key in 003 once inquiries exists.
    op.execute("""
        CREATE TABLE orders (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_number        VARCHAR(50) NOT NULL UNIQUE,
            buyer_org_id        UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            supplier_org_id     UUID REFERENCES organizations(id) ON DELETE SET NULL,
            inquiry_id          UUID,
            status              orderstatus NOT NULL DEFAULT 'PENDING',
            quantity            INTEGER,
            unit_price          NUMERIC(15, 2),
            total_amount        NUMERIC(15, 2) NOT NULL,
            currency            VARCHAR(3) NOT NULL DEFAULT 'USD',
            delivery_address    VARCHAR(300),
            notes               TEXT,
            created_by          UUID,
            metadata_extra      JSONB NOT NULL DEFAULT '{}',
            created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_orders_buyer_org_id ON orders (buyer_org_id);")
    op.execute("CREATE INDEX ix_orders_supplier_org_id ON orders (supplier_org_id);")
    op.execute("CREATE INDEX ix_orders_status ON orders (status);")
    op.execute("""
        CREATE UNIQUE INDEX ix_orders_inquiry_id ON orders (inquiry_id)
        WHERE inquiry_id IS NOT NULL;
    """)

    # ── 5. Create event_outbox table ─────────────────────────────────────
    op.execute("""
        CREATE TABLE event_outbox (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type      VARCHAR(255) NOT NULL,
            aggregate_type  VARCHAR(50) NOT NULL,
            aggregate_id    VARCHAR(64) NOT NULL,
            payload         JSONB NOT NULL DEFAULT '{}',
            status          eventstatus NOT NULL DEFAULT 'PENDING',
            processed_at    TIMESTAMPTZ,
            schema_version  INTEGER NOT NULL DEFAULT 1,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_event_outbox_event_type ON event_outbox (event_type);")
    op.execute(
        "CREATE INDEX ix_event_outbox_aggregate ON event_outbox (aggregate_type, aggregate_id);"
    )
    op.execute("""
        CREATE INDEX ix_event_outbox_pending ON event_outbox (created_at)
        WHERE status = 'PENDING';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS event_outbox;")
    op.execute("DROP TABLE IF EXISTS orders;")
    op.execute("DROP TABLE IF EXISTS organizations;")
    op.execute("DROP SEQUENCE IF EXISTS order_number_seq;")
    op.execute("DROP TYPE IF EXISTS eventstatus;")
    op.execute("DROP TYPE IF EXISTS orderstatus;")
    op.execute("DROP TYPE IF EXISTS organizationstatus;")
    op.execute("DROP TYPE IF EXISTS organizationtype;")
