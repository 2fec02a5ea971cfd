"""Inquiries, quotes and the transition audit log

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

Creates: inquiries, inquiry_number_counters, inquiry_quotes, inquiry_transitions
Enums: inquirytype, inquirystatus, inquirytransitiontype, inquirypriority,
       inquiryunit, urgency, shippingmethod, incoterm, quotestatus
Also: orders.inquiry_id foreign key
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("""
        CREATE TYPE inquirytype AS ENUM (
            'PRODUCT_INQUIRY', 'QUOTE_REQUEST', 'BULK_ORDER',
            'CUSTOM_ORDER', 'PARTNERSHIP'
        );
    """)
    op.execute("""
        CREATE TYPE inquirystatus AS ENUM (
            'OPEN', 'RESPONDED', 'NEGOTIATING', 'QUOTED', 'ACCEPTED',
            'REJECTED', 'EXPIRED', 'CONVERTED', 'ARCHIVED'
        );
    """)
    op.execute("""
        CREATE TYPE inquirytransitiontype AS ENUM (
            'RESPOND', 'QUOTE', 'ACCEPT', 'CONVERT',
            'REJECT', 'EXPIRE', 'ARCHIVE', 'ASSIGN'
        );
    """)
    op.execute("""
        CREATE TYPE inquirypriority AS ENUM (
            'LOW', 'MEDIUM', 'HIGH', 'URGENT'
        );
    """)
    op.execute("""
        CREATE TYPE inquiryunit AS ENUM (
            'PIECES', 'KG', 'TONS', 'LITERS', 'METERS', 'BOXES', 'PALLETS'
        );
    """)
    op.execute("""
        CREATE TYPE urgency AS ENUM (
            'FLEXIBLE', 'WITHIN_MONTH', 'WITHIN_WEEK', 'IMMEDIATE'
        );
    """)
    op.execute("""
        CREATE TYPE shippingmethod AS ENUM (
            'STANDARD', 'EXPRESS', 'FREIGHT', 'PICKUP', 'CUSTOM'
        );
    """)
    op.execute("""
        CREATE TYPE incoterm AS ENUM (
            'EXW', 'FCA', 'CPT', 'CIP', 'DAP', 'DPU', 'DDP',
            'FAS', 'FOB', 'CFR', 'CIF'
        );
    """)
    op.execute("""
        CREATE TYPE quotestatus AS ENUM (
            'PENDING', 'ACCEPTED', 'REJECTED', 'EXPIRED'
        );
    """)

    # ── 2. Create inquiries table ────────────────────────────────────────
    op.execute("""
        CREATE TABLE inquiries (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            inquiry_number          VARCHAR(20) NOT NULL UNIQUE,
            inquiry_type            inquirytype NOT NULL DEFAULT 'PRODUCT_INQUIRY',
            inquirer_org_id         UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            supplier_org_id         UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            created_by              UUID,
            product_id              UUID,
            subject                 VARCHAR(200) NOT NULL,
            message                 VARCHAR(2000) NOT NULL,
            requested_quantity      INTEGER,
            unit                    inquiryunit NOT NULL DEFAULT 'PIECES',
            custom_specifications   VARCHAR(500),
            budget_min              NUMERIC(15, 2),
            budget_max              NUMERIC(15, 2),
            budget_currency         VARCHAR(3) NOT NULL DEFAULT 'USD',
            urgency                 urgency NOT NULL DEFAULT 'FLEXIBLE',
            required_by             TIMESTAMPTZ,
            shipping_method         shippingmethod,
            incoterms               incoterm,
            delivery_address        VARCHAR(300),
            attachments             JSONB NOT NULL DEFAULT '[]',
            internal_notes          TEXT,
            status                  inquirystatus NOT NULL DEFAULT 'OPEN',
            priority                inquirypriority NOT NULL DEFAULT 'MEDIUM',
            expires_at              TIMESTAMPTZ NOT NULL,
            read_by_inquirer        BOOLEAN NOT NULL DEFAULT true,
            read_by_supplier        BOOLEAN NOT NULL DEFAULT false,
            read_at                 TIMESTAMPTZ,
            converted_order_id      UUID REFERENCES orders(id) ON DELETE SET NULL,
            converted_at            TIMESTAMPTZ,
            archived_at             TIMESTAMPTZ,
            version                 INTEGER NOT NULL DEFAULT 1,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_inquiries_distinct_parties
                CHECK (inquirer_org_id <> supplier_org_id),
            CONSTRAINT ck_inquiries_budget_range
                CHECK (budget_min IS NULL OR budget_max IS NULL OR budget_min <= budget_max)
        );
    """)
    op.execute("CREATE INDEX ix_inquiries_inquirer_org_id ON inquiries (inquirer_org_id);")
    op.execute("CREATE INDEX ix_inquiries_supplier_org_id ON inquiries (supplier_org_id);")
    op.execute("CREATE INDEX ix_inquiries_status ON inquiries (status);")
    op.execute("""
        CREATE INDEX ix_inquiries_expires_at ON inquiries (expires_at)
        WHERE status NOT IN ('CONVERTED', 'EXPIRED', 'REJECTED', 'ARCHIVED');
    """)

    op.execute("""
        ALTER TABLE orders
            ADD CONSTRAINT fk_orders_inquiry_id
            FOREIGN KEY (inquiry_id) REFERENCES inquiries(id) ON DELETE SET NULL;
    """)

    # ── 3. Create inquiry_number_counters table ──────────────────────────
    op.execute("""
        CREATE TABLE inquiry_number_counters (
            year        INTEGER PRIMARY KEY,
            last_value  INTEGER NOT NULL DEFAULT 0
        );
    """)

    # ── 4. Create inquiry_quotes table ───────────────────────────────────
    op.execute("""
        CREATE TABLE inquiry_quotes (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            inquiry_id          UUID NOT NULL REFERENCES inquiries(id) ON DELETE CASCADE,
            quoted_by_org_id    UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            quoted_by           UUID,
            unit_price          NUMERIC(15, 2) NOT NULL,
            total_price         NUMERIC(15, 2) NOT NULL,
            currency            VARCHAR(3) NOT NULL DEFAULT 'USD',
            valid_until         TIMESTAMPTZ NOT NULL,
            terms               TEXT,
            notes               TEXT,
            quoted_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            status              quotestatus NOT NULL DEFAULT 'PENDING',
            accepted_at         TIMESTAMPTZ,
            rejected_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_inquiry_quotes_unit_price_positive CHECK (unit_price > 0),
            CONSTRAINT ck_inquiry_quotes_total_price CHECK (total_price >= 0)
        );
    """)
    op.execute("CREATE INDEX ix_inquiry_quotes_inquiry_id ON inquiry_quotes (inquiry_id);")
    op.execute("""
        CREATE UNIQUE INDEX uq_inquiry_quotes_one_accepted ON inquiry_quotes (inquiry_id)
        WHERE status = 'ACCEPTED';
    """)

    # ── 5. Create inquiry_transitions table ──────────────────────────────
    op.execute("""
        CREATE TABLE inquiry_transitions (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            inquiry_id      UUID NOT NULL REFERENCES inquiries(id) ON DELETE CASCADE,
            from_status     inquirystatus NOT NULL,
            to_status       inquirystatus NOT NULL,
            transition_type inquirytransitiontype NOT NULL,
            triggered_by    UUID,
            trigger_source  VARCHAR(20) NOT NULL DEFAULT 'USER',
            reason          TEXT,
            metadata_extra  JSONB NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_inquiry_transitions_inquiry_id ON inquiry_transitions (inquiry_id);"
    )
    op.execute(
        "CREATE INDEX ix_inquiry_transitions_to_status ON inquiry_transitions (to_status);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS inquiry_transitions;")
    op.execute("DROP TABLE IF EXISTS inquiry_quotes;")
    op.execute("DROP TABLE IF EXISTS inquiry_number_counters;")
    op.execute("ALTER TABLE orders DROP CONSTRAINT IF EXISTS fk_orders_inquiry_id;")
    op.execute("DROP TABLE IF EXISTS inquiries;")
    op.execute("DROP TYPE IF EXISTS quotestatus;")
    op.execute("DROP TYPE IF EXISTS incoterm;")
    op.execute("DROP TYPE IF EXISTS shippingmethod;")
    op.execute("DROP TYPE IF EXISTS urgency;")
    op.execute("DROP TYPE IF EXISTS inquiryunit;")
    op.execute("DROP TYPE IF EXISTS inquirypriority;")
    op.execute("DROP TYPE IF EXISTS inquirytransitiontype;")
    op.execute("DROP TYPE IF EXISTS inquirystatus;")
    op.execute("DROP TYPE IF EXISTS inquirytype;")
