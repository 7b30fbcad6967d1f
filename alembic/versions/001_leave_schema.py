"""001 – Leave schema: leave types, requests, balances, audit trail.

Revision ID: 001_leave_schema
Revises:
Create Date: 2025-06-02 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_leave_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id           VARCHAR(50)  NOT NULL,
            name                VARCHAR(50)  NOT NULL,
            description         VARCHAR(200),
            max_days_per_year   INTEGER NOT NULL DEFAULT 12,
            is_paid             BOOLEAN NOT NULL DEFAULT TRUE,
            requires_approval   BOOLEAN NOT NULL DEFAULT TRUE,
            applicable_roles    VARCHAR(200),
            is_active           BOOLEAN NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_type_tenant_name UNIQUE (tenant_id, name)
        )
    """)
    op.execute("CREATE INDEX idx_leave_type_tenant ON leave_types(tenant_id)")

    # ── 2. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id         VARCHAR(50)  NOT NULL,
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            user_id           VARCHAR(50)  NOT NULL,
            user_name         VARCHAR(200),
            user_role         VARCHAR(30),
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            total_days        INTEGER NOT NULL,
            reason            VARCHAR(500) NOT NULL,
            status            VARCHAR(20)  NOT NULL DEFAULT 'pending',
            is_half_day       BOOLEAN NOT NULL DEFAULT FALSE,
            attachment_url    VARCHAR(500),
            approved_by       VARCHAR(50),
            approved_by_name  VARCHAR(200),
            approval_remarks  VARCHAR(500),
            approved_at       TIMESTAMPTZ,
            cancelled_at      TIMESTAMPTZ,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_req_date_order CHECK (start_date <= end_date),
            CONSTRAINT ck_leave_req_status
                CHECK (status IN ('pending', 'approved', 'rejected', 'cancelled'))
        )
    """)
    op.execute("""
        CREATE INDEX idx_leave_req_tenant_user
            ON leave_requests(tenant_id, user_id)
    """)
    op.execute("CREATE INDEX idx_leave_req_status ON leave_requests(status)")
    op.execute("""
        CREATE INDEX idx_leave_req_dates
            ON leave_requests(start_date, end_date)
    """)

    # ── 3. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id        VARCHAR(50) NOT NULL,
            user_id          VARCHAR(50) NOT NULL,
            leave_type_id    UUID NOT NULL REFERENCES leave_types(id),
            academic_year    VARCHAR(20) NOT NULL,
            total_allocated  INTEGER NOT NULL DEFAULT 0,
            used             INTEGER NOT NULL DEFAULT 0,
            pending          INTEGER NOT NULL DEFAULT 0,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance
                UNIQUE (tenant_id, user_id, leave_type_id, academic_year),
            CONSTRAINT ck_leave_bal_used_nonneg CHECK (used >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX idx_leave_bal_tenant_user
            ON leave_balances(tenant_id, user_id)
    """)

    # ── 4. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id   VARCHAR(50) NOT NULL,
            actor_id    VARCHAR(50),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_tenant_entity
            ON audit_trail(tenant_id, entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action     ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    for table in ("audit_trail", "leave_balances", "leave_requests", "leave_types"):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
