"""Relational order store

Revision ID: 001
Revises:
Create Date: 2026-10-05

Creates: organizations, users, status_lookups, locations, orders, order_line_items,
         booking_requests, event_outbox, processed_events
Enums: organizationtype, eventstatus
Seeds: OrderStatus, BookingStatus, ShipmentStatus and ChangeStatus vocabularies

fulfillment_rollup is a view owned by the booking service and is not created here.
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_STATUSES = {
    "OrderStatus": ("Issued", "Received", "Accepted", "Rejected", "Canceled", "Closed"),
    "BookingStatus": ("Requested", "Confirmed", "Canceled"),
    "ShipmentStatus": ("Booked", "In Transit", "Delivered", "Canceled"),
    "ChangeStatus": ("Proposed", "Approved", "Rejected"),
}


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')

    # ── 1. Enum types ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TYPE organizationtype AS ENUM (
            'BUYER', 'SUPPLIER', 'FORWARDER', 'CONSIGNEE',
            'AGENT', 'BROKER', 'TRUCKER', 'PLATFORM'
        );
    """)
    op.execute("""
        CREATE TYPE eventstatus AS ENUM (
            'PENDING', 'PROCESSING', 'COMPLETED', 'FAILED'
        );
    """)

    # ── 2. Organizations and users ────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            organization_type organizationtype NOT NULL DEFAULT 'BUYER',
            preferences JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_organizations_name ON organizations (name);")

    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) NOT NULL UNIQUE,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT true,
            can_approve_change_requests BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX idx_users_organization_id ON users (organization_id);")

    # ── 3. Status lookups ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE status_lookups (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            domain VARCHAR(50) NOT NULL,
            name VARCHAR(100) NOT NULL,
            CONSTRAINT uq_status_lookups_domain_name UNIQUE (domain, name)
        );
    """)
    values = ", ".join(
        f"('{domain}', '{name}')" for domain, names in _STATUSES.items() for name in names
    )
    op.execute(f"INSERT INTO status_lookups (domain, name) VALUES {values};")

    # ── 4. Locations ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE locations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            location_type VARCHAR(30) NOT NULL,
            name VARCHAR(255) NOT NULL,
            code VARCHAR(20),
            address VARCHAR(500),
            city VARCHAR(100),
            country_code VARCHAR(2),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_locations_org_type_name ON locations (organization_id, location_type, name);"
    )

    # ── 5. Orders and line items ──────────────────────────────────────────
    op.execute("""
        CREATE TABLE orders (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            org_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            buyer_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            supplier_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            forwarder_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            consignee_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            agent_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            broker_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            trucker_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            order_status_id UUID NOT NULL REFERENCES status_lookups(id),
            is_ready_for_booking BOOLEAN NOT NULL DEFAULT false,
            purchase_order_number VARCHAR(50),
            destination_id UUID REFERENCES locations(id) ON DELETE SET NULL,
            origin_id UUID REFERENCES locations(id) ON DELETE SET NULL,
            incoterms VARCHAR(10),
            cargo_ready_date DATE,
            requested_delivery_date DATE,
            special_instructions TEXT,
            hot_flag BOOLEAN NOT NULL DEFAULT false,
            terms_and_conditions TEXT,
            last_updated_by_org_id UUID,
            extra_data JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_orders_org_id ON orders (org_id);")
    op.execute("CREATE INDEX ix_orders_buyer_id ON orders (buyer_id);")
    op.execute("CREATE INDEX ix_orders_supplier_id ON orders (supplier_id);")
    op.execute("CREATE INDEX ix_orders_order_status_id ON orders (order_status_id);")
    op.execute("CREATE INDEX ix_orders_purchase_order_number ON orders (purchase_order_number);")

    op.execute("""
        CREATE TABLE order_line_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_id UUID NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            line_number INTEGER NOT NULL,
            item_number VARCHAR(100),
            description VARCHAR(500) NOT NULL,
            quantity NUMERIC(15, 3) NOT NULL,
            unit_of_measure VARCHAR(20),
            unit_price NUMERIC(12, 2),
            supplier_id UUID,
            last_updated_by_org_id UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_order_line_items_order_id ON order_line_items (order_id);")

    # ── 6. Booking requests ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE booking_requests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            booking_request_number VARCHAR(50) NOT NULL,
            booking_status_id UUID NOT NULL REFERENCES status_lookups(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_booking_requests_status ON booking_requests (booking_status_id);")

    # ── 7. Event outbox ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE event_outbox (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type VARCHAR(255) NOT NULL,
            aggregate_type VARCHAR(100) NOT NULL,
            aggregate_id VARCHAR(255) NOT NULL,
            payload JSONB NOT NULL DEFAULT '{}',
            status eventstatus NOT NULL DEFAULT 'PENDING',
            request_id VARCHAR(64),
            retry_count INTEGER NOT NULL DEFAULT 0,
            max_retries INTEGER NOT NULL DEFAULT 3,
            last_error TEXT,
            processed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_event_outbox_aggregate ON event_outbox (aggregate_type, aggregate_id);")
    op.execute("CREATE INDEX ix_event_outbox_pending ON event_outbox (created_at) WHERE status = 'PENDING';")

    op.execute("""
        CREATE TABLE processed_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL,
            event_type VARCHAR(255) NOT NULL,
            handler_name VARCHAR(255) NOT NULL,
            processed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_processed_events_event_handler UNIQUE (event_id, handler_name)
        );
    """)
    op.execute("CREATE INDEX ix_processed_events_expires_at ON processed_events (expires_at);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS processed_events;")
    op.execute("DROP TABLE IF EXISTS event_outbox;")
    op.execute("DROP TABLE IF EXISTS booking_requests;")
    op.execute("DROP TABLE IF EXISTS order_line_items;")
    op.execute("DROP TABLE IF EXISTS orders;")
    op.execute("DROP TABLE IF EXISTS locations;")
    op.execute("DROP TABLE IF EXISTS status_lookups;")
    op.execute("DROP TABLE IF EXISTS users;")
    op.execute("DROP TABLE IF EXISTS organizations;")
    op.execute("DROP TYPE IF EXISTS eventstatus;")
    op.execute("DROP TYPE IF EXISTS organizationtype;")
