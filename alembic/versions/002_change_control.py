"""Order participants and change control

Revision ID: 002
Revises: 001
Create Date: 2026-10-12

Creates: order_line_item_notes, order_participants, order_change_requests,
         order_change_reviews, order_change_request_line_items
Enums: changerequestlineitemaction
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TYPE changerequestlineitemaction AS ENUM (
            'ADD', 'EDIT', 'REMOVE', 'REPLACE', 'SHIPPING_INFO'
        );
    """)

    # ── 1. Line-item notes ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE order_line_item_notes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_line_item_id UUID NOT NULL REFERENCES order_line_items(id) ON DELETE CASCADE,
            author_id UUID REFERENCES users(id) ON DELETE SET NULL,
            note TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_order_line_item_notes_line_item_id "
        "ON order_line_item_notes (order_line_item_id);"
    )

    # ── 2. Participants ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE order_participants (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_id UUID NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            approval_is_required BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_order_participants_order_user UNIQUE (order_id, user_id)
        );
    """)
    op.execute("CREATE INDEX ix_order_participants_order_id ON order_participants (order_id);")

    # ── 3. Change requests ────────────────────────────────────────────────
    # The unique constraint backs the retry loop around max+1 numbering
    op.execute("""
        CREATE TABLE order_change_requests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_id UUID NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            author_id UUID NOT NULL REFERENCES users(id),
            change_status_id UUID NOT NULL REFERENCES status_lookups(id),
            change_request_number INTEGER NOT NULL,
            title VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            note TEXT,
            created_on DATE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_order_change_requests_order_number UNIQUE (order_id, change_request_number)
        );
    """)
    op.execute(
        "CREATE INDEX ix_order_change_requests_order_id ON order_change_requests (order_id);"
    )

    op.execute("""
        CREATE TABLE order_change_reviews (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_change_request_id UUID NOT NULL
                REFERENCES order_change_requests(id) ON DELETE CASCADE,
            reviewer_id UUID NOT NULL REFERENCES users(id),
            change_status_id UUID NOT NULL REFERENCES status_lookups(id),
            review_date TIMESTAMPTZ,
            comment TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_order_change_reviews_request_reviewer
                UNIQUE (order_change_request_id, reviewer_id)
        );
    """)
    op.execute(
        "CREATE INDEX ix_order_change_reviews_request_id "
        "ON order_change_reviews (order_change_request_id);"
    )

    op.execute("""
        CREATE TABLE order_change_request_line_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_change_request_id UUID NOT NULL
                REFERENCES order_change_requests(id) ON DELETE CASCADE,
            action changerequestlineitemaction NOT NULL,
            order_line_item_id UUID,
            field_name VARCHAR(100),
            previous_value JSONB,
            proposed_value JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_order_change_request_line_items_request_id "
        "ON order_change_request_line_items (order_change_request_id);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_change_request_line_items;")
    op.execute("DROP TABLE IF EXISTS order_change_reviews;")
    op.execute("DROP TABLE IF EXISTS order_change_requests;")
    op.execute("DROP TABLE IF EXISTS order_participants;")
    op.execute("DROP TABLE IF EXISTS order_line_item_notes;")
    op.execute("DROP TYPE IF EXISTS changerequestlineitemaction;")
