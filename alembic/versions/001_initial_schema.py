"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2025-01-01 00:00:00.000000
"""

import sqlalchemy as sa

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Items (read model of the storefront catalog)
    op.create_table(
        "items",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("category", sa.String(100), nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("price", sa.Float, nullable=True),
        sa.Column("seller_id", sa.String(64), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("popularity", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # Interactions (append-only)
    op.create_table(
        "interactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("item_id", sa.String(64), nullable=False),
        sa.Column(
            "interaction_type",
            sa.Enum(
                "view", "like", "save", "share", "purchase", "comment",
                name="interaction_type_enum",
            ),
            nullable=False,
        ),
        sa.Column("weight", sa.Float, nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_interactions_user_created", "interactions", ["user_id", "created_at"]
    )
    op.create_index(
        "ix_interactions_item_created", "interactions", ["item_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_interactions_item_created", table_name="interactions")
    op.drop_index("ix_interactions_user_created", table_name="interactions")
    op.drop_table("interactions")
    op.drop_table("items")
    sa.Enum(name="interaction_type_enum").drop(op.get_bind(), checkfirst=True)
