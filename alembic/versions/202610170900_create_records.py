"""create records

Revision ID: 202610170900
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610170900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "kind", sa.Enum("income", "expense", name="recordkind"), nullable=False
        ),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("occurred_on", sa.Date(), nullable=False),
        sa.Column("icon", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_records_user_kind_date",
        "records",
        ["user_id", "kind", "occurred_on"],
    )


def downgrade():
    op.drop_index("ix_records_user_kind_date", table_name="records")
    op.drop_table("records")
    sa.Enum(name="recordkind").drop(op.get_bind(), checkfirst=True)
