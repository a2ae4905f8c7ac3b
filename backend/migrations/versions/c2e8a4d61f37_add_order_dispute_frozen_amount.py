"""add_order_dispute_frozen_amount

Revision ID: c2e8a4d61f37
Revises: 9a1c2e4f6b80
Create Date: 2026-10-18 09:41:12.503118

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c2e8a4d61f37'
down_revision = '9a1c2e4f6b80'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())
    if "orders" not in tables:
        return

    columns = {col["name"] for col in inspector.get_columns("orders")}
    if "dispute_frozen_amount" in columns:
        return

    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.add_column(sa.Column("dispute_frozen_amount", sa.Numeric(precision=12, scale=2), nullable=True))


def downgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())
    if "orders" not in tables:
        return

    columns = {col["name"] for col in inspector.get_columns("orders")}
    if "dispute_frozen_amount" not in columns:
        return

    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.drop_column("dispute_frozen_amount")
