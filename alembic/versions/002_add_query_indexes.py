"""Add query indexes for Brickstore

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

Indexes for the read paths of the HTTP surface:
1. Catalog filtering by color
2. A user's order history, newest first
3. Order line lookup by order
"""
from typing import Sequence, Union
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add query indexes."""
    op.create_index('ix_bricks_color', 'bricks', ['color'], if_not_exists=True)
    op.create_index('ix_orders_user_placed', 'orders', ['user_id', 'placed_at'], if_not_exists=True)
    op.create_index('ix_order_lines_order', 'order_lines', ['order_id'], if_not_exists=True)


def downgrade() -> None:
    """Remove query indexes."""
    op.drop_index('ix_order_lines_order', table_name='order_lines', if_exists=True)
    op.drop_index('ix_orders_user_placed', table_name='orders', if_exists=True)
    op.drop_index('ix_bricks_color', table_name='bricks', if_exists=True)
