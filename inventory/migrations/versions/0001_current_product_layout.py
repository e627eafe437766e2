"""Current product layout

Creates the products table, or rebuilds a legacy one (name/category/gst/
master/inner/mrp/dp columns) through a shadow table.

Revision ID: 0001
Revises:
Create Date: 2025-06-02 10:00:00.000000

"""
import logging
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from inventory.schema_manager import (
    LAYOUT_CURRENT,
    LAYOUT_EMPTY,
    SHADOW_TABLE,
    build_legacy_copy_sql,
    detect_layout,
)

# Revision identifiers used by Alembic
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

logger = logging.getLogger(__name__)


def _create_products(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_name', sa.String(), nullable=False),
        sa.Column('company_name', sa.String(), nullable=False),
        sa.Column('product_quality', sa.String(), nullable=False),
        sa.Column('quantity_bundle', sa.Integer(), nullable=False),
        sa.Column('purchase_price', sa.Float(), nullable=False),
        sa.Column('wholesale_price', sa.Float(), nullable=False),
        sa.Column('retail_price', sa.Float(), nullable=False),
        sa.Column('image_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
        sqlite_autoincrement=True,
    )


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    layout = detect_layout(bind)
    if layout == LAYOUT_EMPTY:
        _create_products('products')
        return
    if layout == LAYOUT_CURRENT:
        logger.info("Product table already uses the current layout")
        return

    logger.info("Starting product table migration")
    # Leftover of an interrupted earlier attempt
    op.execute(f'DROP TABLE IF EXISTS {SHADOW_TABLE}')
    _create_products(SHADOW_TABLE)

    # Copy what can be reconstructed; when that fails the shadow stays empty
    try:
        with bind.begin_nested():
            result = bind.execute(sa.text(build_legacy_copy_sql(bind, 'products', SHADOW_TABLE)))
        logger.info("Migrated %d product rows to the new schema", result.rowcount)
    except SQLAlchemyError as e:
        logger.warning("Could not migrate product rows, creating fresh table: %s", e)

    op.drop_table('products')
    op.rename_table(SHADOW_TABLE, 'products')


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('products')
