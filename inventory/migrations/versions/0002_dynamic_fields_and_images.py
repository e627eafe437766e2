"""Dynamic fields and images tables, drop categories

Revision ID: 0002
Revises: 0001
Create Date: 2025-06-02 10:05:00.000000

"""
import logging
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

# Revision identifiers used by Alembic
revision: str = '0002'
down_revision: Union[str, Sequence[str], None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

logger = logging.getLogger(__name__)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    if 'dynamic_fields' not in tables:
        op.create_table(
            'dynamic_fields',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
            sa.Column('field_name', sa.String(), nullable=False),
            sa.Column('field_value', sa.Text(), nullable=True),
            sa.Column('field_type', sa.String(), nullable=False),
            sa.Column('field_order', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
            sqlite_autoincrement=True,
        )

    if 'images' not in tables:
        op.create_table(
            'images',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('image_id', sa.String(), nullable=False, unique=True),
            sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
            sa.Column('file_name', sa.String(), nullable=False),
            sa.Column('file_path', sa.String(), nullable=False),
            sa.Column('base64_data', sa.Text(), nullable=False),
            sa.Column('original_name', sa.String(), nullable=False),
            sa.Column('file_size', sa.Integer(), nullable=False),
            sa.Column('mime_type', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
            sqlite_autoincrement=True,
        )

    # Categories were folded into products.company_name
    if 'categories' in tables:
        try:
            with bind.begin_nested():
                op.drop_table('categories')
            logger.info("Categories table removed")
        except SQLAlchemyError as e:
            logger.warning("Could not drop categories table: %s", e)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('images')
    op.drop_table('dynamic_fields')
