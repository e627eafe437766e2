"""One image per product, unique dynamic field order

Revision ID: 0003
Revises: 0002
Create Date: 2025-06-09 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op

# Revision identifiers used by Alembic
revision: str = '0003'
down_revision: Union[str, Sequence[str], None] = '0002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Keep the newest image of each product and re-point products at it
    op.execute(
        "DELETE FROM images WHERE id NOT IN "
        "(SELECT MAX(id) FROM images GROUP BY product_id)"
    )
    op.execute(
        "UPDATE products SET image_id = "
        "(SELECT images.image_id FROM images WHERE images.product_id = products.id) "
        "WHERE image_id IS NOT NULL AND image_id NOT IN (SELECT image_id FROM images)"
    )
    op.execute(
        "DELETE FROM dynamic_fields WHERE id NOT IN "
        "(SELECT MAX(id) FROM dynamic_fields GROUP BY product_id, field_order)"
    )

    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS uq_images_product_id ON images (product_id)")
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_dynamic_fields_product_order "
        "ON dynamic_fields (product_id, field_order)"
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_dynamic_fields_product_order', table_name='dynamic_fields')
    op.drop_index('uq_images_product_id', table_name='images')
